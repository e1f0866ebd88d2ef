import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes, authentication_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated, AllowAny
from django.db.models import Q
from django.shortcuts import get_object_or_404
from django.utils.dateparse import parse_datetime

from ccurity.core.permissions import IsAdminRole
from ccurity.core.utils import create_audit_log
from . import resend_service
from .models import Email
from .serializers import EmailSerializer, SendEmailSerializer

logger = logging.getLogger(__name__)

LIST_LIMIT = 50

WEBHOOK_STATUS = {
    'email.delivered': 'delivered',
    'email.bounced': 'bounced',
    'email.complained': 'bounced',
}


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def email_list(request):
    """The 50 newest emails of a folder, optionally filtered by ``search``"""
    folder = request.query_params.get('folder', 'inbox')
    queryset = Email.objects.select_related('sent_by').filter(folder=folder)
    search = request.query_params.get('search', '').strip()
    if search:
        queryset = queryset.filter(
            Q(subject__icontains=search) | Q(from_address__icontains=search) | Q(text_body__icontains=search)
        )
    return Response(EmailSerializer(queryset.order_by('-created_at')[:LIST_LIMIT], many=True).data)


@api_view(['GET', 'DELETE'])
@permission_classes([IsAuthenticated, IsAdminRole])
def email_detail(request, pk):
    email = get_object_or_404(Email, pk=pk)
    if request.method == 'GET':
        return Response(EmailSerializer(email).data)
    email.delete()
    return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def email_stats(request):
    emails = Email.objects.all()
    return Response({
        'total': emails.count(),
        'unread': emails.filter(is_read=False).exclude(folder='trash').count(),
        'inbox': emails.filter(folder='inbox').count(),
        'sent': emails.filter(folder='sent').count(),
        'drafts': emails.filter(folder='drafts').count(),
        'trash': emails.filter(folder='trash').count(),
        'starred': emails.filter(is_starred=True).count(),
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def email_mark_read(request, pk):
    email = get_object_or_404(Email, pk=pk)
    email.is_read = True
    email.save(update_fields=['is_read', 'updated_at'])
    return Response(EmailSerializer(email).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def email_toggle_star(request, pk):
    email = get_object_or_404(Email, pk=pk)
    email.is_starred = not email.is_starred
    email.save(update_fields=['is_starred', 'updated_at'])
    return Response(EmailSerializer(email).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def email_move_to_trash(request, pk):
    email = get_object_or_404(Email, pk=pk)
    email.folder = 'trash'
    email.save(update_fields=['folder', 'updated_at'])
    return Response(EmailSerializer(email).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def email_send(request):
    """Send through Resend and keep a copy in the sent folder"""
    serializer = SendEmailSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data
    sender = data.get('from_address') or resend_service.default_sender()

    try:
        result = resend_service.send_email(
            to=data['to'],
            subject=data['subject'],
            html=data.get('html'),
            text=data.get('text'),
            cc=data['cc'],
            bcc=data['bcc'],
            from_address=sender,
            reply_to=data['reply_to'],
        )
    except resend_service.ResendError as e:
        return Response({'error': e.message}, status=status.HTTP_502_BAD_GATEWAY)

    email = Email.objects.create(
        resend_id=result.get('id'),
        direction='outbound',
        from_address=sender,
        to_addresses=data['to'],
        cc=data['cc'],
        bcc=data['bcc'],
        subject=data['subject'],
        html_body=data.get('html') or None,
        text_body=data.get('text') or None,
        status='sent',
        folder='sent',
        is_read=True,
        sent_by=request.user,
    )
    create_audit_log(request=request, action='email_send', model_name='Email', object_id=email.id,
                     object_name=email.subject, object_reference=email.resend_id)
    return Response(EmailSerializer(email).data, status=status.HTTP_201_CREATED)


@api_view(['POST'])
@authentication_classes([])
@permission_classes([AllowAny])
def resend_webhook(request):
    """Inbound mail and delivery status events from Resend"""
    if not isinstance(request.data, dict):
        return Response({'error': 'Invalid JSON'}, status=status.HTTP_400_BAD_REQUEST)
    event_type = request.data.get('type')
    data = request.data.get('data') or {}
    if not isinstance(data, dict):
        return Response({'error': 'Invalid JSON'}, status=status.HTTP_400_BAD_REQUEST)

    if event_type == 'email.received':
        to = data.get('to') or []
        email = Email.objects.create(
            resend_id=data.get('email_id') or None,
            direction='inbound',
            from_address=data.get('from') or '',
            to_addresses=to if isinstance(to, list) else [to],
            cc=data.get('cc') or [],
            bcc=data.get('bcc') or [],
            subject=data.get('subject') or '(Sin asunto)',
            html_body=data.get('html') or None,
            text_body=data.get('text') or None,
            status='received',
            folder='inbox',
            is_read=False,
        )
        created_at = parse_datetime(data.get('created_at') or '')
        if created_at:
            Email.objects.filter(pk=email.pk).update(created_at=created_at)
        logger.info(f"Inbound email {email.pk} stored from {email.from_address}")
        return Response({'received': True})

    if event_type in WEBHOOK_STATUS:
        if data.get('email_id'):
            Email.objects.filter(resend_id=data['email_id']).update(status=WEBHOOK_STATUS[event_type])
        return Response({'received': True})

    return Response({'received': True, 'handled': False})
