import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.contrib.auth import get_user_model
from django.db import transaction
from django.shortcuts import get_object_or_404
from django.utils.dateparse import parse_datetime

from ccurity.core.cache_signals import invalidate_reports_on_commit
from ccurity.core.permissions import is_admin_user
from ccurity.core.serializers import UserSummarySerializer
from .models import Conversation, ConversationParticipant, Message
from .serializers import ConversationSerializer, MessageSerializer

logger = logging.getLogger(__name__)

User = get_user_model()


def visible_conversations(user):
    queryset = Conversation.objects.prefetch_related('participants__user')
    if is_admin_user(user):
        return queryset
    return queryset.filter(participants__user=user).distinct()


def get_conversation_for(user, pk):
    """Conversation by id, only for participants and admins (404 otherwise)"""
    return get_object_or_404(visible_conversations(user), pk=pk)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def conversation_list_create(request):
    if request.method == 'GET':
        conversations = visible_conversations(request.user).order_by('-updated_at')
        return Response(ConversationSerializer(conversations, many=True, context={'user': request.user}).data)

    participant_ids = request.data.get('participant_ids') or []
    if not isinstance(participant_ids, list) or not participant_ids:
        return Response({'error': 'Se requiere al menos un participante'}, status=status.HTTP_400_BAD_REQUEST)

    try:
        participant_ids = {int(pk) for pk in participant_ids}
    except (TypeError, ValueError):
        return Response({'error': 'participant_ids debe ser una lista de IDs'}, status=status.HTTP_400_BAD_REQUEST)

    users = list(User.objects.filter(pk__in=participant_ids, is_active=True))
    if len(users) != len(participant_ids):
        return Response({'error': 'Uno o más participantes no existen'}, status=status.HTTP_400_BAD_REQUEST)

    with transaction.atomic():
        conversation = Conversation.objects.create(title=(request.data.get('title') or '').strip() or None)
        members = {user.pk: user for user in users}
        members[request.user.pk] = request.user
        ConversationParticipant.objects.bulk_create([
            ConversationParticipant(conversation=conversation, user=user) for user in members.values()
        ])

    conversation = visible_conversations(request.user).get(pk=conversation.pk)
    return Response(ConversationSerializer(conversation, context={'user': request.user}).data,
                    status=status.HTTP_201_CREATED)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def conversation_messages(request, pk):
    """
    GET lists messages oldest first; ``?after=<iso datetime>`` returns only
    newer ones so clients can poll.

    POST sends a message as the caller.
    """
    conversation = get_conversation_for(request.user, pk)

    if request.method == 'GET':
        messages = conversation.messages.select_related('sender')
        after = request.query_params.get('after')
        if after:
            after_dt = parse_datetime(after.replace(' ', '+'))
            if after_dt is None:
                return Response({'error': 'Parámetro after inválido'}, status=status.HTTP_400_BAD_REQUEST)
            messages = messages.filter(created_at__gt=after_dt)
        return Response(MessageSerializer(messages.order_by('created_at', 'id'), many=True).data)

    content = (request.data.get('content') or '').strip()
    if not content:
        return Response({'error': 'El mensaje no puede estar vacío'}, status=status.HTTP_400_BAD_REQUEST)

    receiver_id = request.data.get('receiver')
    if receiver_id and not conversation.participants.filter(user_id=receiver_id).exists():
        return Response({'error': 'El destinatario no participa en la conversación'},
                        status=status.HTTP_400_BAD_REQUEST)

    with transaction.atomic():
        message = Message.objects.create(
            conversation=conversation,
            sender=request.user,
            receiver_id=receiver_id or None,
            content=content,
        )
        conversation.save(update_fields=['updated_at'])

    return Response(MessageSerializer(message).data, status=status.HTTP_201_CREATED)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def conversation_mark_read(request, pk):
    conversation = get_conversation_for(request.user, pk)
    updated = conversation.messages.filter(is_read=False).exclude(sender=request.user).update(is_read=True)
    if updated:
        invalidate_reports_on_commit()
    return Response({'success': True, 'updated': updated})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def conversation_participants(request, pk):
    conversation = get_conversation_for(request.user, pk)
    users = [p.user for p in conversation.participants.all()]
    return Response(UserSummarySerializer(users, many=True).data)


def chat_totals(user=None):
    """Conversation and message counts, scoped to ``user`` unless admin"""
    conversations = Conversation.objects.all()
    messages = Message.objects.all()
    if user is not None and not is_admin_user(user):
        conversations = conversations.filter(participants__user=user).distinct()
        messages = messages.filter(conversation__participants__user=user)
    unread = messages.filter(is_read=False)
    if user is not None:
        unread = unread.exclude(sender=user)
    return {
        'totalConversations': conversations.count(),
        'totalMessages': messages.count(),
        'unreadMessages': unread.count(),
    }


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def chat_stats(request):
    return Response(chat_totals(request.user))
