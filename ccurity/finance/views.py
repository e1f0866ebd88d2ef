import logging
from decimal import Decimal, InvalidOperation

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes, authentication_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated, AllowAny
from django.contrib.auth import get_user_model
from django.db import transaction
from django.db.models import Count, Sum
from django.shortcuts import get_object_or_404
from django.utils import timezone

from ccurity.core.permissions import IsAdminRole
from ccurity.core.utils import create_audit_log, get_client_ip, get_user_agent, paginate
from .models import ContractType, Contract, ContractToken, ContractSignature, ContractHistory, Invoice, Payment
from .serializers import (
    ContractTypeSerializer, ContractSerializer, ContractDetailSerializer, ContractTokenSerializer,
    ContractSignatureSerializer, ContractHistorySerializer, SignatureSubmitSerializer, SigningPartySerializer,
    InvoiceSerializer, InvoiceDetailSerializer, PaymentSerializer,
)
from .storage import InvalidImageError, decode_data_url, discard_signature_images, store_signature_image

logger = logging.getLogger(__name__)

User = get_user_model()

SIGNATURE_IMAGES = (
    ('selfie', 'selfie_url'),
    ('ine_front', 'ine_front_url'),
    ('ine_back', 'ine_back_url'),
    ('signature', 'signature_url'),
)


# Contract types
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def contract_type_list_create(request):
    if request.method == 'GET':
        queryset = ContractType.objects.select_related('service_type').order_by('order', 'name')
        return Response(ContractTypeSerializer(queryset, many=True).data)

    serializer = ContractTypeSerializer(data=request.data)
    if serializer.is_valid():
        contract_type = serializer.save()
        return Response(ContractTypeSerializer(contract_type).data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def contract_type_by_service_type(request, service_type_pk):
    """Active contract types offered for a service type"""
    queryset = ContractType.objects.filter(service_type_id=service_type_pk, is_active=True).order_by('order', 'name')
    return Response(ContractTypeSerializer(queryset, many=True).data)


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsAdminRole])
def contract_type_detail(request, pk):
    contract_type = get_object_or_404(ContractType, pk=pk)

    if request.method == 'GET':
        return Response(ContractTypeSerializer(contract_type).data)

    if request.method == 'PATCH':
        serializer = ContractTypeSerializer(contract_type, data=request.data, partial=True)
        if serializer.is_valid():
            serializer.save()
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    contract_type.delete()
    return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def contract_type_toggle(request, pk):
    contract_type = get_object_or_404(ContractType, pk=pk)
    contract_type.is_active = not contract_type.is_active
    contract_type.save(update_fields=['is_active', 'updated_at'])
    return Response(ContractTypeSerializer(contract_type).data)


# Contracts
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def contract_list_create(request):
    if request.method == 'GET':
        queryset = Contract.objects.select_related('user', 'contract_type')
        status_filter = request.query_params.get('status')
        if status_filter:
            queryset = queryset.filter(status=status_filter)
        user_filter = request.query_params.get('user')
        if user_filter:
            queryset = queryset.filter(user_id=user_filter)
        return Response(paginate(request, queryset.order_by('-created_at'), ContractSerializer))

    serializer = ContractSerializer(data=request.data)
    if serializer.is_valid():
        contract = serializer.save(status=Contract.STATUS_DRAFT)
        create_audit_log(request=request, action='create', model_name='Contract', object_id=contract.id,
                         object_name=contract.title)
        return Response(ContractSerializer(contract).data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsAdminRole])
def contract_detail(request, pk):
    contract = get_object_or_404(
        Contract.objects.select_related('user', 'contract_type').prefetch_related('tokens__user'), pk=pk
    )

    if request.method == 'GET':
        return Response(ContractDetailSerializer(contract).data)

    if request.method == 'PATCH':
        serializer = ContractSerializer(contract, data=request.data, partial=True)
        if serializer.is_valid():
            serializer.save()
            ContractHistory.objects.create(contract=contract, action=ContractHistory.ACTION_MODIFY,
                                           ip_address=get_client_ip(request),
                                           metadata={'fields': sorted(request.data.keys())})
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    create_audit_log(request=request, action='delete', model_name='Contract', object_id=contract.id,
                     object_name=contract.title)
    contract.delete()
    return Response(status=status.HTTP_204_NO_CONTENT)


def issue_signing_tokens(contract):
    """
    Create the CLIENT and PROVIDER tokens of a contract.

    The counterpart signs in its own role; the other side is signed by the
    first admin (or the counterpart when there is none).
    """
    admin = User.objects.filter(role=User.ROLE_ADMIN, is_active=True).order_by('id').first()
    counterpart = contract.user
    other = admin or counterpart

    if contract.counterpart_role == Contract.ROLE_PROVIDER:
        signers = {Contract.ROLE_CLIENT: other, Contract.ROLE_PROVIDER: counterpart}
    else:
        signers = {Contract.ROLE_CLIENT: counterpart, Contract.ROLE_PROVIDER: other}

    return [
        ContractToken.objects.create(contract=contract, role=role, user=signer)
        for role, signer in signers.items()
    ]


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def contract_update_status(request, pk):
    contract = get_object_or_404(Contract, pk=pk)
    new_status = request.data.get('status')
    if new_status not in dict(Contract.STATUS_CHOICES):
        return Response({'error': 'Estado inválido'}, status=status.HTTP_400_BAD_REQUEST)

    previous = contract.status
    with transaction.atomic():
        if new_status == Contract.STATUS_PENDING_SIGNATURE and previous != new_status:
            tokens = issue_signing_tokens(contract)
            ContractHistory.objects.create(
                contract=contract,
                action=ContractHistory.ACTION_SEND,
                ip_address=get_client_ip(request),
                metadata={'tokens': {t.role: t.token for t in tokens}},
            )
            logger.info(f"Contract {contract.id} sent for signature ({len(tokens)} tokens)")
        contract.status = new_status
        contract.save(update_fields=['status', 'updated_at'])

    create_audit_log(request=request, action='status_change', model_name='Contract', object_id=contract.id,
                     object_name=contract.title, changes={'status': {'old': previous, 'new': new_status}})
    contract = Contract.objects.prefetch_related('tokens__user').get(pk=contract.pk)
    return Response(ContractDetailSerializer(contract).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def contract_tokens(request, pk):
    contract = get_object_or_404(Contract, pk=pk)
    tokens = contract.tokens.select_related('user')
    return Response(ContractTokenSerializer(tokens, many=True).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def contract_history(request, pk):
    contract = get_object_or_404(Contract, pk=pk)
    entries = contract.history.select_related('token')
    return Response(ContractHistorySerializer(entries, many=True).data)


# Public signing
def get_signing_token(token):
    return get_object_or_404(ContractToken.objects.select_related('contract', 'contract__contract_type', 'user'),
                             token=token)


@api_view(['GET'])
@authentication_classes([])
@permission_classes([AllowAny])
def signing_detail(request, token):
    """Contract, the caller's token and signature, and the progress of every party"""
    contract_token = get_signing_token(token)
    contract = contract_token.contract
    signature = ContractSignature.objects.filter(token=contract_token).first()
    return Response({
        'contract': ContractSerializer(contract).data,
        'token': ContractTokenSerializer(contract_token).data,
        'signature': ContractSignatureSerializer(signature).data if signature else None,
        'tokens': SigningPartySerializer(contract.tokens.select_related('user'), many=True).data,
    })


@api_view(['POST'])
@authentication_classes([])
@permission_classes([AllowAny])
def signing_log_view(request, token):
    contract_token = get_signing_token(token)
    ContractHistory.objects.create(
        contract=contract_token.contract,
        token=contract_token,
        action=ContractHistory.ACTION_VIEW,
        ip_address=get_client_ip(request),
        metadata={'user_agent': get_user_agent(request)},
    )
    return Response({'success': True})


@api_view(['POST'])
@authentication_classes([])
@permission_classes([AllowAny])
def signing_submit(request, token):
    """
    Store the signing images and sign the token.

    When every token of the contract is signed the contract becomes ACTIVE.
    """
    contract_token = get_signing_token(token)
    if contract_token.is_signed:
        return Response({'error': 'Already signed'}, status=status.HTTP_400_BAD_REQUEST)

    serializer = SignatureSubmitSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data
    contract = contract_token.contract

    # Every image is validated before anything is stored
    images = {}
    try:
        for kind, _field in SIGNATURE_IMAGES:
            images[kind] = decode_data_url(data[kind])
    except InvalidImageError as e:
        return Response({'error': f'Imagen inválida: {e}'}, status=status.HTTP_400_BAD_REQUEST)

    ip_address = get_client_ip(request)
    stored = []
    try:
        with transaction.atomic():
            locked = ContractToken.objects.select_for_update().get(pk=contract_token.pk)
            if locked.is_signed:
                return Response({'error': 'Already signed'}, status=status.HTTP_400_BAD_REQUEST)

            urls = {}
            for kind, field in SIGNATURE_IMAGES:
                mime, raw = images[kind]
                name, urls[field] = store_signature_image(contract.id, locked.token, kind, mime, raw)
                stored.append(name)

            ContractSignature.objects.create(
                token=locked,
                accepted_digital=data['accepted_digital'],
                accepted_content=data['accepted_content'],
                ip_address=ip_address,
                user_agent=get_user_agent(request),
                **urls,
            )
            locked.signed_at = timezone.now()
            locked.save(update_fields=['signed_at'])
            ContractHistory.objects.create(contract=contract, token=locked, action=ContractHistory.ACTION_SIGN,
                                           ip_address=ip_address, metadata={'role': locked.role})

            fully_signed = not contract.tokens.filter(signed_at__isnull=True).exists()
            if fully_signed:
                contract.status = Contract.STATUS_ACTIVE
                contract.save(update_fields=['status', 'updated_at'])
    except Exception:
        logger.exception(f"Signing submission for contract {contract.id} failed; removing stored images")
        discard_signature_images(stored)
        raise

    create_audit_log(request=request, action='sign', model_name='Contract', object_id=contract.id,
                     object_name=contract.title, user=locked.user, changes={'role': locked.role})
    logger.info(f"Contract {contract.id} signed as {locked.role}; fully signed: {fully_signed}")
    return Response({'success': True, 'contract_status': contract.status, 'fully_signed': fully_signed})


# Invoices
def next_invoice_number():
    year = timezone.now().year
    sequence = Invoice.objects.count() + 1
    number = f"FAC-{year}-{sequence:03d}"
    while Invoice.objects.filter(number=number).exists():
        sequence += 1
        number = f"FAC-{year}-{sequence:03d}"
    return number


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def invoice_list_create(request):
    if request.method == 'GET':
        queryset = Invoice.objects.select_related('user', 'service')
        status_filter = request.query_params.get('status')
        if status_filter:
            queryset = queryset.filter(status=status_filter)
        user_filter = request.query_params.get('user')
        if user_filter:
            queryset = queryset.filter(user_id=user_filter)
        return Response(paginate(request, queryset.order_by('-created_at'), InvoiceSerializer))

    serializer = InvoiceSerializer(data=request.data)
    if serializer.is_valid():
        subtotal = serializer.validated_data.get('subtotal') or Decimal('0')
        tax = serializer.validated_data.get('tax') or Decimal('0')
        invoice = serializer.save(number=next_invoice_number(), total=subtotal + tax)
        create_audit_log(request=request, action='create', model_name='Invoice', object_id=invoice.id,
                         object_reference=invoice.number)
        return Response(InvoiceSerializer(invoice).data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsAdminRole])
def invoice_detail(request, pk):
    invoice = get_object_or_404(Invoice.objects.select_related('user', 'service').prefetch_related('payments'), pk=pk)

    if request.method == 'GET':
        return Response(InvoiceDetailSerializer(invoice).data)

    if request.method == 'PATCH':
        serializer = InvoiceSerializer(invoice, data=request.data, partial=True)
        if serializer.is_valid():
            invoice = serializer.save()
            if 'subtotal' in serializer.validated_data or 'tax' in serializer.validated_data:
                invoice.total = invoice.subtotal + invoice.tax
                invoice.save(update_fields=['total', 'updated_at'])
            return Response(InvoiceSerializer(invoice).data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    create_audit_log(request=request, action='delete', model_name='Invoice', object_id=invoice.id,
                     object_reference=invoice.number)
    invoice.delete()
    return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def invoice_payments(request, pk):
    """List the payments of an invoice or register a new one"""
    invoice = get_object_or_404(Invoice, pk=pk)

    if request.method == 'GET':
        return Response(PaymentSerializer(invoice.payments.all(), many=True).data)

    try:
        amount = Decimal(str(request.data.get('amount')))
    except (InvalidOperation, TypeError, ValueError):
        return Response({'error': 'Monto inválido'}, status=status.HTTP_400_BAD_REQUEST)
    if amount <= 0:
        return Response({'error': 'El monto debe ser mayor a cero'}, status=status.HTTP_400_BAD_REQUEST)
    if invoice.status == Invoice.STATUS_CANCELLED:
        return Response({'error': 'La factura está cancelada'}, status=status.HTTP_400_BAD_REQUEST)

    method = request.data.get('method') or 'transfer'
    if method not in dict(Payment.METHOD_CHOICES):
        return Response({'error': 'Método de pago inválido'}, status=status.HTTP_400_BAD_REQUEST)

    with transaction.atomic():
        payment = Payment.objects.create(
            invoice=invoice,
            amount=amount,
            method=method,
            reference=request.data.get('reference') or None,
            paid_at=timezone.now(),
        )
        if invoice.amount_paid() >= invoice.total and invoice.status != Invoice.STATUS_PAID:
            invoice.status = Invoice.STATUS_PAID
            invoice.paid_date = timezone.localdate()
            invoice.save(update_fields=['status', 'paid_date', 'updated_at'])

    create_audit_log(request=request, action='payment_add', model_name='Invoice', object_id=invoice.id,
                     object_reference=invoice.number, changes={'amount': str(amount), 'method': method})
    return Response({
        'payment': PaymentSerializer(payment).data,
        'invoice': InvoiceSerializer(invoice).data,
    }, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def payment_list(request):
    queryset = Payment.objects.select_related('invoice')
    method = request.query_params.get('method')
    if method:
        queryset = queryset.filter(method=method)
    return Response(paginate(request, queryset.order_by('-paid_at'), PaymentSerializer))


# Stats
def finance_totals():
    return {
        'totalContracts': Contract.objects.count(),
        'activeContracts': Contract.objects.filter(status=Contract.STATUS_ACTIVE).count(),
        'totalRevenue': Payment.objects.aggregate(total=Sum('amount'))['total'] or Decimal('0'),
        'pendingAmount': Invoice.objects.exclude(status=Invoice.STATUS_PAID).aggregate(
            total=Sum('total'))['total'] or Decimal('0'),
        'totalInvoices': Invoice.objects.count(),
    }


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def finance_stats(request):
    return Response(finance_totals())


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def finance_report(request):
    """Contracts by status and the ten clients with most contracts"""
    by_status = {
        row['status']: row['count']
        for row in Contract.objects.values('status').annotate(count=Count('id'))
    }
    top_clients = (
        Contract.objects.filter(user__isnull=False)
        .values('user_id', 'user__full_name', 'user__email')
        .annotate(contracts=Count('id'))
        .order_by('-contracts', 'user__full_name')[:10]
    )
    return Response({
        'contractsByStatus': by_status,
        'topClients': [
            {
                'id': row['user_id'],
                'name': row['user__full_name'] or row['user__email'],
                'contracts': row['contracts'],
            }
            for row in top_clients
        ],
    })
