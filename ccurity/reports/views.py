import logging
from collections import OrderedDict
from datetime import date, timedelta
from decimal import Decimal

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.contrib.auth import get_user_model
from django.db.models import Count, Sum, Q
from django.db.models.functions import TruncMonth
from django.utils import timezone

from ccurity.catalog.models import CollaboratorPrice
from ccurity.chat.models import Message
from ccurity.chat.views import chat_totals
from ccurity.core.cache_utils import cached_query, DASHBOARD_CACHE_TTL, REPORTS_CACHE_TTL, REPORTS_PREFIX
from ccurity.core.permissions import IsAdminRole, IsSupervisorRole, IsCollaboratorRole
from ccurity.finance.models import Contract, Invoice, Payment
from ccurity.finance.serializers import ContractSerializer, InvoiceSerializer, PaymentSerializer
from ccurity.finance.views import finance_totals
from ccurity.quotations.models import Quotation
from ccurity.quotations.views import quotation_totals
from ccurity.services.models import Service, ServiceState, ServiceApplication
from ccurity.services.serializers import ServiceSerializer, ServiceApplicationSerializer
from ccurity.services.views import service_totals, SERVICE_RELATIONS

logger = logging.getLogger(__name__)

User = get_user_model()

LIST_LIMIT = 10
RECENT_LIMIT = 5


def count_by(queryset, field, default='Sin asignar'):
    """{value: count} for ``field``, largest first"""
    rows = queryset.values(field).annotate(count=Count('id')).order_by('-count')
    return OrderedDict((row[field] or default, row['count']) for row in rows)


def users_by_role():
    return {row['role']: row['count'] for row in User.objects.values('role').annotate(count=Count('id'))}


def pending_applications():
    return ServiceApplication.objects.filter(status=ServiceApplication.STATUS_PENDING)


# Admin dashboard
@cached_query(cache_ttl=DASHBOARD_CACHE_TTL, key_prefix=f"{REPORTS_PREFIX}_admin_dashboard")
def build_admin_dashboard():
    return {
        'users': users_by_role(),
        'services': service_totals(),
        'quotations': quotation_totals(),
        'finance': finance_totals(),
        'chat': chat_totals(),
        'pendingApplications': pending_applications().count(),
    }


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def admin_dashboard(request):
    return Response(build_admin_dashboard())


# Reports
@cached_query(cache_ttl=REPORTS_CACHE_TTL, key_prefix=f"{REPORTS_PREFIX}_overview")
def build_reports():
    services = Service.objects.all()
    per_month = OrderedDict(
        (row['month'].strftime('%Y-%m'), row['count'])
        for row in services.annotate(month=TruncMonth('created_at'))
        .values('month').annotate(count=Count('id')).order_by('month')
        if row['month']
    )
    payments = Payment.objects.all()
    accepted = Quotation.objects.filter(status=Quotation.STATUS_ACCEPTED)
    today = timezone.localdate()

    return {
        'usersByRole': users_by_role(),
        'servicesByType': count_by(services, 'service_type__name'),
        'servicesByState': count_by(services, 'service_state__name'),
        'servicesPerMonth': per_month,
        'contracts': {
            'total': Contract.objects.count(),
            'active': Contract.objects.filter(status=Contract.STATUS_ACTIVE).count(),
        },
        'payments': {
            'total': payments.aggregate(total=Sum('amount'))['total'] or Decimal('0'),
            'byMethod': count_by(payments, 'method'),
        },
        'invoices': {
            'total': Invoice.objects.count(),
            'overdue': Invoice.objects.exclude(status=Invoice.STATUS_PAID).filter(due_date__lt=today).count(),
        },
        'clients': User.objects.filter(role=User.ROLE_CLIENT).count(),
        'quotations': {
            'total': Quotation.objects.count(),
            'totalValue': accepted.aggregate(total=Sum('total'))['total'] or Decimal('0'),
            'accepted': accepted.count(),
        },
        'messages': Message.objects.count(),
    }


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def reports_overview(request):
    return Response(build_reports())


# Notifications
@cached_query(cache_ttl=DASHBOARD_CACHE_TTL, key_prefix=f"{REPORTS_PREFIX}_notifications")
def build_notifications():
    """
    Upcoming services (7 days), contracts ending within 30 days, overdue
    invoices and pending applications.

    Alerts count overdue invoices and expiring contracts; reminders count
    upcoming services and pending applications.
    """
    now = timezone.now()
    today = timezone.localdate()

    upcoming = (Service.objects.select_related(*SERVICE_RELATIONS)
                .filter(scheduled_date__gte=now, scheduled_date__lte=now + timedelta(days=7))
                .order_by('scheduled_date')[:LIST_LIMIT])
    expiring = (Contract.objects.select_related('user', 'contract_type')
                .filter(status=Contract.STATUS_ACTIVE, end_date__gte=today, end_date__lte=today + timedelta(days=30))
                .order_by('end_date')[:LIST_LIMIT])
    overdue = (Invoice.objects.select_related('user', 'service')
               .exclude(status=Invoice.STATUS_PAID).filter(due_date__lt=today)
               .order_by('due_date')[:LIST_LIMIT])
    applications = pending_applications().select_related('service', 'collaborator').order_by('-created_at')[:LIST_LIMIT]

    data = {
        'upcomingServices': ServiceSerializer(upcoming, many=True).data,
        'expiringContracts': ContractSerializer(expiring, many=True).data,
        'overdueInvoices': InvoiceSerializer(overdue, many=True).data,
        'pendingApplications': ServiceApplicationSerializer(applications, many=True).data,
    }
    data['totalAlerts'] = len(data['overdueInvoices']) + len(data['expiringContracts'])
    data['totalReminders'] = len(data['upcomingServices']) + len(data['pendingApplications'])
    return data


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def notifications(request):
    return Response(build_notifications())


# Calendar
def month_bounds(year, month):
    start = date(year, month, 1)
    end = date(year + 1, 1, 1) if month == 12 else date(year, month + 1, 1)
    return start, end


@cached_query(cache_ttl=DASHBOARD_CACHE_TTL, key_prefix=f"{REPORTS_PREFIX}_calendar")
def build_calendar(year, month):
    start, end = month_bounds(year, month)
    services = (Service.objects.select_related(*SERVICE_RELATIONS)
                .filter(scheduled_date__date__gte=start, scheduled_date__date__lt=end)
                .order_by('scheduled_date'))

    by_day = OrderedDict()
    for service in services:
        day = timezone.localtime(service.scheduled_date).date().isoformat()
        by_day.setdefault(day, []).append(ServiceSerializer(service).data)

    contracts = (Contract.objects.select_related('user', 'contract_type')
                 .filter(status=Contract.STATUS_ACTIVE, end_date__gte=start, end_date__lt=end)
                 .order_by('end_date'))

    now = timezone.now()
    upcoming = (Service.objects.select_related(*SERVICE_RELATIONS)
                .filter(scheduled_date__gte=now, scheduled_date__lte=now + timedelta(days=7))
                .order_by('scheduled_date'))

    return {
        'year': year,
        'month': month,
        'servicesByDay': by_day,
        'contractsEnding': ContractSerializer(contracts, many=True).data,
        'upcoming': ServiceSerializer(upcoming, many=True).data,
    }


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsSupervisorRole])
def calendar(request):
    """Month view; ``year`` and ``month`` default to the current month"""
    today = timezone.localdate()
    try:
        year = int(request.query_params.get('year', today.year))
        month = int(request.query_params.get('month', today.month))
    except (TypeError, ValueError):
        return Response({'error': 'year y month deben ser numéricos'}, status=status.HTTP_400_BAD_REQUEST)
    if not 1 <= month <= 12 or not 1900 <= year <= 9999:
        return Response({'error': 'Mes o año fuera de rango'}, status=status.HTTP_400_BAD_REQUEST)
    return Response(build_calendar(year, month))


# Activity timeline
@cached_query(cache_ttl=DASHBOARD_CACHE_TTL, key_prefix=f"{REPORTS_PREFIX}_activity")
def build_activity():
    entries = []
    for user in User.objects.order_by('-created_at')[:LIST_LIMIT]:
        entries.append({'type': 'user', 'id': user.pk, 'title': user.display_name,
                        'detail': user.role, 'created_at': user.created_at})
    for service in Service.objects.select_related('service_state').order_by('-created_at')[:LIST_LIMIT]:
        entries.append({'type': 'service', 'id': service.pk, 'title': service.title,
                        'detail': service.state_name, 'created_at': service.created_at})
    for contract in Contract.objects.order_by('-created_at')[:LIST_LIMIT]:
        entries.append({'type': 'contract', 'id': contract.pk, 'title': contract.title,
                        'detail': contract.status, 'created_at': contract.created_at})
    for message in Message.objects.select_related('sender').order_by('-created_at')[:LIST_LIMIT]:
        entries.append({'type': 'message', 'id': message.pk, 'title': message.content[:80],
                        'detail': message.sender.display_name if message.sender else None,
                        'created_at': message.created_at})

    entries.sort(key=lambda entry: entry['created_at'], reverse=True)
    return entries


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def activity(request):
    return Response(build_activity())


# Role dashboards
@cached_query(cache_ttl=DASHBOARD_CACHE_TTL, key_prefix=f"{REPORTS_PREFIX}_supervisor")
def build_supervisor_dashboard(user_id):
    services = Service.objects.select_related(*SERVICE_RELATIONS)
    bidding = services.filter(service_state__name=ServiceState.BIDDING)
    assigned = services.filter(service_state__name=ServiceState.ASSIGNED)
    user = User.objects.get(pk=user_id)
    chat = chat_totals(user)
    return {
        'biddingServices': bidding.count(),
        'assignedServices': assigned.count(),
        'collaborators': User.objects.filter(role=User.ROLE_COLAB, is_active=True).count(),
        'conversations': chat['totalConversations'],
        'unreadMessages': chat['unreadMessages'],
        'activeContracts': Contract.objects.filter(status=Contract.STATUS_ACTIVE).count(),
        'recentBidding': ServiceSerializer(bidding.order_by('-created_at')[:RECENT_LIMIT], many=True).data,
        'recentAssigned': ServiceSerializer(assigned.order_by('-updated_at')[:RECENT_LIMIT], many=True).data,
    }


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsSupervisorRole])
def supervisor_dashboard(request):
    return Response(build_supervisor_dashboard(request.user.pk))


@cached_query(cache_ttl=DASHBOARD_CACHE_TTL, key_prefix=f"{REPORTS_PREFIX}_collaborator")
def build_collaborator_dashboard(user_id):
    services = Service.objects.select_related(*SERVICE_RELATIONS)
    mine = services.filter(Q(collaborator_id=user_id) | Q(technician_id=user_id))
    open_services = services.filter(service_state__name=ServiceState.BIDDING)
    applications = ServiceApplication.objects.select_related('service', 'collaborator').filter(collaborator_id=user_id)
    return {
        'assignedServices': mine.count(),
        'openServices': open_services.count(),
        'applications': applications.count(),
        'pendingApplications': applications.filter(status=ServiceApplication.STATUS_PENDING).count(),
        'prices': CollaboratorPrice.objects.filter(collaborator_id=user_id).count(),
        'recentAssigned': ServiceSerializer(mine.order_by('-updated_at')[:RECENT_LIMIT], many=True).data,
        'recentOpen': ServiceSerializer(open_services.order_by('-created_at')[:RECENT_LIMIT], many=True).data,
        'recentApplications': ServiceApplicationSerializer(
            applications.order_by('-created_at')[:RECENT_LIMIT], many=True
        ).data,
    }


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsCollaboratorRole])
def collaborator_dashboard(request):
    return Response(build_collaborator_dashboard(request.user.pk))


@cached_query(cache_ttl=DASHBOARD_CACHE_TTL, key_prefix=f"{REPORTS_PREFIX}_client")
def build_client_portal(user_id):
    services = Service.objects.select_related(*SERVICE_RELATIONS).filter(client_id=user_id)
    contracts = Contract.objects.select_related('user', 'contract_type').filter(user_id=user_id)
    invoices = Invoice.objects.select_related('user', 'service').filter(user_id=user_id)
    payments = Payment.objects.select_related('invoice').filter(invoice__user_id=user_id)
    return {
        'services': services.count(),
        'contracts': contracts.count(),
        'activeContracts': contracts.filter(status=Contract.STATUS_ACTIVE).count(),
        'invoices': invoices.count(),
        'pendingInvoices': invoices.exclude(status=Invoice.STATUS_PAID).count(),
        'totalPaid': payments.aggregate(total=Sum('amount'))['total'] or Decimal('0'),
        'recentServices': ServiceSerializer(services.order_by('-created_at')[:RECENT_LIMIT], many=True).data,
        'recentContracts': ContractSerializer(contracts.order_by('-created_at')[:RECENT_LIMIT], many=True).data,
        'recentInvoices': InvoiceSerializer(invoices.order_by('-created_at')[:RECENT_LIMIT], many=True).data,
        'recentPayments': PaymentSerializer(payments.order_by('-paid_at')[:RECENT_LIMIT], many=True).data,
    }


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def client_portal(request):
    """Summary of the caller's own services, contracts, invoices and payments"""
    return Response(build_client_portal(request.user.pk))
