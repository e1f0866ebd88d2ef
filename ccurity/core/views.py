import csv
import logging

from rest_framework import status, serializers
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated, AllowAny
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer, TokenRefreshSerializer
from rest_framework_simplejwt.exceptions import InvalidToken, TokenError, AuthenticationFailed
from django.contrib.auth import get_user_model
from django.core.exceptions import ObjectDoesNotExist
from django.db.models import Q, Count
from django.http import HttpResponse
from django.shortcuts import get_object_or_404
from django.utils import timezone
from django.utils.dateparse import parse_date

from .cache_signals import invalidate_reports_on_commit, suspend_cache_signals
from .cache_utils import invalidate_reports_cache
from .models import CompanySettings, AuditLog
from .permissions import (
    IsAdminRole, IsSupervisorRole, home_route, allowed_prefixes, get_role,
    check_route_access as resolve_route_access,
)
from .serializers import (
    UserSerializer, UserCreateSerializer, UserInviteSerializer, UserSummarySerializer,
    InlineClientSerializer, CompanySettingsSerializer, AuditLogSerializer,
)
from .utils import create_audit_log, paginate, parse_id_list
from ccurity.finance.models import Contract
from ccurity.finance.serializers import ContractSerializer
from ccurity.quotations.models import Quotation
from ccurity.quotations.serializers import QuotationSerializer
from ccurity.services.models import Service
from ccurity.services.serializers import ServiceSerializer

logger = logging.getLogger(__name__)

User = get_user_model()


class RoleTokenObtainPairSerializer(TokenObtainPairSerializer):
    """Accepts username or email and answers with the role's home route"""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.fields[self.username_field].required = False
        self.fields['email'] = serializers.EmailField(write_only=True, required=False)

    def validate(self, attrs):
        email = attrs.pop('email', None)
        if not attrs.get(self.username_field):
            if not email:
                raise serializers.ValidationError({'username': 'Username or email is required.'})
            match = User.objects.filter(email__iexact=email).first()
            attrs[self.username_field] = match.username if match else email

        data = super().validate(attrs)
        if not self.user.is_active:
            raise AuthenticationFailed('User account is disabled.')
        data['role'] = get_role(self.user)
        data['redirect'] = home_route(self.user)
        data['user'] = UserSerializer(self.user).data
        return data

    @classmethod
    def get_token(cls, user):
        token = super().get_token(user)
        token['username'] = user.username
        token['role'] = get_role(user)
        return token


class RoleTokenObtainPairView(TokenObtainPairView):
    serializer_class = RoleTokenObtainPairSerializer


class ActiveUserTokenRefreshSerializer(TokenRefreshSerializer):
    """Token refresh that rejects tokens whose user was deleted"""
    def validate(self, attrs):
        try:
            return super().validate(attrs)
        except (InvalidToken, TokenError):
            raise InvalidToken('Token is invalid or expired.')
        except (ObjectDoesNotExist, User.DoesNotExist):
            raise InvalidToken('Token is invalid. User no longer exists.')


class ActiveUserTokenRefreshView(TokenRefreshView):
    serializer_class = ActiveUserTokenRefreshSerializer


@api_view(['POST'])
@permission_classes([AllowAny])
def register(request):
    """User registration endpoint"""
    serializer = UserCreateSerializer(data=request.data)
    if serializer.is_valid():
        user = serializer.save()
        token = RoleTokenObtainPairSerializer.get_token(user)
        logger.info(f"Registered user {user.email} with role {user.role}")
        return Response({
            'user': UserSerializer(user).data,
            'access': str(token.access_token),
            'refresh': str(token),
            'redirect': home_route(user),
        }, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PATCH'])
@permission_classes([IsAuthenticated])
def user_me(request):
    """Current profile with its role, home route and reachable areas"""
    user = request.user
    if request.method == 'PATCH':
        data = {k: v for k, v in request.data.items() if k in ('full_name', 'phone', 'company', 'address', 'avatar_url')}
        serializer = UserSerializer(user, data=data, partial=True)
        serializer.is_valid(raise_exception=True)
        serializer.save()

    user_data = UserSerializer(user).data
    user_data['role'] = get_role(user)
    user_data['home'] = home_route(user)
    user_data['allowed_prefixes'] = allowed_prefixes(user)
    return Response(user_data)


@api_view(['GET'])
@permission_classes([AllowAny])
def check_route_access(request):
    """Tell the frontend whether the caller may open ``path``"""
    path = request.query_params.get('path', '/')
    return Response(resolve_route_access(request.user, path))


# User administration
@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def user_list(request):
    """List users with search, role and active filters"""
    queryset = User.objects.all().order_by('-created_at')

    search = request.query_params.get('search', '').strip()
    if search:
        queryset = queryset.filter(
            Q(full_name__icontains=search) |
            Q(email__icontains=search) |
            Q(company__icontains=search) |
            Q(phone__icontains=search)
        )

    role = request.query_params.get('role')
    if role:
        queryset = queryset.filter(role=role)

    is_active = request.query_params.get('is_active')
    if is_active in ('true', 'false'):
        queryset = queryset.filter(is_active=is_active == 'true')

    return Response(paginate(request, queryset, UserSerializer))


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsAdminRole])
def user_detail(request, pk):
    """Retrieve, update or delete a user"""
    user = get_object_or_404(User, pk=pk)

    if request.method == 'GET':
        return Response(UserSerializer(user).data)
    elif request.method == 'PATCH':
        previous_role = user.role
        data = {k: v for k, v in request.data.items() if k in ('full_name', 'phone', 'company', 'role', 'is_active')}
        serializer = UserSerializer(user, data=data, partial=True)
        if serializer.is_valid():
            serializer.save()
            if previous_role != user.role:
                create_audit_log(
                    request=request, action='role_change', model_name='User', object_id=user.id,
                    object_name=user.display_name, changes={'role': {'old': previous_role, 'new': user.role}},
                )
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        if user.pk == request.user.pk:
            return Response({'error': 'No puedes eliminar tu propia cuenta'}, status=status.HTTP_400_BAD_REQUEST)
        create_audit_log(request=request, action='delete', model_name='User', object_id=user.id, object_name=user.display_name)
        user.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def user_toggle_active(request, pk):
    user = get_object_or_404(User, pk=pk)
    if user.pk == request.user.pk:
        return Response({'error': 'No puedes desactivar tu propia cuenta'}, status=status.HTTP_400_BAD_REQUEST)
    user.is_active = not user.is_active
    user.save(update_fields=['is_active', 'updated_at'])
    return Response(UserSerializer(user).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def user_invite(request):
    """Create an account for someone else; they set a password on first access"""
    serializer = UserInviteSerializer(data=request.data)
    if serializer.is_valid():
        user = serializer.save()
        create_audit_log(
            request=request, action='invite', model_name='User', object_id=user.id,
            object_name=user.display_name, changes={'role': user.role},
        )
        return Response(UserSerializer(user).data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def user_bulk_action(request):
    """
    Bulk role change, activation toggle or deletion.

    Body: {"action": "role" | "active" | "delete", "ids": [...], "role": ..., "is_active": ...}
    """
    action = request.data.get('action')
    ids = parse_id_list(request.data.get('ids'))
    if not ids:
        return Response({'error': 'ids is required'}, status=status.HTTP_400_BAD_REQUEST)

    queryset = User.objects.filter(pk__in=ids)

    if action == 'role':
        role = request.data.get('role')
        if role not in dict(User.ROLE_CHOICES):
            return Response({'error': 'Rol inválido'}, status=status.HTTP_400_BAD_REQUEST)
        updated = queryset.update(role=role, updated_at=timezone.now())
    elif action == 'active':
        is_active = bool(request.data.get('is_active'))
        updated = queryset.exclude(pk=request.user.pk).update(is_active=is_active, updated_at=timezone.now())
    elif action == 'delete':
        queryset = queryset.exclude(pk=request.user.pk)
        if not queryset.exists():
            return Response({'error': 'No puedes eliminar tu propia cuenta'}, status=status.HTTP_400_BAD_REQUEST)
        updated = queryset.count()
        # Cascades fire one signal per row; invalidate once instead
        with suspend_cache_signals():
            queryset.delete()
        invalidate_reports_cache()
    else:
        return Response({'error': 'Acción inválida'}, status=status.HTTP_400_BAD_REQUEST)

    if action != 'delete' and updated:
        invalidate_reports_on_commit()
    logger.info(f"Bulk user action '{action}' by {request.user.pk} on {len(ids)} ids")
    return Response({'success': True, 'affected': updated})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def user_stats(request):
    """Total, active and per-role user counts"""
    by_role = {role: 0 for role, _ in User.ROLE_CHOICES}
    for row in User.objects.values('role').annotate(count=Count('id')):
        by_role[row['role']] = row['count']
    return Response({
        'total': User.objects.count(),
        'active': User.objects.filter(is_active=True).count(),
        'by_role': by_role,
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def user_export_csv(request):
    """Export every user as CSV"""
    response = HttpResponse(content_type='text/csv; charset=utf-8')
    response['Content-Disposition'] = 'attachment; filename="usuarios.csv"'
    writer = csv.writer(response, quoting=csv.QUOTE_ALL)
    writer.writerow(['Nombre', 'Email', 'Teléfono', 'Empresa', 'Rol', 'Activo', 'Creado'])
    for user in User.objects.all().order_by('full_name'):
        writer.writerow([
            user.full_name,
            user.email,
            user.phone or '',
            user.company or '',
            user.role,
            'Sí' if user.is_active else 'No',
            user.created_at.date().isoformat(),
        ])
    return response


# Clients
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsSupervisorRole])
def client_list_create(request):
    """Client picker for quotations and services, with inline creation"""
    if request.method == 'GET':
        clients = User.objects.filter(role=User.ROLE_CLIENT).order_by('full_name')
        return Response(UserSummarySerializer(clients, many=True).data)
    serializer = InlineClientSerializer(data=request.data)
    if serializer.is_valid():
        client = serializer.save()
        return Response(UserSummarySerializer(client).data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def client_detail(request, pk):
    """One client's profile with its contracts, services and quotations"""
    client = get_object_or_404(User, pk=pk, role=User.ROLE_CLIENT)
    contracts = Contract.objects.filter(user=client).select_related('contract_type').order_by('-created_at')
    services = (Service.objects.filter(client=client)
                .select_related('client', 'collaborator', 'technician', 'service_type', 'service_state')
                .order_by('-created_at'))
    quotations = Quotation.objects.filter(client=client).select_related('service_type').order_by('-created_at')
    return Response({
        'client': UserSerializer(client).data,
        'contracts': ContractSerializer(contracts, many=True).data,
        'services': ServiceSerializer(services, many=True).data,
        'quotations': QuotationSerializer(quotations, many=True).data,
    })


# Company settings
@api_view(['GET', 'PATCH'])
@permission_classes([IsAuthenticated])
def company_settings(request):
    """Read the company profile; admins may update it"""
    settings_obj = CompanySettings.load()
    if request.method == 'GET':
        return Response(CompanySettingsSerializer(settings_obj).data)

    if not IsAdminRole().has_permission(request, None):
        return Response({'error': 'Permission denied'}, status=status.HTTP_403_FORBIDDEN)
    serializer = CompanySettingsSerializer(settings_obj, data=request.data, partial=True)
    if serializer.is_valid():
        serializer.save()
        return Response(serializer.data)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


# AuditLog views (read-only)
@api_view(['GET'])
@permission_classes([IsAuthenticated])
def audit_log_list(request):
    """List audit logs with filtering"""
    queryset = AuditLog.objects.select_related('user')

    if not IsAdminRole().has_permission(request, None):
        queryset = queryset.filter(user=request.user)

    action_filter = request.query_params.get('action', None)
    if action_filter:
        queryset = queryset.filter(action=action_filter)

    model_filter = request.query_params.get('model', None)
    if model_filter:
        queryset = queryset.filter(model_name=model_filter)

    bounds = {}
    for param in ('date_from', 'date_to'):
        value = request.query_params.get(param)
        if not value:
            continue
        try:
            bounds[param] = parse_date(value)
        except ValueError:
            bounds[param] = None
        if bounds[param] is None:
            return Response({'error': f'{param} debe tener formato AAAA-MM-DD'}, status=status.HTTP_400_BAD_REQUEST)
    if 'date_from' in bounds:
        queryset = queryset.filter(created_at__date__gte=bounds['date_from'])
    if 'date_to' in bounds:
        queryset = queryset.filter(created_at__date__lte=bounds['date_to'])

    queryset = queryset.order_by('-created_at')
    return Response(paginate(request, queryset, AuditLogSerializer))


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def audit_log_detail(request, pk):
    """Retrieve an audit log"""
    audit_log = get_object_or_404(AuditLog, pk=pk)

    if not IsAdminRole().has_permission(request, None) and audit_log.user != request.user:
        return Response({'error': 'Permission denied'}, status=status.HTTP_403_FORBIDDEN)

    return Response(AuditLogSerializer(audit_log).data)
