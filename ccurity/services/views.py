import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.contrib.auth import get_user_model
from django.db import transaction, IntegrityError
from django.db.models import Q, Count
from django.shortcuts import get_object_or_404
from django.utils import timezone

from ccurity.core.permissions import IsSupervisorRole, IsCollaboratorRole, get_role
from ccurity.core.serializers import UserSummarySerializer
from ccurity.core.utils import create_audit_log, paginate
from .models import (
    ServiceType, ServiceState, Service, ServiceItem, ServiceApplication, ServiceTypeConcept,
)
from .serializers import (
    ServiceTypeSerializer, ServiceStateSerializer, ServiceSerializer, ServiceDetailSerializer,
    ServiceItemSerializer, ServiceReportSerializer, ServiceEvidenceSerializer,
    ServiceApplicationSerializer, ServiceTypeConceptSerializer,
)

logger = logging.getLogger(__name__)

User = get_user_model()

SERVICE_RELATIONS = ('client', 'collaborator', 'technician', 'service_type', 'service_state')


def get_state(name):
    return ServiceState.objects.filter(name=name).first()


def is_service_member(user, service):
    """Supervisors see everything; collaborators only services assigned to them"""
    if get_role(user) in (User.ROLE_ADMIN, User.ROLE_SUPER) or user.is_superuser:
        return True
    return user.pk in (service.collaborator_id, service.technician_id)


# Services
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsSupervisorRole])
def service_list_create(request):
    """List services with state/type/client/collaborator filters or create one"""
    if request.method == 'GET':
        queryset = Service.objects.select_related(*SERVICE_RELATIONS)

        state = request.query_params.get('state')
        if state:
            queryset = queryset.filter(service_state_id=state)
        service_type = request.query_params.get('type')
        if service_type:
            queryset = queryset.filter(service_type_id=service_type)
        client = request.query_params.get('client')
        if client:
            queryset = queryset.filter(client_id=client)
        collaborator = request.query_params.get('collaborator')
        if collaborator:
            queryset = queryset.filter(collaborator_id=collaborator)
        search = request.query_params.get('search', '').strip()
        if search:
            queryset = queryset.filter(Q(title__icontains=search) | Q(address__icontains=search))

        return Response(paginate(request, queryset.order_by('-created_at'), ServiceSerializer))

    serializer = ServiceSerializer(data=request.data)
    if serializer.is_valid():
        # New services start in the survey state when it exists
        extra = {}
        if not serializer.validated_data.get('service_state'):
            extra['service_state'] = get_state(ServiceState.SURVEY)
        service = serializer.save(**extra)
        create_audit_log(request=request, action='create', model_name='Service', object_id=service.id,
                         object_name=service.title)
        return Response(ServiceSerializer(service).data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsCollaboratorRole])
def service_detail(request, pk):
    """Full service with items, reports and evidence"""
    service = get_object_or_404(
        Service.objects.select_related(*SERVICE_RELATIONS).prefetch_related('items__concept', 'reports', 'evidence'),
        pk=pk,
    )
    if not is_service_member(request.user, service):
        return Response({'error': 'Permission denied'}, status=status.HTTP_403_FORBIDDEN)

    if request.method == 'GET':
        return Response(ServiceDetailSerializer(service).data)

    if not IsSupervisorRole().has_permission(request, None):
        return Response({'error': 'Permission denied'}, status=status.HTTP_403_FORBIDDEN)

    if request.method == 'PATCH':
        serializer = ServiceSerializer(service, data=request.data, partial=True)
        if serializer.is_valid():
            serializer.save()
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    create_audit_log(request=request, action='delete', model_name='Service', object_id=service.id,
                     object_name=service.title)
    service.delete()
    return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsCollaboratorRole])
def service_update_state(request, pk):
    """Move a service to another state; final states stamp completed_date"""
    service = get_object_or_404(Service, pk=pk)
    if not is_service_member(request.user, service):
        return Response({'error': 'Permission denied'}, status=status.HTTP_403_FORBIDDEN)

    state_id = request.data.get('state')
    if not state_id:
        return Response({'error': 'state is required'}, status=status.HTTP_400_BAD_REQUEST)
    state = get_object_or_404(ServiceState, pk=state_id)

    previous = service.state_name
    service.service_state = state
    service.completed_date = timezone.now() if state.is_final else None
    service.save(update_fields=['service_state', 'completed_date', 'updated_at'])

    create_audit_log(
        request=request, action='status_change', model_name='Service', object_id=service.id,
        object_name=service.title, changes={'state': {'old': previous, 'new': state.name}},
    )
    return Response(ServiceSerializer(service).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsSupervisorRole])
def service_assign(request, pk):
    """Assign collaborator and/or technician; absent keys are left untouched"""
    service = get_object_or_404(Service, pk=pk)
    changes = {}
    for field in ('collaborator', 'technician'):
        if field not in request.data:
            continue
        user_id = request.data.get(field)
        user = get_object_or_404(User, pk=user_id) if user_id else None
        setattr(service, field, user)
        changes[field] = user.pk if user else None

    if not changes:
        return Response({'error': 'collaborator or technician is required'}, status=status.HTTP_400_BAD_REQUEST)

    service.save()
    create_audit_log(request=request, action='assign', model_name='Service', object_id=service.id,
                     object_name=service.title, changes=changes)
    return Response(ServiceSerializer(service).data)


def service_totals():
    """Total and per-state service counts"""
    by_state = {}
    for row in Service.objects.values('service_state__name').annotate(count=Count('id')):
        by_state[row['service_state__name'] or 'Sin estado'] = row['count']
    return {'total': Service.objects.count(), 'by_state': by_state}


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsSupervisorRole])
def service_stats(request):
    return Response(service_totals())


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsCollaboratorRole])
def service_by_state(request):
    """Services whose state has the given name (e.g. ?name=Postulando)"""
    name = request.query_params.get('name', '').strip()
    if not name:
        return Response({'error': 'name is required'}, status=status.HTTP_400_BAD_REQUEST)
    services = Service.objects.select_related(*SERVICE_RELATIONS).filter(service_state__name=name)
    return Response(ServiceSerializer(services, many=True).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsCollaboratorRole])
def service_mine(request):
    """Services assigned to the calling collaborator"""
    services = Service.objects.select_related(*SERVICE_RELATIONS).filter(
        Q(collaborator=request.user) | Q(technician=request.user)
    )
    return Response(ServiceSerializer(services, many=True).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsSupervisorRole])
def collaborator_list(request):
    """Active collaborators available for assignment"""
    collaborators = User.objects.filter(role=User.ROLE_COLAB, is_active=True).order_by('full_name')
    return Response(UserSummarySerializer(collaborators, many=True).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsCollaboratorRole])
def service_add_item(request, pk):
    service = get_object_or_404(Service, pk=pk)
    if not is_service_member(request.user, service):
        return Response({'error': 'Permission denied'}, status=status.HTTP_403_FORBIDDEN)
    serializer = ServiceItemSerializer(data=request.data)
    if serializer.is_valid():
        concept = serializer.validated_data.get('concept')
        if 'price' not in serializer.validated_data and concept:
            serializer.validated_data['price'] = concept.price
        serializer.save(service=service)
        return Response(serializer.data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['DELETE'])
@permission_classes([IsAuthenticated, IsSupervisorRole])
def service_item_delete(request, pk):
    item = get_object_or_404(ServiceItem, pk=pk)
    item.delete()
    return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsCollaboratorRole])
def service_add_report(request, pk):
    service = get_object_or_404(Service, pk=pk)
    if not is_service_member(request.user, service):
        return Response({'error': 'Permission denied'}, status=status.HTTP_403_FORBIDDEN)
    serializer = ServiceReportSerializer(data=request.data)
    if serializer.is_valid():
        serializer.save(service=service, created_by=request.user)
        return Response(serializer.data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsCollaboratorRole])
def service_add_evidence(request, pk):
    service = get_object_or_404(Service, pk=pk)
    if not is_service_member(request.user, service):
        return Response({'error': 'Permission denied'}, status=status.HTTP_403_FORBIDDEN)
    serializer = ServiceEvidenceSerializer(data=request.data)
    if serializer.is_valid():
        serializer.save(service=service, uploaded_by=request.user)
        return Response(serializer.data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsSupervisorRole])
def service_complete_survey(request, pk):
    """
    Close the survey (Levantamiento) of a service.

    The service type's template lines become service items priced from the
    catalog and the service opens for bidding (Postulando).
    """
    service = get_object_or_404(Service.objects.select_related('service_state', 'service_type'), pk=pk)
    if service.state_name != ServiceState.SURVEY:
        return Response({'error': 'El servicio no está en levantamiento'}, status=status.HTTP_400_BAD_REQUEST)

    bidding = get_state(ServiceState.BIDDING)
    if bidding is None:
        return Response({'error': 'No existe el estado Postulando'}, status=status.HTTP_400_BAD_REQUEST)

    with transaction.atomic():
        created = 0
        if service.service_type_id:
            lines = ServiceTypeConcept.objects.filter(service_type_id=service.service_type_id).select_related('concept')
            ServiceItem.objects.bulk_create([
                ServiceItem(service=service, concept=line.concept, quantity=line.default_quantity, price=line.concept.price)
                for line in lines
            ])
            created = len(lines)
        service.service_state = bidding
        service.save(update_fields=['service_state', 'updated_at'])

    logger.info(f"Survey completed for service {service.pk}: {created} template items, now open for bidding")
    create_audit_log(request=request, action='status_change', model_name='Service', object_id=service.id,
                     object_name=service.title,
                     changes={'state': {'old': ServiceState.SURVEY, 'new': ServiceState.BIDDING}})
    return Response({'service': ServiceSerializer(service).data, 'items_created': created})


# Service types
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def service_type_list_create(request):
    if request.method == 'GET':
        types = ServiceType.objects.all()
        if request.query_params.get('active') == 'true':
            types = types.filter(is_active=True)
        return Response(ServiceTypeSerializer(types, many=True).data)

    if not IsSupervisorRole().has_permission(request, None):
        return Response({'error': 'Permission denied'}, status=status.HTTP_403_FORBIDDEN)
    serializer = ServiceTypeSerializer(data=request.data)
    if serializer.is_valid():
        serializer.save()
        return Response(serializer.data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsSupervisorRole])
def service_type_detail(request, pk):
    service_type = get_object_or_404(ServiceType, pk=pk)
    if request.method == 'GET':
        return Response(ServiceTypeSerializer(service_type).data)
    elif request.method == 'PATCH':
        serializer = ServiceTypeSerializer(service_type, data=request.data, partial=True)
        if serializer.is_valid():
            serializer.save()
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    service_type.delete()
    return Response(status=status.HTTP_204_NO_CONTENT)


# Service states
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def service_state_list_create(request):
    if request.method == 'GET':
        return Response(ServiceStateSerializer(ServiceState.objects.all(), many=True).data)

    if not IsSupervisorRole().has_permission(request, None):
        return Response({'error': 'Permission denied'}, status=status.HTTP_403_FORBIDDEN)
    serializer = ServiceStateSerializer(data=request.data)
    if serializer.is_valid():
        serializer.save()
        return Response(serializer.data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['DELETE'])
@permission_classes([IsAuthenticated, IsSupervisorRole])
def service_state_delete(request, pk):
    state = get_object_or_404(ServiceState, pk=pk)
    state.delete()
    return Response(status=status.HTTP_204_NO_CONTENT)


# Survey templates
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsSupervisorRole])
def template_concept_list_create(request, type_pk):
    """Template lines of a service type; POST adds a concept (quantity 1 by default)"""
    service_type = get_object_or_404(ServiceType, pk=type_pk)
    if request.method == 'GET':
        lines = service_type.template_concepts.select_related('concept')
        return Response(ServiceTypeConceptSerializer(lines, many=True).data)

    serializer = ServiceTypeConceptSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    concept = serializer.validated_data['concept']
    if service_type.template_concepts.filter(concept=concept).exists():
        return Response({'error': 'El concepto ya está en la plantilla'}, status=status.HTTP_400_BAD_REQUEST)
    serializer.save(service_type=service_type)
    return Response(serializer.data, status=status.HTTP_201_CREATED)


@api_view(['PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsSupervisorRole])
def template_concept_detail(request, pk):
    line = get_object_or_404(ServiceTypeConcept, pk=pk)
    if request.method == 'PATCH':
        serializer = ServiceTypeConceptSerializer(
            line, data={'default_quantity': request.data.get('default_quantity')}, partial=True
        )
        if serializer.is_valid():
            serializer.save()
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    line.delete()
    return Response(status=status.HTTP_204_NO_CONTENT)


# Applications
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsCollaboratorRole])
def service_applications(request, pk):
    """Supervisors list a service's applications; collaborators apply with POST"""
    service = get_object_or_404(Service.objects.select_related('service_state'), pk=pk)

    if request.method == 'GET':
        if not IsSupervisorRole().has_permission(request, None):
            return Response({'error': 'Permission denied'}, status=status.HTTP_403_FORBIDDEN)
        applications = service.applications.select_related('collaborator', 'service')
        return Response(ServiceApplicationSerializer(applications, many=True).data)

    if service.state_name != ServiceState.BIDDING:
        return Response({'error': 'El servicio no está abierto a postulaciones'}, status=status.HTTP_400_BAD_REQUEST)
    if ServiceApplication.objects.filter(service=service, collaborator=request.user).exists():
        return Response({'error': 'Ya te postulaste a este servicio'}, status=status.HTTP_400_BAD_REQUEST)

    try:
        application = ServiceApplication.objects.create(
            service=service,
            collaborator=request.user,
            message=(request.data.get('message') or '').strip() or None,
        )
    except IntegrityError:
        return Response({'error': 'Ya te postulaste a este servicio'}, status=status.HTTP_400_BAD_REQUEST)
    return Response(ServiceApplicationSerializer(application).data, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsSupervisorRole])
def service_pending_applications_count(request, pk):
    service = get_object_or_404(Service, pk=pk)
    count = service.applications.filter(status=ServiceApplication.STATUS_PENDING).count()
    return Response({'service': service.pk, 'pending': count})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsSupervisorRole])
def application_list(request):
    """All applications, optionally filtered by status"""
    applications = ServiceApplication.objects.select_related('collaborator', 'service')
    status_filter = request.query_params.get('status')
    if status_filter:
        applications = applications.filter(status=status_filter)
    return Response(ServiceApplicationSerializer(applications, many=True).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsCollaboratorRole])
def application_mine(request):
    applications = ServiceApplication.objects.filter(collaborator=request.user).select_related('service', 'collaborator')
    return Response(ServiceApplicationSerializer(applications, many=True).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsSupervisorRole])
def application_accept(request, pk):
    """
    Accept one application: the applicant becomes the service collaborator,
    the service moves to Asignado and every rival pending application is
    rejected, all in one transaction.
    """
    with transaction.atomic():
        application = get_object_or_404(
            ServiceApplication.objects.select_for_update().select_related('service', 'collaborator'), pk=pk
        )
        if application.status != ServiceApplication.STATUS_PENDING:
            return Response({'error': 'La postulación ya fue procesada'}, status=status.HTTP_400_BAD_REQUEST)

        service = application.service
        service.collaborator = application.collaborator
        assigned = get_state(ServiceState.ASSIGNED)
        if assigned:
            service.service_state = assigned
        service.save()

        application.status = ServiceApplication.STATUS_ACCEPTED
        application.save(update_fields=['status', 'updated_at'])

        rejected = ServiceApplication.objects.filter(
            service=service, status=ServiceApplication.STATUS_PENDING
        ).exclude(pk=application.pk).update(status=ServiceApplication.STATUS_REJECTED, updated_at=timezone.now())

    logger.info(f"Application {application.pk} accepted for service {service.pk}; {rejected} rivals rejected")
    create_audit_log(request=request, action='assign', model_name='Service', object_id=service.id,
                     object_name=service.title,
                     changes={'collaborator': application.collaborator_id, 'rejected': rejected})
    return Response({
        'application': ServiceApplicationSerializer(application).data,
        'rejected': rejected,
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsSupervisorRole])
def application_reject(request, pk):
    application = get_object_or_404(ServiceApplication.objects.select_related('service', 'collaborator'), pk=pk)
    application.status = ServiceApplication.STATUS_REJECTED
    application.save(update_fields=['status', 'updated_at'])
    return Response(ServiceApplicationSerializer(application).data)
