import csv
import io
import logging
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.db import transaction
from django.db.models import Avg, Count
from django.http import HttpResponse
from django.shortcuts import get_object_or_404

from ccurity.core.permissions import IsAdminRole, IsCollaboratorRole
from ccurity.core.utils import create_audit_log, paginate, parse_id_list
from .filters import ConceptFilter, apply_sort
from .models import Concept, ConceptCategory, ConceptPriceHistory, CollaboratorPrice
from .serializers import (
    ConceptSerializer, ConceptPickerSerializer, ConceptPriceHistorySerializer,
    CollaboratorPriceSerializer,
)

logger = logging.getLogger(__name__)

CONCEPT_PAGE_SIZE = 25
PRICE_HISTORY_LIMIT = 20

CSV_HEADERS = [
    'Código SAT', 'Título', 'Categoría', 'Marca', 'Modelo', 'Precio',
    'Formato', 'Garantía (meses)', 'Tiempo Ejecución', 'Descripción', 'Activo',
]


def record_price_change(concept, old_price, new_price, user=None):
    """Append a history row when the price actually moved"""
    if old_price is None or Decimal(old_price) == Decimal(new_price):
        return None
    changed_by = user if user is not None and user.is_authenticated else None
    return ConceptPriceHistory.objects.create(
        concept=concept, old_price=old_price, new_price=new_price, changed_by=changed_by
    )


def concept_queryset():
    return Concept.objects.annotate(quotation_count=Count('quotation_items'))


# Concepts
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def concept_list_create(request):
    """Filtered, sorted and paginated catalog; POST creates a concept"""
    if request.method == 'GET':
        concept_filter = ConceptFilter(request.query_params, queryset=concept_queryset())
        queryset = apply_sort(
            concept_filter.qs,
            request.query_params.get('sort_by', 'title'),
            request.query_params.get('sort_dir', 'asc'),
        )
        return Response(paginate(request, queryset, ConceptSerializer, default_limit=CONCEPT_PAGE_SIZE))

    serializer = ConceptSerializer(data=request.data)
    if serializer.is_valid():
        concept = serializer.save()
        if concept.category:
            ConceptCategory.objects.get_or_create(name=concept.category)
        create_audit_log(request=request, action='create', model_name='Concept', object_id=concept.id,
                         object_name=concept.title)
        return Response(ConceptSerializer(concept).data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def concept_active_list(request):
    """Active concepts for the quotation builder and survey templates"""
    concepts = Concept.objects.filter(is_active=True).order_by('category', 'title')
    return Response(ConceptPickerSerializer(concepts, many=True).data)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsAdminRole])
def concept_detail(request, pk):
    """Retrieve, update or delete a concept"""
    concept = get_object_or_404(concept_queryset(), pk=pk)

    if request.method == 'GET':
        return Response(ConceptSerializer(concept).data)
    elif request.method in ('PUT', 'PATCH'):
        old_price = concept.price
        serializer = ConceptSerializer(concept, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            with transaction.atomic():
                concept = serializer.save()
                history = record_price_change(concept, old_price, concept.price, request.user)
            if history:
                create_audit_log(
                    request=request, action='price_change', model_name='Concept', object_id=concept.id,
                    object_name=concept.title,
                    changes={'price': {'old': str(old_price), 'new': str(concept.price)}},
                )
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        create_audit_log(request=request, action='delete', model_name='Concept', object_id=concept.id,
                         object_name=concept.title)
        concept.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def concept_toggle(request, pk):
    concept = get_object_or_404(Concept, pk=pk)
    concept.is_active = not concept.is_active
    concept.save(update_fields=['is_active', 'updated_at'])
    return Response(ConceptSerializer(concept).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def concept_duplicate(request, pk):
    """Copy a concept as '<title> (copia)'"""
    source = get_object_or_404(Concept, pk=pk)
    copy = Concept.objects.create(
        title=f"{source.title} (copia)",
        description=source.description,
        format=source.format,
        category=source.category,
        price=source.price,
        sat_code=f"{source.sat_code}-COPY" if source.sat_code else None,
        brand=source.brand,
        model=source.model,
        warranty_months=source.warranty_months,
        execution_time=source.execution_time,
        image_url=source.image_url,
        spec_sheet_url=source.spec_sheet_url,
        is_active=source.is_active,
    )
    return Response(ConceptSerializer(copy).data, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def concept_stats(request):
    """Catalog summary cards"""
    concepts = Concept.objects.all()
    avg_price = concepts.aggregate(avg=Avg('price'))['avg'] or Decimal('0')
    return Response({
        'total': concepts.count(),
        'active': concepts.filter(is_active=True).count(),
        'categories': concepts.exclude(category__isnull=True).exclude(category='')
                              .values('category').distinct().count(),
        'formats': concepts.values('format').distinct().count(),
        'avg_price': Decimal(avg_price).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP),
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def concept_price_history(request, pk):
    """Last price changes of a concept, newest first"""
    concept = get_object_or_404(Concept, pk=pk)
    history = concept.price_history.select_related('changed_by')[:PRICE_HISTORY_LIMIT]
    return Response(ConceptPriceHistorySerializer(history, many=True).data)


# Categories
def all_category_names():
    names = set(ConceptCategory.objects.values_list('name', flat=True))
    names.update(
        Concept.objects.exclude(category__isnull=True).exclude(category='')
                       .values_list('category', flat=True)
    )
    return sorted(names)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def category_list_create(request):
    """Known category names; POST adds one (idempotent)"""
    if request.method == 'GET':
        return Response(all_category_names())

    name = (request.data.get('name') or '').strip()
    if not name:
        return Response({'error': 'El nombre es obligatorio'}, status=status.HTTP_400_BAD_REQUEST)
    ConceptCategory.objects.get_or_create(name=name)
    return Response(all_category_names(), status=status.HTTP_201_CREATED)


@api_view(['PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsAdminRole])
def category_detail(request, name):
    """Rename a category (PATCH {"name": ...}) or remove it from every concept"""
    if request.method == 'PATCH':
        new_name = (request.data.get('name') or '').strip()
        if not new_name:
            return Response({'error': 'El nombre es obligatorio'}, status=status.HTTP_400_BAD_REQUEST)
        with transaction.atomic():
            Concept.objects.filter(category=name).update(category=new_name)
            ConceptCategory.objects.filter(name=name).delete()
            ConceptCategory.objects.get_or_create(name=new_name)
        return Response(all_category_names())

    with transaction.atomic():
        cleared = Concept.objects.filter(category=name).update(category=None)
        ConceptCategory.objects.filter(name=name).delete()
    logger.info(f"Category '{name}' deleted, {cleared} concepts left uncategorised")
    return Response(status=status.HTTP_204_NO_CONTENT)


# Bulk actions
@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def concept_bulk_action(request):
    """
    Apply one action to many concepts.

    Body: {"action": "category" | "active" | "adjust_price" | "delete", "ids": [...],
           "category": ..., "is_active": ..., "percent": ...}
    """
    action = request.data.get('action')
    ids = parse_id_list(request.data.get('ids'))
    if not ids:
        return Response({'error': 'ids is required'}, status=status.HTTP_400_BAD_REQUEST)

    queryset = Concept.objects.filter(pk__in=ids)

    if action == 'category':
        category = (request.data.get('category') or '').strip() or None
        affected = queryset.update(category=category)
        if category:
            ConceptCategory.objects.get_or_create(name=category)
    elif action == 'active':
        affected = queryset.update(is_active=bool(request.data.get('is_active')))
    elif action == 'delete':
        affected = queryset.count()
        queryset.delete()
    elif action == 'adjust_price':
        try:
            percent = Decimal(str(request.data.get('percent')))
        except (InvalidOperation, TypeError, ValueError):
            return Response({'error': 'Porcentaje inválido'}, status=status.HTTP_400_BAD_REQUEST)
        if not percent.is_finite():
            return Response({'error': 'Porcentaje inválido'}, status=status.HTTP_400_BAD_REQUEST)

        factor = Decimal('1') + percent / Decimal('100')
        affected = 0
        with transaction.atomic():
            for concept in queryset.select_for_update():
                old_price = concept.price
                new_price = max((old_price * factor).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP), Decimal('0.00'))
                concept.price = new_price
                concept.save(update_fields=['price', 'updated_at'])
                record_price_change(concept, old_price, new_price, request.user)
                affected += 1
    else:
        return Response({'error': 'Acción inválida'}, status=status.HTTP_400_BAD_REQUEST)

    logger.info(f"Concept bulk action '{action}' affected {affected} rows")
    return Response({'success': True, 'affected': affected})


# CSV
@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def concept_export_csv(request):
    """Download the whole catalog as CSV"""
    response = HttpResponse(content_type='text/csv; charset=utf-8')
    response['Content-Disposition'] = 'attachment; filename="catalogo_cpu.csv"'
    writer = csv.writer(response, quoting=csv.QUOTE_ALL)
    writer.writerow(CSV_HEADERS)
    for c in Concept.objects.all().order_by('category', 'title'):
        writer.writerow([
            c.sat_code or '', c.title, c.category or '', c.brand or '', c.model or '',
            c.price, c.format or '', c.warranty_months or '', c.execution_time or '',
            c.description or '', 'Sí' if c.is_active else 'No',
        ])
    return response


def parse_concepts_csv(content):
    """Turn exported CSV text back into Concept field dicts (header row skipped)"""
    valid_formats = {code for code, _ in Concept.FORMAT_CHOICES}
    rows = list(csv.reader(io.StringIO(content.strip())))
    parsed = []
    for cols in rows[1:]:
        if not any(cell.strip() for cell in cols):
            continue
        cols = [cell.strip() for cell in cols] + [''] * (len(CSV_HEADERS) - len(cols))
        try:
            price = Decimal(cols[5]) if cols[5] else Decimal('0')
            if not price.is_finite() or price < 0:
                price = Decimal('0')
        except InvalidOperation:
            price = Decimal('0')
        try:
            warranty = int(cols[7]) or None
        except ValueError:
            warranty = None
        parsed.append({
            'sat_code': cols[0] or None,
            'title': cols[1] or 'Sin título',
            'category': cols[2] or None,
            'brand': cols[3] or None,
            'model': cols[4] or None,
            'price': price,
            'format': cols[6] if cols[6] in valid_formats else 'pza',
            'warranty_months': warranty if warranty and warranty > 0 else None,
            'execution_time': cols[8] or None,
            'description': cols[9] or None,
            'is_active': cols[10] != 'No',
        })
    return parsed


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def concept_import_csv(request):
    """Create concepts from an uploaded CSV file or a raw ``csv_content`` string"""
    upload = request.FILES.get('file')
    if upload:
        content = upload.read().decode('utf-8-sig')
    else:
        content = request.data.get('csv_content') or ''
    if not content.strip():
        return Response({'error': 'CSV vacío'}, status=status.HTTP_400_BAD_REQUEST)

    rows = parse_concepts_csv(content)
    with transaction.atomic():
        Concept.objects.bulk_create([Concept(**row) for row in rows])
        for name in {row['category'] for row in rows if row['category']}:
            ConceptCategory.objects.get_or_create(name=name)

    logger.info(f"Imported {len(rows)} concepts from CSV")
    return Response({'created': len(rows)}, status=status.HTTP_201_CREATED)


# Collaborator prices
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsCollaboratorRole])
def collaborator_price_list_upsert(request):
    """The caller's own concept prices; POST creates or replaces one"""
    if request.method == 'GET':
        prices = CollaboratorPrice.objects.filter(collaborator=request.user).select_related('concept')
        return Response(CollaboratorPriceSerializer(prices, many=True).data)

    serializer = CollaboratorPriceSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    price, created = CollaboratorPrice.objects.update_or_create(
        collaborator=request.user,
        concept=serializer.validated_data['concept'],
        defaults={'custom_price': serializer.validated_data['custom_price']},
    )
    return Response(
        CollaboratorPriceSerializer(price).data,
        status=status.HTTP_201_CREATED if created else status.HTTP_200_OK,
    )


@api_view(['DELETE'])
@permission_classes([IsAuthenticated, IsCollaboratorRole])
def collaborator_price_delete(request, pk):
    price = get_object_or_404(CollaboratorPrice, pk=pk, collaborator=request.user)
    price.delete()
    return Response(status=status.HTTP_204_NO_CONTENT)
