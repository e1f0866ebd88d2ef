import json
import logging
import uuid
from datetime import timedelta
from decimal import Decimal, ROUND_HALF_UP

import requests
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes, authentication_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated, AllowAny
from django.conf import settings
from django.contrib.auth import get_user_model
from django.db import transaction
from django.db.models import Max, Q, Sum
from django.shortcuts import get_object_or_404
from django.utils import timezone

from ccurity.catalog.models import Concept
from ccurity.core.models import CompanySettings
from ccurity.core.permissions import IsAdminRole
from ccurity.core.utils import create_audit_log, paginate
from ccurity.services.models import ServiceType
from . import stripe_service
from .models import Quotation, QuotationTab, QuotationTabLink, QuotationItem, QuotationTemplate
from .serializers import (
    QuotationSerializer, QuotationDetailSerializer, PublicQuotationSerializer,
    QuotationCreateSerializer, QuotationTemplateSerializer,
)

logger = logging.getLogger(__name__)

User = get_user_model()

IVA_RATE = Decimal('0.16')
CENT = Decimal('0.01')

DETAIL_PREFETCH = ('items__concept', 'tabs', 'tab_links')


def compute_totals(subtotal):
    """Subtotal, 16% IVA and total, rounded to cents"""
    subtotal = Decimal(subtotal).quantize(CENT, rounding=ROUND_HALF_UP)
    tax = (subtotal * IVA_RATE).quantize(CENT, rounding=ROUND_HALF_UP)
    return subtotal, tax, subtotal + tax


def build_item(quotation, data, tab=None):
    quantity = data.get('quantity') or Decimal('1')
    unit_price = data.get('unit_price') or Decimal('0')
    return QuotationItem(
        quotation=quotation,
        concept_id=data.get('concept'),
        tab=tab,
        section=data.get('section') or (tab.section if tab else None),
        quantity=quantity,
        unit_price=unit_price,
        total=quantity * unit_price,
        notes=data.get('notes') or None,
        is_custom=data.get('is_custom', False),
        custom_title=data.get('custom_title') or None,
        custom_description=data.get('custom_description') or None,
        custom_format=data.get('custom_format') or None,
        custom_price=data.get('custom_price'),
    )


def copy_structure(source, target):
    """Copy tabs, items and tab links of ``source`` into ``target``, remapping tab ids"""
    tab_map = {}
    for tab in source.tabs.all():
        tab_map[tab.pk] = QuotationTab.objects.create(
            quotation=target, section=tab.section, label=tab.label, position=tab.position
        )

    items = []
    for item in source.items.all():
        copy = build_item(target, {
            'concept': item.concept_id,
            'section': item.section,
            'quantity': item.quantity,
            'unit_price': item.unit_price,
            'notes': item.notes,
            'is_custom': item.is_custom,
            'custom_title': item.custom_title,
            'custom_description': item.custom_description,
            'custom_format': item.custom_format,
            'custom_price': item.custom_price,
        }, tab=tab_map.get(item.tab_id))
        items.append(copy)
    QuotationItem.objects.bulk_create(items)

    links = [
        QuotationTabLink(quotation=target, source_tab=tab_map[link.source_tab_id], target_tab=tab_map[link.target_tab_id])
        for link in source.tab_links.all()
        if link.source_tab_id in tab_map and link.target_tab_id in tab_map
    ]
    QuotationTabLink.objects.bulk_create(links)
    return len(tab_map), len(items), len(links)


# Quotations
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def quotation_list_create(request):
    """
    GET lists quotations with client and service type.

    POST creates a DRAFT quotation from the builder payload: tabs carry a
    temporary id, items point at a tab's temporary id and links join two
    temporary ids. Links whose ends do not both resolve are dropped.
    """
    if request.method == 'GET':
        queryset = Quotation.objects.select_related('client', 'service_type')
        status_filter = request.query_params.get('status')
        if status_filter:
            queryset = queryset.filter(status=status_filter)
        search = request.query_params.get('search', '').strip()
        if search:
            queryset = queryset.filter(
                Q(title__icontains=search) | Q(folio__icontains=search) | Q(client__full_name__icontains=search)
            )
        return Response(paginate(request, queryset.order_by('-created_at'), QuotationSerializer))

    serializer = QuotationCreateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data

    client = get_object_or_404(User, pk=data['client']) if data.get('client') else None
    service_type = get_object_or_404(ServiceType, pk=data['service_type']) if data.get('service_type') else None
    template = get_object_or_404(QuotationTemplate, pk=data['template']) if data.get('template') else None

    concept_ids = {item['concept'] for item in data['items'] if item.get('concept')}
    known = set(Concept.objects.filter(pk__in=concept_ids).values_list('pk', flat=True))
    if concept_ids - known:
        return Response({'error': f'Conceptos inexistentes: {sorted(concept_ids - known)}'},
                        status=status.HTTP_400_BAD_REQUEST)

    subtotal, tax, total = compute_totals(sum(
        (item['quantity'] * item['unit_price'] for item in data['items']), Decimal('0')
    ))

    with transaction.atomic():
        quotation = Quotation.objects.create(
            client=client,
            title=data['title'].strip(),
            notes=data.get('notes') or None,
            status=Quotation.STATUS_DRAFT,
            valid_until=timezone.now() + timedelta(days=data['valid_days']),
            subtotal=subtotal,
            tax=tax,
            total=total,
            service_type=service_type,
            template=template,
            payment_type=data['payment_type'],
            terms_content=data.get('terms_content') or None,
            privacy_notice=data.get('privacy_notice') or None,
        )
        quotation.folio = f"COT-{str(quotation.pk)[:6].upper()}-V1"
        quotation.save(update_fields=['folio'])

        tab_map = {}
        for tab in data['tabs']:
            tab_map[tab['temp_id']] = QuotationTab.objects.create(
                quotation=quotation, section=tab['section'], label=tab['label'], position=tab['position']
            )

        QuotationItem.objects.bulk_create([
            build_item(quotation, item, tab=tab_map.get(item.get('tab')))
            for item in data['items']
        ])

        QuotationTabLink.objects.bulk_create([
            QuotationTabLink(quotation=quotation, source_tab=tab_map[link['source']], target_tab=tab_map[link['target']])
            for link in data['links']
            if link['source'] in tab_map and link['target'] in tab_map
        ])

    create_audit_log(request=request, action='create', model_name='Quotation', object_id=quotation.pk,
                     object_name=quotation.title, object_reference=quotation.folio)
    quotation = Quotation.objects.prefetch_related(*DETAIL_PREFETCH).get(pk=quotation.pk)
    return Response(QuotationDetailSerializer(quotation).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'DELETE'])
@permission_classes([IsAuthenticated, IsAdminRole])
def quotation_detail(request, pk):
    quotation = get_object_or_404(
        Quotation.objects.select_related('client', 'service_type', 'template').prefetch_related(*DETAIL_PREFETCH),
        pk=pk,
    )
    if request.method == 'GET':
        return Response(QuotationDetailSerializer(quotation).data)

    create_audit_log(request=request, action='delete', model_name='Quotation', object_id=quotation.pk,
                     object_name=quotation.title, object_reference=quotation.folio)
    quotation.delete()
    return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def quotation_update_status(request, pk):
    quotation = get_object_or_404(Quotation, pk=pk)
    new_status = request.data.get('status')
    if new_status not in dict(Quotation.STATUS_CHOICES):
        return Response({'error': 'Estado inválido'}, status=status.HTTP_400_BAD_REQUEST)

    previous = quotation.status
    quotation.status = new_status
    quotation.save(update_fields=['status', 'updated_at'])
    create_audit_log(request=request, action='status_change', model_name='Quotation', object_id=quotation.pk,
                     object_reference=quotation.folio, changes={'status': {'old': previous, 'new': new_status}})
    return Response(QuotationSerializer(quotation).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def quotation_versions(request, pk):
    """The root quotation and every version derived from it"""
    quotation = get_object_or_404(Quotation, pk=pk)
    root_id = quotation.parent_id or quotation.pk
    versions = Quotation.objects.filter(Q(pk=root_id) | Q(parent_id=root_id)).order_by('version')
    return Response(QuotationSerializer(versions, many=True).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def quotation_duplicate(request, pk):
    """Create the next version of a quotation family as a DRAFT copy"""
    source = get_object_or_404(Quotation.objects.prefetch_related(*DETAIL_PREFETCH), pk=pk)
    root = source.root

    with transaction.atomic():
        family = Quotation.objects.select_for_update().filter(Q(pk=root.pk) | Q(parent_id=root.pk))
        next_version = (family.aggregate(v=Max('version'))['v'] or source.version) + 1

        copy = Quotation.objects.create(
            client=source.client,
            title=source.title,
            status=Quotation.STATUS_DRAFT,
            valid_until=source.valid_until,
            subtotal=source.subtotal,
            tax=source.tax,
            total=source.total,
            notes=source.notes,
            version=next_version,
            parent=root,
            folio=f"COT-{str(root.pk)[:6].upper()}-V{next_version}",
            service_type=source.service_type,
            template=source.template,
            payment_type=source.payment_type,
            terms_content=source.terms_content,
            privacy_notice=source.privacy_notice,
        )
        tabs, items, links = copy_structure(source, copy)

    logger.info(f"Quotation {source.pk} duplicated as {copy.folio} ({tabs} tabs, {items} items, {links} links)")
    copy = Quotation.objects.prefetch_related(*DETAIL_PREFETCH).get(pk=copy.pk)
    return Response(QuotationDetailSerializer(copy).data, status=status.HTTP_201_CREATED)


def quotation_totals():
    quotations = Quotation.objects.all()
    accepted = quotations.filter(status=Quotation.STATUS_ACCEPTED)
    return {
        'total': quotations.count(),
        'draft': quotations.filter(status=Quotation.STATUS_DRAFT).count(),
        'sent': quotations.filter(status=Quotation.STATUS_SENT).count(),
        'accepted': accepted.count(),
        'totalValue': accepted.aggregate(total=Sum('total'))['total'] or Decimal('0'),
        'published': quotations.exclude(published_token__isnull=True).count(),
    }


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def quotation_stats(request):
    return Response(quotation_totals())


# Publishing
@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def quotation_publish(request, pk):
    """
    Publish a quotation under a fresh public token.

    Totals are recomputed from the items (16% IVA). When the total is above
    zero a Stripe payment link is attached; a Stripe failure is logged and
    does not block publishing.
    """
    quotation = get_object_or_404(Quotation.objects.prefetch_related('items'), pk=pk)

    subtotal, tax, total = compute_totals(quotation.items_subtotal())
    total_cents = int((total * 100).quantize(Decimal('1'), rounding=ROUND_HALF_UP))

    token = str(uuid.uuid4())
    quotation.subtotal = subtotal
    quotation.tax = tax
    quotation.total = total
    quotation.published_token = token
    quotation.published_at = timezone.now()
    quotation.save(update_fields=['subtotal', 'tax', 'total', 'published_token', 'published_at', 'updated_at'])

    if total_cents > 0 and not stripe_service.is_configured():
        logger.warning(f"Quotation {quotation.pk} published without payment link: Stripe is not configured")
    elif total_cents > 0:
        redirect_url = f"{settings.SITE_URL.rstrip('/')}/cotizacion/{token}?paid=1"
        try:
            link = stripe_service.generate_payment_link(
                quotation.title or f"COT-{str(quotation.pk)[:6]}",
                total_cents,
                redirect_url,
                quotation.payment_type or 'one_time',
            )
        except (stripe_service.StripeError, requests.RequestException, KeyError) as e:
            logger.error(f"Stripe payment link generation failed for quotation {quotation.pk}: {e}")
        else:
            quotation.stripe_product_id = link['product_id']
            quotation.stripe_price_id = link['price_id']
            quotation.stripe_payment_link_id = link['payment_link_id']
            quotation.stripe_payment_link_url = link['payment_link_url']
            quotation.payment_status = 'pending'
            quotation.save(update_fields=[
                'stripe_product_id', 'stripe_price_id', 'stripe_payment_link_id',
                'stripe_payment_link_url', 'payment_status', 'updated_at',
            ])

    create_audit_log(request=request, action='publish', model_name='Quotation', object_id=quotation.pk,
                     object_reference=quotation.folio, changes={'total_cents': total_cents})
    return Response(QuotationSerializer(quotation).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def quotation_unpublish(request, pk):
    """Deactivate the Stripe link and product, then clear publish data"""
    quotation = get_object_or_404(Quotation, pk=pk)

    if quotation.stripe_payment_link_id or quotation.stripe_product_id:
        stripe_service.deactivate_quotation(quotation.stripe_payment_link_id, quotation.stripe_product_id)

    quotation.published_token = None
    quotation.published_at = None
    quotation.stripe_payment_link_url = None
    quotation.stripe_payment_link_id = None
    quotation.stripe_product_id = None
    quotation.stripe_price_id = None
    quotation.payment_status = None
    quotation.save()

    create_audit_log(request=request, action='unpublish', model_name='Quotation', object_id=quotation.pk,
                     object_reference=quotation.folio)
    return Response(QuotationSerializer(quotation).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def quotation_mark_paid(request, pk):
    quotation = get_object_or_404(Quotation, pk=pk)
    quotation.payment_status = 'paid'
    quotation.save(update_fields=['payment_status', 'updated_at'])
    return Response(QuotationSerializer(quotation).data)


@api_view(['GET'])
@permission_classes([AllowAny])
def quotation_public(request, token):
    """Published quotation by token, with the company profile"""
    quotation = get_object_or_404(
        Quotation.objects.select_related('service_type', 'template').prefetch_related(*DETAIL_PREFETCH),
        published_token=token,
    )
    serializer = PublicQuotationSerializer(quotation, context={'company': CompanySettings.load()})
    return Response(serializer.data)


# Templates
@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def template_list(request):
    return Response(QuotationTemplateSerializer(QuotationTemplate.objects.all(), many=True).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def template_detail(request, pk):
    return Response(QuotationTemplateSerializer(get_object_or_404(QuotationTemplate, pk=pk)).data)


# Stripe webhook
def set_payment_status(status_value, payment_link_id=None, payment_intent_id=None, store_intent=None):
    """Update every quotation matching the link or intent id; returns affected rows"""
    if payment_link_id:
        queryset = Quotation.objects.filter(stripe_payment_link_id=payment_link_id)
    elif payment_intent_id:
        queryset = Quotation.objects.filter(stripe_payment_intent_id=payment_intent_id)
    else:
        return 0
    update = {'payment_status': status_value, 'updated_at': timezone.now()}
    if store_intent:
        update['stripe_payment_intent_id'] = store_intent
    return queryset.update(**update)


@api_view(['POST'])
@authentication_classes([])
@permission_classes([AllowAny])
def stripe_webhook(request):
    """
    Stripe events that move a quotation's payment_status.

    The signature is checked only when a webhook secret is configured and the
    request carries a Stripe-Signature header.
    """
    payload = request.body
    signature = request.META.get('HTTP_STRIPE_SIGNATURE')
    secret = getattr(settings, 'STRIPE_WEBHOOK_SECRET', '')

    if secret and signature and not stripe_service.verify_webhook_signature(payload, signature, secret):
        logger.warning("Stripe webhook rejected: invalid signature")
        return Response({'error': 'Invalid signature'}, status=status.HTTP_400_BAD_REQUEST)

    try:
        event = json.loads(payload.decode('utf-8'))
    except (ValueError, UnicodeDecodeError):
        return Response({'error': 'Invalid JSON'}, status=status.HTTP_400_BAD_REQUEST)

    data = event.get('data') if isinstance(event, dict) else None
    obj = data.get('object') if isinstance(data, dict) else None
    if not isinstance(obj, dict):
        return Response({'error': 'Invalid JSON'}, status=status.HTTP_400_BAD_REQUEST)
    event_type = event.get('type')

    if event_type == 'checkout.session.completed':
        updated = set_payment_status('paid', payment_link_id=obj.get('payment_link'),
                                     store_intent=obj.get('payment_intent'))
    elif event_type == 'payment_intent.succeeded':
        updated = set_payment_status('paid', payment_intent_id=obj.get('id'))
    elif event_type == 'payment_intent.payment_failed':
        updated = set_payment_status('failed', payment_intent_id=obj.get('id'))
    elif event_type == 'charge.refunded':
        updated = set_payment_status('refunded', payment_intent_id=obj.get('payment_intent'))
    else:
        logger.debug(f"Stripe webhook ignored event {event_type}")
        updated = 0

    if updated:
        logger.info(f"Stripe webhook {event_type} updated {updated} quotation(s)")
    return Response({'received': True})
