"""Shared view helpers: request metadata, audit trail and list pagination"""
import logging

from django.core.paginator import Paginator

from .models import AuditLog

logger = logging.getLogger(__name__)


def _meta(request, key):
    meta = getattr(request, 'META', None) or {}
    return meta.get(key) or None


def get_client_ip(request):
    """First hop of X-Forwarded-For, else REMOTE_ADDR"""
    forwarded = _meta(request, 'HTTP_X_FORWARDED_FOR')
    if forwarded:
        return forwarded.split(',')[0].strip() or None
    return _meta(request, 'REMOTE_ADDR')


def get_user_agent(request):
    return _meta(request, 'HTTP_USER_AGENT')


def create_audit_log(request=None, action=None, model_name=None, object_id=None,
                     changes=None, user=None, object_name=None, object_reference=None):
    """
    Record who did what to which object.

    `user` overrides `request.user`; anonymous actors are stored as NULL.
    `object_name` is a display label (concept title, contract title) and
    `object_reference` a business identifier (folio, invoice number).

    Never raises: a failure is logged and None returned so the calling
    operation is not rolled back because of its audit entry.
    """
    if not (action and model_name and object_id):
        logger.warning(f"Audit entry skipped: action={action} model={model_name} id={object_id}")
        return None

    actor = user if user is not None else getattr(request, 'user', None)
    if actor is not None and not actor.is_authenticated:
        actor = None

    try:
        return AuditLog.objects.create(
            user=actor,
            action=action,
            model_name=model_name,
            object_id=str(object_id),
            object_name=object_name,
            object_reference=object_reference,
            changes=changes or {},
            ip_address=get_client_ip(request),
        )
    except Exception as e:
        logger.error(f"Audit entry for {model_name}#{object_id} failed: {e}")
        return None


def _positive_int(value, fallback):
    try:
        number = int(value)
    except (TypeError, ValueError):
        return fallback
    return number if number > 0 else fallback


def paginate(request, queryset, serializer_class, default_limit=50, context=None):
    """Serialize one page of `queryset` in the list envelope used by every endpoint"""
    params = request.query_params
    page_number = _positive_int(params.get('page'), 1)
    limit = _positive_int(params.get('limit', params.get('page_size')), default_limit)

    paginator = Paginator(queryset, limit)
    page = paginator.get_page(page_number)
    rows = serializer_class(page, many=True, context=context or {'request': request}).data

    return {
        'results': rows,
        'count': paginator.count,
        'next': page.next_page_number() if page.has_next() else None,
        'previous': page.previous_page_number() if page.has_previous() else None,
        'page': page.number,
        'page_size': limit,
        'total_pages': paginator.num_pages,
    }


def parse_id_list(value):
    """Ids from a JSON array body field; anything else yields []"""
    if not isinstance(value, (list, tuple)):
        return []
    return [item for item in value if item not in (None, '')]
