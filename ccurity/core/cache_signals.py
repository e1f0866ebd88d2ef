"""
Report cache invalidation.

Any save or delete of a model the dashboards aggregate schedules a drop of
the report cache once the surrounding transaction commits. Bulk paths wrap
their work in `suspend_cache_signals()` and invalidate a single time; bulk
`QuerySet.update()` calls use `invalidate_reports_on_commit()`.
"""
from contextlib import contextmanager
import logging
import threading

from django.db import transaction
from django.db.models.signals import post_delete, post_save
from django.dispatch import receiver

from .cache_utils import invalidate_reports_cache

logger = logging.getLogger(__name__)

_state = threading.local()

AGGREGATED_MODELS = frozenset([
    'User', 'Service', 'ServiceApplication', 'Quotation', 'CollaboratorPrice',
    'Contract', 'Invoice', 'Payment', 'Conversation', 'Message',
])


@contextmanager
def suspend_cache_signals():
    previous = is_suspended()
    _state.suspended = True
    try:
        yield
    finally:
        _state.suspended = previous


def is_suspended():
    return getattr(_state, 'suspended', False)


def _drop_reports():
    try:
        invalidate_reports_cache()
    except Exception as e:
        logger.warning(f"Report cache not invalidated: {e}")


@receiver([post_save, post_delete])
def invalidate_reports_on_change(sender, instance, **kwargs):
    if sender.__name__ not in AGGREGATED_MODELS or is_suspended():
        return
    invalidate_reports_on_commit()


def invalidate_reports_on_commit():
    """For QuerySet.update() paths, which send no model signals"""
    transaction.on_commit(_drop_reports)
