from django.urls import path
from .views import (
    quotation_list_create, quotation_detail, quotation_update_status, quotation_versions,
    quotation_duplicate, quotation_stats, quotation_publish, quotation_unpublish, quotation_mark_paid,
    quotation_public, template_list, template_detail, stripe_webhook,
)

urlpatterns = [
    # Quotation endpoints
    path('quotations/', quotation_list_create, name='quotation-list-create'),
    path('quotations/stats/', quotation_stats, name='quotation-stats'),
    path('quotations/<uuid:pk>/', quotation_detail, name='quotation-detail'),
    path('quotations/<uuid:pk>/status/', quotation_update_status, name='quotation-update-status'),
    path('quotations/<uuid:pk>/versions/', quotation_versions, name='quotation-versions'),
    path('quotations/<uuid:pk>/duplicate/', quotation_duplicate, name='quotation-duplicate'),
    path('quotations/<uuid:pk>/publish/', quotation_publish, name='quotation-publish'),
    path('quotations/<uuid:pk>/unpublish/', quotation_unpublish, name='quotation-unpublish'),
    path('quotations/<uuid:pk>/mark-paid/', quotation_mark_paid, name='quotation-mark-paid'),

    # Public view
    path('public/quotations/<str:token>/', quotation_public, name='quotation-public'),

    # Template endpoints
    path('quotation-templates/', template_list, name='quotation-template-list'),
    path('quotation-templates/<int:pk>/', template_detail, name='quotation-template-detail'),

    # Stripe
    path('stripe/webhook/', stripe_webhook, name='stripe-webhook'),
]
