from django.urls import path
from .views import (
    contract_type_list_create, contract_type_by_service_type, contract_type_detail, contract_type_toggle,
    contract_list_create, contract_detail, contract_update_status, contract_tokens, contract_history,
    signing_detail, signing_log_view, signing_submit,
    invoice_list_create, invoice_detail, invoice_payments, payment_list,
    finance_stats, finance_report,
)

urlpatterns = [
    # Contract type endpoints
    path('contract-types/', contract_type_list_create, name='contract-type-list-create'),
    path('contract-types/service-type/<int:service_type_pk>/', contract_type_by_service_type,
         name='contract-type-by-service-type'),
    path('contract-types/<int:pk>/', contract_type_detail, name='contract-type-detail'),
    path('contract-types/<int:pk>/toggle/', contract_type_toggle, name='contract-type-toggle'),

    # Contract endpoints
    path('contracts/', contract_list_create, name='contract-list-create'),
    path('contracts/<int:pk>/', contract_detail, name='contract-detail'),
    path('contracts/<int:pk>/status/', contract_update_status, name='contract-update-status'),
    path('contracts/<int:pk>/tokens/', contract_tokens, name='contract-tokens'),
    path('contracts/<int:pk>/history/', contract_history, name='contract-history'),

    # Public signing
    path('sign/<str:token>/', signing_detail, name='signing-detail'),
    path('sign/<str:token>/view/', signing_log_view, name='signing-log-view'),
    path('sign/<str:token>/submit/', signing_submit, name='signing-submit'),

    # Invoice and payment endpoints
    path('invoices/', invoice_list_create, name='invoice-list-create'),
    path('invoices/<int:pk>/', invoice_detail, name='invoice-detail'),
    path('invoices/<int:pk>/payments/', invoice_payments, name='invoice-payments'),
    path('payments/', payment_list, name='payment-list'),

    # Stats
    path('finance/stats/', finance_stats, name='finance-stats'),
    path('finance/report/', finance_report, name='finance-report'),
]
