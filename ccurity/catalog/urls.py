from django.urls import path
from .views import (
    concept_list_create, concept_active_list, concept_detail, concept_toggle, concept_duplicate,
    concept_stats, concept_price_history, category_list_create, category_detail,
    concept_bulk_action, concept_export_csv, concept_import_csv,
    collaborator_price_list_upsert, collaborator_price_delete,
)

urlpatterns = [
    # Concept endpoints
    path('concepts/', concept_list_create, name='concept-list-create'),
    path('concepts/active/', concept_active_list, name='concept-active-list'),
    path('concepts/stats/', concept_stats, name='concept-stats'),
    path('concepts/bulk/', concept_bulk_action, name='concept-bulk'),
    path('concepts/export/', concept_export_csv, name='concept-export'),
    path('concepts/import/', concept_import_csv, name='concept-import'),
    path('concepts/<int:pk>/', concept_detail, name='concept-detail'),
    path('concepts/<int:pk>/toggle/', concept_toggle, name='concept-toggle'),
    path('concepts/<int:pk>/duplicate/', concept_duplicate, name='concept-duplicate'),
    path('concepts/<int:pk>/price-history/', concept_price_history, name='concept-price-history'),

    # Category endpoints
    path('concept-categories/', category_list_create, name='concept-category-list-create'),
    path('concept-categories/<str:name>/', category_detail, name='concept-category-detail'),

    # Collaborator price endpoints
    path('collaborator-prices/', collaborator_price_list_upsert, name='collaborator-price-list'),
    path('collaborator-prices/<int:pk>/', collaborator_price_delete, name='collaborator-price-delete'),
]
