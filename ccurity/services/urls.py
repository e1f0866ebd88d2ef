from django.urls import path
from .views import (
    service_list_create, service_detail, service_update_state, service_assign, service_stats,
    service_by_state, service_mine, collaborator_list, service_add_item, service_item_delete,
    service_add_report, service_add_evidence, service_complete_survey,
    service_type_list_create, service_type_detail, service_state_list_create, service_state_delete,
    template_concept_list_create, template_concept_detail,
    service_applications, service_pending_applications_count, application_list, application_mine,
    application_accept, application_reject,
)

urlpatterns = [
    # Service endpoints
    path('services/', service_list_create, name='service-list-create'),
    path('services/stats/', service_stats, name='service-stats'),
    path('services/by-state/', service_by_state, name='service-by-state'),
    path('services/mine/', service_mine, name='service-mine'),
    path('services/collaborators/', collaborator_list, name='service-collaborators'),
    path('services/<int:pk>/', service_detail, name='service-detail'),
    path('services/<int:pk>/state/', service_update_state, name='service-update-state'),
    path('services/<int:pk>/assign/', service_assign, name='service-assign'),
    path('services/<int:pk>/items/', service_add_item, name='service-add-item'),
    path('services/<int:pk>/reports/', service_add_report, name='service-add-report'),
    path('services/<int:pk>/evidence/', service_add_evidence, name='service-add-evidence'),
    path('services/<int:pk>/complete-survey/', service_complete_survey, name='service-complete-survey'),
    path('services/<int:pk>/applications/', service_applications, name='service-applications'),
    path('services/<int:pk>/applications/pending-count/', service_pending_applications_count,
         name='service-pending-applications'),
    path('service-items/<int:pk>/', service_item_delete, name='service-item-delete'),

    # Types, states and survey templates
    path('service-types/', service_type_list_create, name='service-type-list-create'),
    path('service-types/<int:pk>/', service_type_detail, name='service-type-detail'),
    path('service-types/<int:type_pk>/template/', template_concept_list_create, name='service-type-template'),
    path('service-type-concepts/<int:pk>/', template_concept_detail, name='service-type-concept-detail'),
    path('service-states/', service_state_list_create, name='service-state-list-create'),
    path('service-states/<int:pk>/', service_state_delete, name='service-state-delete'),

    # Application endpoints
    path('applications/', application_list, name='application-list'),
    path('applications/mine/', application_mine, name='application-mine'),
    path('applications/<int:pk>/accept/', application_accept, name='application-accept'),
    path('applications/<int:pk>/reject/', application_reject, name='application-reject'),
]
