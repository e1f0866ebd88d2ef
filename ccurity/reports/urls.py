from django.urls import path
from .views import (
    admin_dashboard, reports_overview, notifications, calendar, activity,
    supervisor_dashboard, collaborator_dashboard, client_portal,
)

urlpatterns = [
    path('reports/admin-dashboard/', admin_dashboard, name='reports-admin-dashboard'),
    path('reports/overview/', reports_overview, name='reports-overview'),
    path('reports/notifications/', notifications, name='reports-notifications'),
    path('reports/calendar/', calendar, name='reports-calendar'),
    path('reports/activity/', activity, name='reports-activity'),
    path('reports/supervisor-dashboard/', supervisor_dashboard, name='reports-supervisor-dashboard'),
    path('reports/collaborator-dashboard/', collaborator_dashboard, name='reports-collaborator-dashboard'),
    path('reports/client-portal/', client_portal, name='reports-client-portal'),
]
