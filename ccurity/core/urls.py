from django.urls import path
from .views import (
    RoleTokenObtainPairView, ActiveUserTokenRefreshView, register, user_me, check_route_access,
    user_list, user_detail, user_toggle_active, user_invite, user_bulk_action, user_stats,
    user_export_csv, client_list_create, client_detail, company_settings,
    audit_log_list, audit_log_detail,
)

urlpatterns = [
    # Auth endpoints
    path('auth/register/', register, name='register'),
    path('auth/login/', RoleTokenObtainPairView.as_view(), name='token_obtain_pair'),
    path('auth/refresh/', ActiveUserTokenRefreshView.as_view(), name='token_refresh'),
    path('auth/me/', user_me, name='user-me'),
    path('auth/route-access/', check_route_access, name='route-access'),

    # User administration
    path('users/', user_list, name='user-list'),
    path('users/stats/', user_stats, name='user-stats'),
    path('users/export/', user_export_csv, name='user-export'),
    path('users/invite/', user_invite, name='user-invite'),
    path('users/bulk/', user_bulk_action, name='user-bulk'),
    path('users/<int:pk>/', user_detail, name='user-detail'),
    path('users/<int:pk>/toggle-active/', user_toggle_active, name='user-toggle-active'),

    # Clients
    path('clients/', client_list_create, name='client-list-create'),
    path('clients/<int:pk>/', client_detail, name='client-detail'),

    # Company settings
    path('company-settings/', company_settings, name='company-settings'),

    # AuditLog endpoints
    path('audit-logs/', audit_log_list, name='audit-log-list'),
    path('audit-logs/<int:pk>/', audit_log_detail, name='audit-log-detail'),
]
