"""
URL configuration for the Ccurity platform.

Every app mounts its routes under /api/v1/.
"""
from django.contrib import admin
from django.urls import path, include, re_path
from django.conf import settings
from django.views.static import serve

admin.site.site_header = "Ccurity Admin Panel"
admin.site.site_title = "Ccurity Admin Portal"
admin.site.index_title = "Bienvenido al panel de Ccurity"

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/v1/', include('ccurity.core.urls')),
    path('api/v1/', include('ccurity.catalog.urls')),
    path('api/v1/', include('ccurity.services.urls')),
    path('api/v1/', include('ccurity.quotations.urls')),
    path('api/v1/', include('ccurity.finance.urls')),
    path('api/v1/', include('ccurity.chat.urls')),
    path('api/v1/', include('ccurity.mail.urls')),
    path('api/v1/', include('ccurity.reports.urls')),
    re_path(r'^media/(?P<path>.*)$', serve, {'document_root': settings.MEDIA_ROOT}),
]
