from django.urls import path
from .views import (
    email_list, email_detail, email_stats, email_mark_read, email_toggle_star, email_move_to_trash,
    email_send, resend_webhook,
)

urlpatterns = [
    path('emails/', email_list, name='email-list'),
    path('emails/stats/', email_stats, name='email-stats'),
    path('emails/send/', email_send, name='email-send'),
    path('emails/<int:pk>/', email_detail, name='email-detail'),
    path('emails/<int:pk>/read/', email_mark_read, name='email-mark-read'),
    path('emails/<int:pk>/star/', email_toggle_star, name='email-toggle-star'),
    path('emails/<int:pk>/trash/', email_move_to_trash, name='email-move-to-trash'),
    path('webhooks/resend/', resend_webhook, name='resend-webhook'),
]
