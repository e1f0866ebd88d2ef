from django.urls import path
from .views import (
    conversation_list_create, conversation_messages, conversation_mark_read, conversation_participants,
    chat_stats,
)

urlpatterns = [
    path('conversations/', conversation_list_create, name='conversation-list-create'),
    path('conversations/stats/', chat_stats, name='chat-stats'),
    path('conversations/<int:pk>/messages/', conversation_messages, name='conversation-messages'),
    path('conversations/<int:pk>/read/', conversation_mark_read, name='conversation-mark-read'),
    path('conversations/<int:pk>/participants/', conversation_participants, name='conversation-participants'),
]
