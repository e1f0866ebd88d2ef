from rest_framework import serializers
from .models import Conversation, Message


class MessageSerializer(serializers.ModelSerializer):
    sender_name = serializers.CharField(source='sender.display_name', read_only=True, default=None)
    sender_role = serializers.CharField(source='sender.role', read_only=True, default=None)

    class Meta:
        model = Message
        fields = ['id', 'conversation', 'sender', 'sender_name', 'sender_role', 'receiver', 'content',
                  'is_read', 'created_at']
        read_only_fields = fields


class ConversationSerializer(serializers.ModelSerializer):
    """Conversation list entry; unread counts are relative to context['user']"""
    participants = serializers.SerializerMethodField()
    last_message = serializers.SerializerMethodField()
    unread_count = serializers.SerializerMethodField()

    class Meta:
        model = Conversation
        fields = ['id', 'title', 'participants', 'last_message', 'unread_count', 'created_at', 'updated_at']

    def get_participants(self, obj):
        return [
            {'id': p.user_id, 'name': p.user.display_name, 'role': p.user.role}
            for p in obj.participants.all()
        ]

    def get_last_message(self, obj):
        message = obj.messages.select_related('sender').order_by('-created_at', '-id').first()
        if not message:
            return None
        return {
            'content': message.content,
            'created_at': message.created_at,
            'sender_name': message.sender.display_name if message.sender else None,
        }

    def get_unread_count(self, obj):
        user = self.context.get('user')
        queryset = obj.messages.filter(is_read=False)
        if user is not None:
            queryset = queryset.exclude(sender=user)
        return queryset.count()
