"""
Test suite for the chat module
"""
from datetime import timedelta

from django.test import TestCase
from django.utils import timezone
from rest_framework import status

from ccurity.chat.models import Conversation, Message
from ccurity.chat.views import chat_totals
from ccurity.core.test_utils import TestDataFactory, AuthenticatedAPIClient


class ConversationAPITests(TestCase):
    """Test conversations and participant visibility"""

    def setUp(self):
        self.supervisor = TestDataFactory.create_supervisor()
        self.collaborator = TestDataFactory.create_collaborator()
        self.outsider = TestDataFactory.create_collaborator()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.supervisor)

    def test_create_adds_creator(self):
        response = self.client.post('/api/v1/conversations/', {
            'participant_ids': [self.collaborator.id], 'title': 'Obra Polanco',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        ids = {p['id'] for p in response.data['participants']}
        self.assertEqual(ids, {self.supervisor.id, self.collaborator.id})
        self.assertEqual(response.data['title'], 'Obra Polanco')

    def test_create_validation(self):
        response = self.client.post('/api/v1/conversations/', {'participant_ids': []}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        response = self.client.post('/api/v1/conversations/', {'participant_ids': [999999]}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(Conversation.objects.exists())

    def test_list_only_own_conversations(self):
        TestDataFactory.create_conversation(self.supervisor, self.collaborator)
        TestDataFactory.create_conversation(self.collaborator, self.outsider)
        response = self.client.get('/api/v1/conversations/')
        self.assertEqual(len(response.data), 1)

    def test_admin_sees_all(self):
        TestDataFactory.create_conversation(self.supervisor, self.collaborator)
        TestDataFactory.create_conversation(self.collaborator, self.outsider)
        client = AuthenticatedAPIClient()
        client.authenticate_user(TestDataFactory.create_admin())
        response = client.get('/api/v1/conversations/')
        self.assertEqual(len(response.data), 2)

    def test_non_participant_gets_404(self):
        conversation = TestDataFactory.create_conversation(self.collaborator, self.outsider)
        response = self.client.get(f'/api/v1/conversations/{conversation.id}/messages/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_participants(self):
        conversation = TestDataFactory.create_conversation(self.supervisor, self.collaborator)
        response = self.client.get(f'/api/v1/conversations/{conversation.id}/participants/')
        self.assertEqual(len(response.data), 2)

    def test_unread_count_and_last_message(self):
        conversation = TestDataFactory.create_conversation(self.supervisor, self.collaborator)
        TestDataFactory.create_message(conversation, self.collaborator, 'Ya llegué')
        TestDataFactory.create_message(conversation, self.supervisor, 'Perfecto')
        response = self.client.get('/api/v1/conversations/')
        entry = response.data[0]
        self.assertEqual(entry['unread_count'], 1)
        self.assertEqual(entry['last_message']['content'], 'Perfecto')


class MessageAPITests(TestCase):
    """Test sending, polling and read receipts"""

    def setUp(self):
        self.supervisor = TestDataFactory.create_supervisor()
        self.collaborator = TestDataFactory.create_collaborator()
        self.conversation = TestDataFactory.create_conversation(self.supervisor, self.collaborator)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.supervisor)
        self.url = f'/api/v1/conversations/{self.conversation.id}/messages/'

    def test_send_message(self):
        before = Conversation.objects.get(pk=self.conversation.pk).updated_at
        response = self.client.post(self.url, {'content': '  Hola equipo  '}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['content'], 'Hola equipo')
        self.assertEqual(response.data['sender'], self.supervisor.id)
        self.assertGreaterEqual(Conversation.objects.get(pk=self.conversation.pk).updated_at, before)

    def test_empty_message_rejected(self):
        response = self.client.post(self.url, {'content': '   '}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_receiver_must_participate(self):
        outsider = TestDataFactory.create_client()
        response = self.client.post(self.url, {'content': 'Hola', 'receiver': outsider.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        response = self.client.post(self.url, {'content': 'Hola', 'receiver': self.collaborator.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

    def test_poll_after(self):
        old = TestDataFactory.create_message(self.conversation, self.collaborator, 'Viejo')
        new = TestDataFactory.create_message(self.conversation, self.collaborator, 'Nuevo')
        now = timezone.now()
        Message.objects.filter(pk=old.pk).update(created_at=now - timedelta(minutes=5))
        Message.objects.filter(pk=new.pk).update(created_at=now)

        response = self.client.get(self.url)
        self.assertEqual([m['content'] for m in response.data], ['Viejo', 'Nuevo'])

        cutoff = (now - timedelta(minutes=1)).isoformat()
        response = self.client.get(self.url, {'after': cutoff})
        self.assertEqual([m['content'] for m in response.data], ['Nuevo'])

    def test_poll_after_invalid(self):
        response = self.client.get(self.url, {'after': 'ayer'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_mark_read_skips_own_messages(self):
        TestDataFactory.create_message(self.conversation, self.collaborator, 'Uno')
        TestDataFactory.create_message(self.conversation, self.collaborator, 'Dos')
        own = TestDataFactory.create_message(self.conversation, self.supervisor, 'Mío')

        response = self.client.post(f'/api/v1/conversations/{self.conversation.id}/read/')
        self.assertEqual(response.data, {'success': True, 'updated': 2})
        own.refresh_from_db()
        self.assertFalse(own.is_read)

    def test_stats(self):
        TestDataFactory.create_message(self.conversation, self.collaborator, 'Uno')
        TestDataFactory.create_message(self.conversation, self.supervisor, 'Dos')
        other = TestDataFactory.create_conversation(self.collaborator, TestDataFactory.create_collaborator())
        TestDataFactory.create_message(other, self.collaborator, 'Ajeno')

        response = self.client.get('/api/v1/conversations/stats/')
        self.assertEqual(response.data, {'totalConversations': 1, 'totalMessages': 2, 'unreadMessages': 1})
        self.assertEqual(chat_totals()['totalMessages'], 3)
