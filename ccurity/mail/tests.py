"""
Test suite for the mail module
Tests: admin mailbox, sending through Resend and the Resend webhook
"""
from unittest.mock import patch, MagicMock

import requests
from django.test import TestCase, override_settings
from rest_framework import status
from rest_framework.test import APIClient

from ccurity.core.models import AuditLog
from ccurity.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from ccurity.mail import resend_service
from ccurity.mail.models import Email


def resend_response(payload, status_code=200):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload
    response.text = str(payload)
    return response


def create_email(subject='Cotización', folder='inbox', **extra):
    defaults = {
        'direction': 'inbound',
        'from_address': 'cliente@example.com',
        'to_addresses': ['contacto@ccurity.com.mx'],
        'status': 'received',
    }
    defaults.update(extra)
    return Email.objects.create(subject=subject, folder=folder, **defaults)


class MailboxAPITests(TestCase):
    """Test folders, flags and stats"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(TestDataFactory.create_admin())

    def test_folder_and_search(self):
        create_email('Solicitud de cámaras')
        create_email('Factura pendiente')
        create_email('Enviado', folder='sent', direction='outbound', status='sent')

        response = self.client.get('/api/v1/emails/')
        self.assertEqual(len(response.data), 2)
        response = self.client.get('/api/v1/emails/', {'folder': 'sent'})
        self.assertEqual(len(response.data), 1)
        response = self.client.get('/api/v1/emails/', {'search': 'cámaras'})
        self.assertEqual(response.data[0]['subject'], 'Solicitud de cámaras')

    def test_flags(self):
        email = create_email()
        response = self.client.post(f'/api/v1/emails/{email.id}/read/')
        self.assertTrue(response.data['is_read'])
        response = self.client.post(f'/api/v1/emails/{email.id}/star/')
        self.assertTrue(response.data['is_starred'])
        response = self.client.post(f'/api/v1/emails/{email.id}/star/')
        self.assertFalse(response.data['is_starred'])
        response = self.client.post(f'/api/v1/emails/{email.id}/trash/')
        self.assertEqual(response.data['folder'], 'trash')

    def test_delete(self):
        email = create_email()
        response = self.client.delete(f'/api/v1/emails/{email.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Email.objects.exists())

    def test_stats(self):
        create_email()
        create_email(folder='trash')
        create_email(folder='sent', is_read=True, is_starred=True)
        response = self.client.get('/api/v1/emails/stats/')
        self.assertEqual(response.data['total'], 3)
        self.assertEqual(response.data['unread'], 1)
        self.assertEqual(response.data['trash'], 1)
        self.assertEqual(response.data['starred'], 1)

    def test_supervisor_forbidden(self):
        client = AuthenticatedAPIClient()
        client.authenticate_user(TestDataFactory.create_supervisor())
        self.assertEqual(client.get('/api/v1/emails/').status_code, status.HTTP_403_FORBIDDEN)


@override_settings(RESEND_API_KEY='re_test', RESEND_FROM='Ccurity <noreply@app.ccurity.com.mx>')
class SendEmailTests(TestCase):
    """Test sending through Resend"""

    def setUp(self):
        self.admin = TestDataFactory.create_admin()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)

    @patch('ccurity.mail.resend_service.requests.post')
    def test_send_stores_sent_copy(self, mock_post):
        mock_post.return_value = resend_response({'id': 'em_123'})
        response = self.client.post('/api/v1/emails/send/', {
            'to': 'cliente@example.com, otro@example.com',
            'subject': 'Su cotización',
            'html': '<p>Adjuntamos la cotización</p>',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

        email = Email.objects.get()
        self.assertEqual(email.resend_id, 'em_123')
        self.assertEqual(email.folder, 'sent')
        self.assertEqual(email.to_addresses, ['cliente@example.com', 'otro@example.com'])
        self.assertEqual(email.sent_by, self.admin)

        payload = mock_post.call_args.kwargs['json']
        self.assertEqual(payload['from'], 'Ccurity <noreply@app.ccurity.com.mx>')
        self.assertNotIn('cc', payload)
        self.assertEqual(mock_post.call_args.kwargs['headers']['Authorization'], 'Bearer re_test')
        self.assertTrue(AuditLog.objects.filter(action='email_send').exists())

    @patch('ccurity.mail.resend_service.requests.post')
    def test_provider_error(self, mock_post):
        mock_post.return_value = resend_response({'message': 'Domain not verified'}, status_code=403)
        response = self.client.post('/api/v1/emails/send/', {'to': ['a@example.com'], 'subject': 'Hola'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_502_BAD_GATEWAY)
        self.assertEqual(response.data['error'], 'Domain not verified')
        self.assertFalse(Email.objects.exists())

    @patch('ccurity.mail.resend_service.requests.post')
    def test_provider_unreachable(self, mock_post):
        mock_post.side_effect = requests.ConnectionError('down')
        response = self.client.post('/api/v1/emails/send/', {'to': ['a@example.com'], 'subject': 'Hola'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_502_BAD_GATEWAY)
        self.assertIn('unreachable', response.data['error'])
        self.assertFalse(Email.objects.exists())

    @patch('ccurity.mail.resend_service.requests.post')
    def test_reply_to_is_forwarded(self, mock_post):
        mock_post.return_value = resend_response({'id': 'em_9'})
        response = self.client.post('/api/v1/emails/send/', {
            'to': 'cliente@example.com', 'subject': 'Seguimiento', 'text': 'Hola',
            'replyTo': 'ventas@ccurity.com.mx',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(mock_post.call_args.kwargs['json']['reply_to'], ['ventas@ccurity.com.mx'])

    def test_recipient_required(self):
        response = self.client.post('/api/v1/emails/send/', {'to': [], 'subject': 'Hola'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        response = self.client.post('/api/v1/emails/send/', {'to': 'no-es-correo', 'subject': 'Hola'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    @override_settings(RESEND_API_KEY='')
    @patch.dict('os.environ', {'RESEND_API_KEY': ''})
    def test_missing_key(self):
        with self.assertRaises(resend_service.ResendError):
            resend_service.send_email(['a@example.com'], 'Hola', text='Hola')


class ResendWebhookTests(TestCase):
    """Test inbound mail and delivery events"""

    def setUp(self):
        self.client = APIClient()

    def test_inbound_email(self):
        response = self.client.post('/api/v1/webhooks/resend/', {
            'type': 'email.received',
            'data': {
                'email_id': 'in_1',
                'from': 'cliente@example.com',
                'to': 'contacto@ccurity.com.mx',
                'subject': 'Necesito una cotización',
                'text': 'Hola',
                'created_at': '2025-03-01T10:00:00Z',
            },
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data, {'received': True})

        email = Email.objects.get()
        self.assertEqual(email.folder, 'inbox')
        self.assertEqual(email.direction, 'inbound')
        self.assertEqual(email.to_addresses, ['contacto@ccurity.com.mx'])
        self.assertFalse(email.is_read)
        self.assertEqual(email.created_at.year, 2025)

    def test_delivery_status(self):
        create_email(folder='sent', direction='outbound', status='sent', resend_id='em_9')
        self.client.post('/api/v1/webhooks/resend/', {'type': 'email.bounced', 'data': {'email_id': 'em_9'}},
                         format='json')
        self.assertEqual(Email.objects.get().status, 'bounced')
        self.client.post('/api/v1/webhooks/resend/', {'type': 'email.delivered', 'data': {'email_id': 'em_9'}},
                         format='json')
        self.assertEqual(Email.objects.get().status, 'delivered')

    def test_unhandled_event(self):
        response = self.client.post('/api/v1/webhooks/resend/', {'type': 'email.opened', 'data': {}}, format='json')
        self.assertEqual(response.data, {'received': True, 'handled': False})

    def test_non_object_bodies_rejected(self):
        for body in ([], 1, {'type': 'email.received', 'data': ['x']}):
            response = self.client.post('/api/v1/webhooks/resend/', body, format='json')
            self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(Email.objects.exists())
