"""
Test suite for the finance module
Tests: contract types, contracts, the public signing flow, invoices and payments
"""
import os
import shutil
import tempfile
from datetime import timedelta
from decimal import Decimal
from unittest.mock import patch

from django.test import TestCase, override_settings
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APIClient

from ccurity.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from ccurity.finance.models import Contract, ContractToken, ContractSignature, ContractHistory, Invoice
from ccurity.finance.storage import InvalidImageError, decode_data_url


class ContractTypeAPITests(TestCase):
    """Test contract type management"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(TestDataFactory.create_admin())
        self.service_type = TestDataFactory.create_service_type(name='Alarmas')

    def test_create_and_filter_by_service_type(self):
        response = self.client.post('/api/v1/contract-types/', {
            'name': 'Póliza de mantenimiento', 'service_type': self.service_type.id,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        TestDataFactory.create_contract_type(service_type=self.service_type, is_active=False)

        response = self.client.get(f'/api/v1/contract-types/service-type/{self.service_type.id}/')
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['service_type_name'], 'Alarmas')

    def test_toggle(self):
        contract_type = TestDataFactory.create_contract_type()
        response = self.client.post(f'/api/v1/contract-types/{contract_type.id}/toggle/')
        self.assertFalse(response.data['is_active'])
        response = self.client.post(f'/api/v1/contract-types/{contract_type.id}/toggle/')
        self.assertTrue(response.data['is_active'])


class ContractAPITests(TestCase):
    """Test contract CRUD and sending for signature"""

    def setUp(self):
        self.admin = TestDataFactory.create_admin()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)
        self.customer = TestDataFactory.create_client()

    def test_create_is_always_draft(self):
        response = self.client.post('/api/v1/contracts/', {
            'user': self.customer.id, 'title': 'Monitoreo 24/7', 'status': Contract.STATUS_ACTIVE,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], Contract.STATUS_DRAFT)

    def test_end_before_start_rejected(self):
        response = self.client.post('/api/v1/contracts/', {
            'title': 'Contrato', 'start_date': '2025-05-01', 'end_date': '2025-04-01',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_patch_records_modify_history(self):
        contract = TestDataFactory.create_contract(user=self.customer)
        response = self.client.patch(f'/api/v1/contracts/{contract.id}/', {'title': 'Nuevo título'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(contract.history.filter(action=ContractHistory.ACTION_MODIFY).exists())

    def test_send_for_signature_issues_tokens(self):
        contract = TestDataFactory.create_contract(user=self.customer)
        response = self.client.post(f'/api/v1/contracts/{contract.id}/status/',
                                    {'status': Contract.STATUS_PENDING_SIGNATURE}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['tokens']), 2)

        client_token = contract.tokens.get(role=Contract.ROLE_CLIENT)
        provider_token = contract.tokens.get(role=Contract.ROLE_PROVIDER)
        self.assertEqual(client_token.user, self.customer)
        self.assertEqual(provider_token.user, self.admin)
        self.assertEqual(len(client_token.token), 32)
        self.assertTrue(contract.history.filter(action=ContractHistory.ACTION_SEND).exists())

        # Re-sending the same status does not issue new tokens
        self.client.post(f'/api/v1/contracts/{contract.id}/status/',
                         {'status': Contract.STATUS_PENDING_SIGNATURE}, format='json')
        self.assertEqual(contract.tokens.count(), 2)

    def test_provider_counterpart(self):
        provider = TestDataFactory.create_collaborator()
        contract = TestDataFactory.create_contract(user=provider, counterpart_role=Contract.ROLE_PROVIDER)
        self.client.post(f'/api/v1/contracts/{contract.id}/status/',
                         {'status': Contract.STATUS_PENDING_SIGNATURE}, format='json')
        self.assertEqual(contract.tokens.get(role=Contract.ROLE_PROVIDER).user, provider)
        self.assertEqual(contract.tokens.get(role=Contract.ROLE_CLIENT).user, self.admin)

    def test_invalid_status(self):
        contract = TestDataFactory.create_contract()
        response = self.client.post(f'/api/v1/contracts/{contract.id}/status/', {'status': 'SIGNED'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_detail_includes_counterpart_invoices(self):
        contract = TestDataFactory.create_contract(user=self.customer)
        invoice = TestDataFactory.create_invoice(user=self.customer)
        TestDataFactory.create_payment(invoice, amount='200.00')
        response = self.client.get(f'/api/v1/contracts/{contract.id}/')
        self.assertEqual(len(response.data['invoices']), 1)
        self.assertEqual(response.data['invoices'][0]['amount_paid'], '200.00')

    def test_client_forbidden(self):
        client = AuthenticatedAPIClient()
        client.authenticate_user(self.customer)
        response = client.get('/api/v1/contracts/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class SigningFlowTests(TestCase):
    """Test the public signing pages"""

    def setUp(self):
        self.media_root = tempfile.mkdtemp()
        self.settings_override = override_settings(MEDIA_ROOT=self.media_root, AZURE_STORAGE_CONNECTION_STRING='')
        self.settings_override.enable()

        self.admin = TestDataFactory.create_admin()
        self.customer = TestDataFactory.create_client()
        admin_client = AuthenticatedAPIClient()
        admin_client.authenticate_user(self.admin)
        self.contract = TestDataFactory.create_contract(user=self.customer)
        admin_client.post(f'/api/v1/contracts/{self.contract.id}/status/',
                          {'status': Contract.STATUS_PENDING_SIGNATURE}, format='json')
        self.client_token = self.contract.tokens.get(role=Contract.ROLE_CLIENT)
        self.provider_token = self.contract.tokens.get(role=Contract.ROLE_PROVIDER)
        self.client = APIClient()

    def tearDown(self):
        self.settings_override.disable()
        shutil.rmtree(self.media_root, ignore_errors=True)

    def submission(self, **overrides):
        data = {
            'selfie': TestDataFactory.image_data_url('red'),
            'ine_front': TestDataFactory.image_data_url('green'),
            'ine_back': TestDataFactory.image_data_url('blue'),
            'signature': TestDataFactory.image_data_url('black'),
            'accepted_digital': True,
            'accepted_content': True,
        }
        data.update(overrides)
        return data

    def test_signing_detail(self):
        response = self.client.get(f'/api/v1/sign/{self.client_token.token}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['contract']['id'], self.contract.id)
        self.assertEqual(response.data['token']['role'], Contract.ROLE_CLIENT)
        self.assertIsNone(response.data['signature'])
        self.assertEqual(len(response.data['tokens']), 2)

    def test_unknown_token(self):
        response = self.client.get('/api/v1/sign/0000/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_log_view(self):
        response = self.client.post(f'/api/v1/sign/{self.client_token.token}/view/')
        self.assertEqual(response.data, {'success': True})
        entry = self.contract.history.get(action=ContractHistory.ACTION_VIEW)
        self.assertEqual(entry.token, self.client_token)

    def test_sign_one_side(self):
        response = self.client.post(f'/api/v1/sign/{self.client_token.token}/submit/', self.submission(),
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['success'])
        self.assertFalse(response.data['fully_signed'])
        self.assertEqual(response.data['contract_status'], Contract.STATUS_PENDING_SIGNATURE)

        signature = ContractSignature.objects.get(token=self.client_token)
        self.assertIn(f'{self.contract.id}/{self.client_token.token}/selfie_', signature.selfie_url)
        self.assertTrue(signature.signature_url.endswith('.png'))
        self.client_token.refresh_from_db()
        self.assertTrue(self.client_token.is_signed)

    def test_both_sides_activate_contract(self):
        self.client.post(f'/api/v1/sign/{self.client_token.token}/submit/', self.submission(), format='json')
        response = self.client.post(f'/api/v1/sign/{self.provider_token.token}/submit/', self.submission(),
                                    format='json')
        self.assertTrue(response.data['fully_signed'])
        self.contract.refresh_from_db()
        self.assertEqual(self.contract.status, Contract.STATUS_ACTIVE)
        self.assertEqual(self.contract.history.filter(action=ContractHistory.ACTION_SIGN).count(), 2)

    def test_already_signed(self):
        url = f'/api/v1/sign/{self.client_token.token}/submit/'
        self.client.post(url, self.submission(), format='json')
        response = self.client.post(url, self.submission(), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Already signed')

    def test_acceptance_required(self):
        response = self.client.post(f'/api/v1/sign/{self.client_token.token}/submit/',
                                    self.submission(accepted_content=False), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(ContractSignature.objects.exists())

    def test_bad_image(self):
        response = self.client.post(f'/api/v1/sign/{self.client_token.token}/submit/',
                                    self.submission(selfie='data:image/png;base64,bm90IGFuIGltYWdl'),
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.client_token.refresh_from_db()
        self.assertFalse(self.client_token.is_signed)

    def stored_files(self):
        return [name for _root, _dirs, files in os.walk(self.media_root) for name in files]

    def test_signing_detail_hides_other_party_tokens(self):
        response = self.client.get(f'/api/v1/sign/{self.client_token.token}/')
        self.assertEqual(response.data['token']['token'], self.client_token.token)
        for party in response.data['tokens']:
            self.assertNotIn('token', party)
        self.assertNotIn(self.provider_token.token, str(response.content))
        roles = sorted(party['role'] for party in response.data['tokens'])
        self.assertEqual(roles, sorted([Contract.ROLE_CLIENT, Contract.ROLE_PROVIDER]))

    def test_bad_last_image_stores_nothing(self):
        response = self.client.post(f'/api/v1/sign/{self.client_token.token}/submit/',
                                    self.submission(ine_back='data:image/png;base64,bm90IGFuIGltYWdl'),
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(self.stored_files(), [])

    def test_failed_write_removes_stored_images(self):
        url = f'/api/v1/sign/{self.client_token.token}/submit/'
        with patch('ccurity.finance.views.ContractSignature.objects.create', side_effect=RuntimeError('db down')):
            with self.assertRaises(RuntimeError):
                self.client.post(url, self.submission(), format='json')
        self.assertEqual(self.stored_files(), [])
        self.client_token.refresh_from_db()
        self.assertFalse(self.client_token.is_signed)


class DataURLTests(TestCase):

    def test_decode_valid(self):
        mime, raw = decode_data_url(TestDataFactory.image_data_url())
        self.assertEqual(mime, 'image/png')
        self.assertTrue(raw.startswith(b'\x89PNG'))

    def test_rejects_garbage(self):
        for value in ('', 'hola', 'data:text/plain;base64,aG9sYQ==', 'data:image/png;base64,***'):
            with self.assertRaises(InvalidImageError):
                decode_data_url(value)


class InvoiceAPITests(TestCase):
    """Test invoices, numbering and payments"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(TestDataFactory.create_admin())
        self.customer = TestDataFactory.create_client()

    def test_create_numbers_and_totals(self):
        year = timezone.now().year
        response = self.client.post('/api/v1/invoices/', {
            'user': self.customer.id, 'subtotal': '1000.00', 'tax': '160.00',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['number'], f'FAC-{year}-001')
        self.assertEqual(response.data['total'], '1160.00')

        response = self.client.post('/api/v1/invoices/', {'user': self.customer.id, 'subtotal': '50.00'},
                                    format='json')
        self.assertEqual(response.data['number'], f'FAC-{year}-002')

    def test_number_skips_collisions(self):
        year = timezone.now().year
        invoice = TestDataFactory.create_invoice()
        Invoice.objects.filter(pk=invoice.pk).update(number=f'FAC-{year}-002')
        response = self.client.post('/api/v1/invoices/', {'subtotal': '10.00'}, format='json')
        self.assertEqual(response.data['number'], f'FAC-{year}-003')

    def test_negative_amount_rejected(self):
        response = self.client.post('/api/v1/invoices/', {'subtotal': '-1.00'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_patch_recomputes_total(self):
        invoice = TestDataFactory.create_invoice()
        response = self.client.patch(f'/api/v1/invoices/{invoice.id}/', {'tax': '0.00'}, format='json')
        self.assertEqual(response.data['total'], '1000.00')

    def test_partial_then_full_payment(self):
        invoice = TestDataFactory.create_invoice(subtotal='1000.00', tax='160.00')
        url = f'/api/v1/invoices/{invoice.id}/payments/'

        response = self.client.post(url, {'amount': '600.00', 'method': 'transfer'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['invoice']['status'], Invoice.STATUS_PENDING)

        response = self.client.post(url, {'amount': '560.00', 'method': 'cash', 'reference': 'REC-1'},
                                    format='json')
        self.assertEqual(response.data['invoice']['status'], Invoice.STATUS_PAID)
        self.assertEqual(response.data['invoice']['amount_paid'], '1160.00')
        invoice.refresh_from_db()
        self.assertEqual(invoice.paid_date, timezone.localdate())

        response = self.client.get(url)
        self.assertEqual(len(response.data), 2)

    def test_payment_validation(self):
        invoice = TestDataFactory.create_invoice()
        url = f'/api/v1/invoices/{invoice.id}/payments/'
        self.assertEqual(self.client.post(url, {'amount': '0'}, format='json').status_code,
                         status.HTTP_400_BAD_REQUEST)
        self.assertEqual(self.client.post(url, {'amount': 'abc'}, format='json').status_code,
                         status.HTTP_400_BAD_REQUEST)
        self.assertEqual(self.client.post(url, {'amount': '10', 'method': 'bitcoin'}, format='json').status_code,
                         status.HTTP_400_BAD_REQUEST)

        cancelled = TestDataFactory.create_invoice(status=Invoice.STATUS_CANCELLED)
        response = self.client.post(f'/api/v1/invoices/{cancelled.id}/payments/', {'amount': '10'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_payment_list(self):
        invoice = TestDataFactory.create_invoice()
        TestDataFactory.create_payment(invoice, method='card')
        TestDataFactory.create_payment(invoice, method='cash')
        response = self.client.get('/api/v1/payments/', {'method': 'card'})
        self.assertEqual(response.data['count'], 1)


class FinanceStatsTests(TestCase):

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(TestDataFactory.create_admin())

    def test_stats(self):
        TestDataFactory.create_contract(status=Contract.STATUS_ACTIVE)
        TestDataFactory.create_contract()
        paid = TestDataFactory.create_invoice(status=Invoice.STATUS_PAID)
        TestDataFactory.create_payment(paid, amount='1160.00')
        TestDataFactory.create_invoice(subtotal='500.00', tax='80.00')

        response = self.client.get('/api/v1/finance/stats/')
        self.assertEqual(response.data['totalContracts'], 2)
        self.assertEqual(response.data['activeContracts'], 1)
        self.assertEqual(response.data['totalRevenue'], Decimal('1160.00'))
        self.assertEqual(response.data['pendingAmount'], Decimal('580.00'))
        self.assertEqual(response.data['totalInvoices'], 2)

    def test_report(self):
        frequent = TestDataFactory.create_client(full_name='Cliente Frecuente')
        other = TestDataFactory.create_client(full_name='Otro Cliente')
        for _ in range(3):
            TestDataFactory.create_contract(user=frequent)
        TestDataFactory.create_contract(user=other, status=Contract.STATUS_ACTIVE,
                                        end_date=timezone.localdate() + timedelta(days=10))

        response = self.client.get('/api/v1/finance/report/')
        self.assertEqual(response.data['contractsByStatus'][Contract.STATUS_DRAFT], 3)
        self.assertEqual(response.data['topClients'][0]['name'], 'Cliente Frecuente')
        self.assertEqual(response.data['topClients'][0]['contracts'], 3)
