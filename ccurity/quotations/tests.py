"""
Test suite for the quotations module
Tests: quotation builder, versioning, publishing with Stripe and the payment webhook
"""
import hashlib
import hmac
import json
import time
from decimal import Decimal
from unittest.mock import patch, MagicMock

from django.test import TestCase, override_settings
from rest_framework import status
from rest_framework.test import APIClient

from ccurity.core.models import AuditLog
from ccurity.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from ccurity.quotations import stripe_service
from ccurity.quotations.models import Quotation, QuotationItem, QuotationTab, QuotationTabLink
from ccurity.quotations.views import compute_totals


def stripe_response(payload, status_code=200):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload
    response.text = json.dumps(payload)
    return response


def fake_stripe_post(url, data=None, headers=None, timeout=None):
    """Answer the three calls made while generating a payment link"""
    if url.endswith('/products'):
        return stripe_response({'id': 'prod_123'})
    if url.endswith('/prices'):
        return stripe_response({'id': 'price_123'})
    if url.endswith('/payment_links'):
        return stripe_response({'id': 'plink_123', 'url': 'https://buy.stripe.com/test_123'})
    return stripe_response({'id': 'ok'})


class TotalsTests(TestCase):

    def test_iva_rounding(self):
        self.assertEqual(compute_totals(Decimal('100')), (Decimal('100.00'), Decimal('16.00'), Decimal('116.00')))
        subtotal, tax, total = compute_totals(Decimal('10.03'))
        self.assertEqual(tax, Decimal('1.60'))
        self.assertEqual(total, Decimal('11.63'))


class QuotationBuilderTests(TestCase):
    """Test quotation creation from the builder payload"""

    def setUp(self):
        self.admin = TestDataFactory.create_admin()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)
        self.customer = TestDataFactory.create_client()
        self.camera = TestDataFactory.create_concept(title='Cámara domo', price=Decimal('1200.00'))
        self.cable = TestDataFactory.create_concept(title='Cable UTP', price=Decimal('12.50'), format='ml')

    def payload(self, **overrides):
        data = {
            'client': self.customer.id,
            'title': 'CCTV residencia',
            'tabs': [
                {'temp_id': 't1', 'section': 'equipos', 'label': 'Cámaras'},
                {'temp_id': 't2', 'section': 'materiales', 'label': 'Cableado'},
            ],
            'items': [
                {'concept': self.camera.id, 'tab': 't1', 'quantity': '4', 'unit_price': '1200.00'},
                {'concept': self.cable.id, 'tab': 't2', 'quantity': '100', 'unit_price': '12.50'},
                {'is_custom': True, 'custom_title': 'Configuración NVR', 'tab': 't1',
                 'quantity': '1', 'unit_price': '750.00'},
            ],
            'links': [
                {'source': 't1', 'target': 't2'},
                {'source': 't1', 'target': 'missing'},
            ],
        }
        data.update(overrides)
        return data

    def test_create_full_quotation(self):
        response = self.client.post('/api/v1/quotations/', self.payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

        quotation = Quotation.objects.get(pk=response.data['id'])
        self.assertEqual(quotation.status, Quotation.STATUS_DRAFT)
        self.assertEqual(quotation.version, 1)
        self.assertEqual(quotation.folio, f"COT-{str(quotation.pk)[:6].upper()}-V1")
        # 4800 + 1250 + 750
        self.assertEqual(quotation.subtotal, Decimal('6800.00'))
        self.assertEqual(quotation.tax, Decimal('1088.00'))
        self.assertEqual(quotation.total, Decimal('7888.00'))

        self.assertEqual(quotation.tabs.count(), 2)
        self.assertEqual(quotation.items.count(), 3)
        self.assertEqual(QuotationTabLink.objects.filter(quotation=quotation).count(), 1)

        custom = quotation.items.get(is_custom=True)
        self.assertIsNone(custom.concept)
        self.assertEqual(custom.section, 'equipos')
        self.assertEqual(quotation.items.get(concept=self.cable).total, Decimal('1250.00'))

    def test_unknown_concept_rejected(self):
        payload = self.payload(items=[{'concept': 999999, 'quantity': '1', 'unit_price': '10'}])
        response = self.client.post('/api/v1/quotations/', payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(Quotation.objects.exists())

    def test_custom_item_needs_title(self):
        payload = self.payload(items=[{'is_custom': True, 'quantity': '1', 'unit_price': '10'}])
        response = self.client.post('/api/v1/quotations/', payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_title_required(self):
        response = self.client.post('/api/v1/quotations/', {'client': self.customer.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_creation_is_audited(self):
        self.client.post('/api/v1/quotations/', self.payload(), format='json')
        self.assertTrue(AuditLog.objects.filter(model_name='Quotation', action='create').exists())

    def test_list_search_and_status(self):
        TestDataFactory.create_quotation(title='Alarma bodega', status=Quotation.STATUS_SENT)
        TestDataFactory.create_quotation(title='CCTV local')
        response = self.client.get('/api/v1/quotations/', {'search': 'alarma'})
        self.assertEqual(response.data['count'], 1)
        response = self.client.get('/api/v1/quotations/', {'status': Quotation.STATUS_DRAFT})
        self.assertEqual(response.data['results'][0]['title'], 'CCTV local')

    def test_non_admin_forbidden(self):
        client = AuthenticatedAPIClient()
        client.authenticate_user(TestDataFactory.create_supervisor())
        response = client.get('/api/v1/quotations/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_update_status(self):
        quotation = TestDataFactory.create_quotation()
        response = self.client.post(f'/api/v1/quotations/{quotation.pk}/status/', {'status': 'ACCEPTED'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        response = self.client.post(f'/api/v1/quotations/{quotation.pk}/status/', {'status': 'LOST'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_delete(self):
        quotation = TestDataFactory.create_quotation(items=[('1', '100.00')])
        response = self.client.delete(f'/api/v1/quotations/{quotation.pk}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(QuotationItem.objects.exists())


class QuotationVersionTests(TestCase):
    """Test duplication into versions of the same family"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(TestDataFactory.create_admin())
        self.original = TestDataFactory.create_quotation(items=[('2', '500.00'), ('1', '300.00')])
        second_tab = QuotationTab.objects.create(quotation=self.original, section='materiales', label='Tubería')
        QuotationTabLink.objects.create(quotation=self.original, source_tab=self.original.tabs.first(),
                                        target_tab=second_tab)

    def test_duplicate_copies_structure(self):
        response = self.client.post(f'/api/v1/quotations/{self.original.pk}/duplicate/')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

        copy = Quotation.objects.get(pk=response.data['id'])
        self.assertEqual(copy.version, 2)
        self.assertEqual(copy.parent, self.original)
        self.assertEqual(copy.status, Quotation.STATUS_DRAFT)
        self.assertEqual(copy.folio, f"COT-{str(self.original.pk)[:6].upper()}-V2")
        self.assertEqual(copy.tabs.count(), 2)
        self.assertEqual(copy.items.count(), 2)
        self.assertEqual(copy.tab_links.count(), 1)

        # Items point at the copied tabs, not the original ones
        copied_tab_ids = set(copy.tabs.values_list('id', flat=True))
        self.assertTrue(all(item.tab_id in copied_tab_ids for item in copy.items.all()))
        self.assertEqual(copy.items.get(quantity=Decimal('2')).total, Decimal('1000.00'))

    def test_duplicating_a_version_stays_in_the_family(self):
        first = self.client.post(f'/api/v1/quotations/{self.original.pk}/duplicate/')
        second = self.client.post(f"/api/v1/quotations/{first.data['id']}/duplicate/")
        self.assertEqual(second.data['version'], 3)
        self.assertEqual(str(second.data['parent']), str(self.original.pk))

        response = self.client.get(f"/api/v1/quotations/{second.data['id']}/versions/")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([v['version'] for v in response.data], [1, 2, 3])


@override_settings(STRIPE_SECRET_KEY='sk_test_123', STRIPE_API_BASE='https://api.stripe.com/v1')
class QuotationPublishTests(TestCase):
    """Test publishing with payment links"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(TestDataFactory.create_admin())

    @patch('ccurity.quotations.stripe_service.requests.post', side_effect=fake_stripe_post)
    def test_publish_creates_payment_link(self, mock_post):
        quotation = TestDataFactory.create_quotation(items=[('2', '500.00')])
        response = self.client.post(f'/api/v1/quotations/{quotation.pk}/publish/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        quotation.refresh_from_db()
        self.assertTrue(quotation.is_published)
        self.assertEqual(quotation.total, Decimal('1160.00'))
        self.assertEqual(quotation.stripe_payment_link_id, 'plink_123')
        self.assertEqual(quotation.stripe_payment_link_url, 'https://buy.stripe.com/test_123')
        self.assertEqual(quotation.payment_status, 'pending')
        self.assertEqual(mock_post.call_count, 3)

        price_call = mock_post.call_args_list[1]
        self.assertEqual(price_call.kwargs['data']['unit_amount'], '116000')
        self.assertNotIn('recurring[interval]', price_call.kwargs['data'])
        link_call = mock_post.call_args_list[2]
        self.assertIn(quotation.published_token, link_call.kwargs['data']['after_completion[redirect][url]'])

    @patch('ccurity.quotations.stripe_service.requests.post', side_effect=fake_stripe_post)
    def test_recurring_price(self, mock_post):
        quotation = TestDataFactory.create_quotation(items=[('1', '800.00')], payment_type='recurring')
        self.client.post(f'/api/v1/quotations/{quotation.pk}/publish/')
        self.assertEqual(mock_post.call_args_list[1].kwargs['data']['recurring[interval]'], 'month')

    @patch('ccurity.quotations.stripe_service.requests.post')
    def test_zero_total_skips_stripe(self, mock_post):
        quotation = TestDataFactory.create_quotation()
        response = self.client.post(f'/api/v1/quotations/{quotation.pk}/publish/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        mock_post.assert_not_called()
        quotation.refresh_from_db()
        self.assertTrue(quotation.is_published)
        self.assertIsNone(quotation.payment_status)

    @patch('ccurity.quotations.stripe_service.requests.post')
    def test_stripe_failure_still_publishes(self, mock_post):
        mock_post.return_value = stripe_response({'error': {'message': 'Invalid API Key'}}, status_code=401)
        quotation = TestDataFactory.create_quotation(items=[('1', '100.00')])
        response = self.client.post(f'/api/v1/quotations/{quotation.pk}/publish/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        quotation.refresh_from_db()
        self.assertTrue(quotation.is_published)
        self.assertIsNone(quotation.stripe_payment_link_url)

    @patch('ccurity.quotations.stripe_service.requests.post', side_effect=fake_stripe_post)
    def test_republish_rotates_token(self, mock_post):
        quotation = TestDataFactory.create_quotation(items=[('1', '100.00')])
        first = self.client.post(f'/api/v1/quotations/{quotation.pk}/publish/').data['published_token']
        second = self.client.post(f'/api/v1/quotations/{quotation.pk}/publish/').data['published_token']
        self.assertNotEqual(first, second)

    @patch('ccurity.quotations.stripe_service.requests.post', side_effect=fake_stripe_post)
    def test_unpublish_deactivates_stripe_objects(self, mock_post):
        quotation = TestDataFactory.create_quotation(items=[('1', '100.00')])
        self.client.post(f'/api/v1/quotations/{quotation.pk}/publish/')
        mock_post.reset_mock()

        response = self.client.post(f'/api/v1/quotations/{quotation.pk}/unpublish/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        urls = [c.args[0] for c in mock_post.call_args_list]
        self.assertTrue(urls[0].endswith('/payment_links/plink_123'))
        self.assertTrue(urls[1].endswith('/products/prod_123'))

        quotation.refresh_from_db()
        self.assertFalse(quotation.is_published)
        self.assertIsNone(quotation.stripe_payment_link_id)
        self.assertIsNone(quotation.payment_status)

    def test_mark_paid(self):
        quotation = TestDataFactory.create_quotation()
        response = self.client.post(f'/api/v1/quotations/{quotation.pk}/mark-paid/')
        self.assertEqual(response.data['payment_status'], 'paid')


@override_settings(STRIPE_SECRET_KEY='')
class UnconfiguredStripeTests(TestCase):

    @patch.dict('os.environ', {'STRIPE_SECRET_KEY': ''})
    @patch('ccurity.quotations.stripe_service.requests.post')
    def test_publish_without_stripe(self, mock_post):
        client = AuthenticatedAPIClient()
        client.authenticate_user(TestDataFactory.create_admin())
        quotation = TestDataFactory.create_quotation(items=[('1', '100.00')])
        response = client.post(f'/api/v1/quotations/{quotation.pk}/publish/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        mock_post.assert_not_called()
        self.assertIsNotNone(response.data['published_token'])


class PublicQuotationTests(TestCase):

    def setUp(self):
        self.client = APIClient()

    def test_public_view(self):
        quotation = TestDataFactory.create_quotation(items=[('1', '100.00')], published_token='tok-abc')
        response = self.client.get('/api/v1/public/quotations/tok-abc/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['folio'], quotation.folio)
        self.assertEqual(len(response.data['items']), 1)
        self.assertIn('company', response.data)
        self.assertNotIn('client', response.data)

    def test_unknown_token(self):
        response = self.client.get('/api/v1/public/quotations/nope/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


class StripeWebhookTests(TestCase):
    """Test Stripe events updating payment status"""

    def setUp(self):
        self.client = APIClient()
        self.quotation = TestDataFactory.create_quotation(
            stripe_payment_link_id='plink_abc', payment_status='pending'
        )

    def post_event(self, event, **headers):
        return self.client.post('/api/v1/stripe/webhook/', data=json.dumps(event),
                                content_type='application/json', **headers)

    def test_checkout_completed_marks_paid(self):
        response = self.post_event({
            'type': 'checkout.session.completed',
            'data': {'object': {'payment_link': 'plink_abc', 'payment_intent': 'pi_1'}},
        })
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data, {'received': True})
        self.quotation.refresh_from_db()
        self.assertEqual(self.quotation.payment_status, 'paid')
        self.assertEqual(self.quotation.stripe_payment_intent_id, 'pi_1')

    def test_intent_events(self):
        self.quotation.stripe_payment_intent_id = 'pi_2'
        self.quotation.save()

        self.post_event({'type': 'payment_intent.payment_failed', 'data': {'object': {'id': 'pi_2'}}})
        self.quotation.refresh_from_db()
        self.assertEqual(self.quotation.payment_status, 'failed')

        self.post_event({'type': 'payment_intent.succeeded', 'data': {'object': {'id': 'pi_2'}}})
        self.quotation.refresh_from_db()
        self.assertEqual(self.quotation.payment_status, 'paid')

        self.post_event({'type': 'charge.refunded', 'data': {'object': {'payment_intent': 'pi_2'}}})
        self.quotation.refresh_from_db()
        self.assertEqual(self.quotation.payment_status, 'refunded')

    def test_unknown_event_is_acknowledged(self):
        response = self.post_event({'type': 'customer.created', 'data': {'object': {}}})
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_invalid_json(self):
        response = self.client.post('/api/v1/stripe/webhook/', data='not json', content_type='application/json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    @override_settings(STRIPE_WEBHOOK_SECRET='whsec_test')
    def test_signature(self):
        event = {'type': 'checkout.session.completed', 'data': {'object': {'payment_link': 'plink_abc'}}}
        body = json.dumps(event)
        timestamp = str(int(time.time()))
        digest = hmac.new(b'whsec_test', f"{timestamp}.{body}".encode(), hashlib.sha256).hexdigest()

        response = self.post_event(event, HTTP_STRIPE_SIGNATURE=f't={timestamp},v1=deadbeef')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Invalid signature')

        response = self.post_event(event, HTTP_STRIPE_SIGNATURE=f't={timestamp},v1={digest}')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.quotation.refresh_from_db()
        self.assertEqual(self.quotation.payment_status, 'paid')

    def test_signature_helper(self):
        self.assertFalse(stripe_service.verify_webhook_signature(b'{}', 'garbage', 'secret'))

    def test_non_object_bodies_rejected(self):
        for event in ([], 1, 'texto', {'type': 'payment_intent.succeeded', 'data': []},
                      {'type': 'payment_intent.succeeded', 'data': {'object': 'pi_2'}}):
            response = self.post_event(event)
            self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
            self.assertEqual(response.data['error'], 'Invalid JSON')

    def test_any_rotated_signature_matches(self):
        body = b'{"type": "customer.created"}'
        timestamp = str(int(time.time()))
        digest = hmac.new(b'whsec_new', f"{timestamp}.".encode() + body, hashlib.sha256).hexdigest()
        header = f't={timestamp},v1=0badc0ffee,v1={digest},v0=legacy'
        self.assertTrue(stripe_service.verify_webhook_signature(body, header, 'whsec_new'))
        self.assertFalse(stripe_service.verify_webhook_signature(body, f't={timestamp},v1=0badc0ffee', 'whsec_new'))


class QuotationStatsTests(TestCase):

    def test_stats(self):
        client = AuthenticatedAPIClient()
        client.authenticate_user(TestDataFactory.create_admin())
        accepted = TestDataFactory.create_quotation(status=Quotation.STATUS_ACCEPTED)
        Quotation.objects.filter(pk=accepted.pk).update(total=Decimal('1160.00'))
        TestDataFactory.create_quotation(status=Quotation.STATUS_SENT, published_token='tok-1')
        TestDataFactory.create_quotation()

        response = client.get('/api/v1/quotations/stats/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total'], 3)
        self.assertEqual(response.data['accepted'], 1)
        self.assertEqual(response.data['sent'], 1)
        self.assertEqual(response.data['draft'], 1)
        self.assertEqual(response.data['published'], 1)
        self.assertEqual(Decimal(response.data['totalValue']), Decimal('1160.00'))
