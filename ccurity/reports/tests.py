"""
Test suite for the reports module
Tests: dashboards, notifications, calendar, activity and the client portal
"""
from datetime import datetime, timedelta
from decimal import Decimal

from django.core.cache import cache
from django.test import TestCase
from django.utils import timezone
from rest_framework import status

from ccurity.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from ccurity.finance.models import Contract, Invoice
from ccurity.services.models import ServiceState


class ReportsTestCase(TestCase):
    """Dashboards are cached; every test starts from an empty cache"""

    def setUp(self):
        cache.clear()
        self.admin = TestDataFactory.create_admin()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)

    def tearDown(self):
        cache.clear()


class AdminDashboardTests(ReportsTestCase):

    def test_dashboard(self):
        TestDataFactory.create_client()
        TestDataFactory.create_service(state_name=ServiceState.BIDDING)
        TestDataFactory.create_quotation(status='ACCEPTED')

        response = self.client.get('/api/v1/reports/admin-dashboard/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['users']['ADMIN'], 1)
        self.assertEqual(response.data['users']['CLIENT'], 1)
        self.assertEqual(response.data['services']['total'], 1)
        self.assertEqual(response.data['quotations']['accepted'], 1)
        self.assertIn('totalRevenue', response.data['finance'])
        self.assertEqual(response.data['pendingApplications'], 0)

    def test_dashboard_is_cached_until_data_changes(self):
        first = self.client.get('/api/v1/reports/admin-dashboard/')
        self.assertEqual(first.data['services']['total'], 0)

        # Without a commit the cached payload is served
        TestDataFactory.create_service()
        cached = self.client.get('/api/v1/reports/admin-dashboard/')
        self.assertEqual(cached.data['services']['total'], 0)

        with self.captureOnCommitCallbacks(execute=True):
            TestDataFactory.create_service()
        fresh = self.client.get('/api/v1/reports/admin-dashboard/')
        self.assertEqual(fresh.data['services']['total'], 2)

    def test_admin_only(self):
        client = AuthenticatedAPIClient()
        client.authenticate_user(TestDataFactory.create_supervisor())
        self.assertEqual(client.get('/api/v1/reports/admin-dashboard/').status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(client.get('/api/v1/reports/overview/').status_code, status.HTTP_403_FORBIDDEN)


class OverviewTests(ReportsTestCase):

    def test_overview(self):
        cctv = TestDataFactory.create_service_type(name='CCTV')
        TestDataFactory.create_service(service_type=cctv, state_name=ServiceState.COMPLETED)
        TestDataFactory.create_service(service_type=cctv)
        TestDataFactory.create_service()
        invoice = TestDataFactory.create_invoice(due_date=timezone.localdate() - timedelta(days=3))
        TestDataFactory.create_payment(invoice, amount='300.00', method='card')

        response = self.client.get('/api/v1/reports/overview/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['servicesByType']['CCTV'], 2)
        self.assertEqual(response.data['servicesByType']['Sin asignar'], 1)
        self.assertEqual(sum(response.data['servicesPerMonth'].values()), 3)
        self.assertEqual(response.data['payments']['total'], Decimal('300.00'))
        self.assertEqual(response.data['payments']['byMethod']['card'], 1)
        self.assertEqual(response.data['invoices']['overdue'], 1)


class NotificationTests(ReportsTestCase):

    def test_alerts_and_reminders(self):
        today = timezone.localdate()
        TestDataFactory.create_invoice(due_date=today - timedelta(days=1))
        TestDataFactory.create_invoice(due_date=today - timedelta(days=1), status=Invoice.STATUS_PAID)
        TestDataFactory.create_contract(status=Contract.STATUS_ACTIVE, end_date=today + timedelta(days=10))
        TestDataFactory.create_contract(status=Contract.STATUS_ACTIVE, end_date=today + timedelta(days=90))
        TestDataFactory.create_service(scheduled_date=timezone.now() + timedelta(days=2))
        TestDataFactory.create_service(scheduled_date=timezone.now() + timedelta(days=20))
        bidding = TestDataFactory.create_service(state_name=ServiceState.BIDDING)
        TestDataFactory.create_application(bidding, TestDataFactory.create_collaborator())

        response = self.client.get('/api/v1/reports/notifications/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['overdueInvoices']), 1)
        self.assertEqual(len(response.data['expiringContracts']), 1)
        self.assertEqual(len(response.data['upcomingServices']), 1)
        self.assertEqual(len(response.data['pendingApplications']), 1)
        self.assertEqual(response.data['totalAlerts'], 2)
        self.assertEqual(response.data['totalReminders'], 2)


class CalendarTests(ReportsTestCase):

    def test_month_view(self):
        tz = timezone.get_current_timezone()
        TestDataFactory.create_service(title='Visita marzo',
                                       scheduled_date=timezone.make_aware(datetime(2025, 3, 15, 12, 0), tz))
        TestDataFactory.create_service(title='Visita abril',
                                       scheduled_date=timezone.make_aware(datetime(2025, 4, 2, 9, 0), tz))
        TestDataFactory.create_contract(status=Contract.STATUS_ACTIVE, end_date=datetime(2025, 3, 31).date())

        supervisor_client = AuthenticatedAPIClient()
        supervisor_client.authenticate_user(TestDataFactory.create_supervisor())
        response = supervisor_client.get('/api/v1/reports/calendar/', {'year': 2025, 'month': 3})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(list(response.data['servicesByDay'].keys()), ['2025-03-15'])
        self.assertEqual(response.data['servicesByDay']['2025-03-15'][0]['title'], 'Visita marzo')
        self.assertEqual(len(response.data['contractsEnding']), 1)

    def test_december_rolls_over(self):
        tz = timezone.get_current_timezone()
        TestDataFactory.create_service(scheduled_date=timezone.make_aware(datetime(2024, 12, 31, 18, 0), tz))
        response = self.client.get('/api/v1/reports/calendar/', {'year': 2024, 'month': 12})
        self.assertIn('2024-12-31', response.data['servicesByDay'])

    def test_invalid_params(self):
        response = self.client.get('/api/v1/reports/calendar/', {'month': 13})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        response = self.client.get('/api/v1/reports/calendar/', {'year': 'dos mil'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_collaborator_forbidden(self):
        client = AuthenticatedAPIClient()
        client.authenticate_user(TestDataFactory.create_collaborator())
        self.assertEqual(client.get('/api/v1/reports/calendar/').status_code, status.HTTP_403_FORBIDDEN)


class ActivityTests(ReportsTestCase):

    def test_timeline_is_newest_first(self):
        TestDataFactory.create_service(title='Servicio reciente')
        TestDataFactory.create_contract(title='Contrato reciente')
        response = self.client.get('/api/v1/reports/activity/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        types = {entry['type'] for entry in response.data}
        self.assertTrue({'user', 'service', 'contract'} <= types)
        dates = [entry['created_at'] for entry in response.data]
        self.assertEqual(dates, sorted(dates, reverse=True))


class RoleDashboardTests(ReportsTestCase):

    def test_supervisor_dashboard(self):
        supervisor = TestDataFactory.create_supervisor()
        TestDataFactory.create_service(state_name=ServiceState.BIDDING)
        TestDataFactory.create_service(state_name=ServiceState.ASSIGNED)
        TestDataFactory.create_collaborator()
        client = AuthenticatedAPIClient()
        client.authenticate_user(supervisor)

        response = client.get('/api/v1/reports/supervisor-dashboard/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['biddingServices'], 1)
        self.assertEqual(response.data['assignedServices'], 1)
        self.assertEqual(response.data['collaborators'], 1)
        self.assertEqual(len(response.data['recentBidding']), 1)

    def test_collaborator_dashboard(self):
        collaborator = TestDataFactory.create_collaborator()
        TestDataFactory.create_service(collaborator=collaborator)
        bidding = TestDataFactory.create_service(state_name=ServiceState.BIDDING)
        TestDataFactory.create_application(bidding, collaborator)
        TestDataFactory.create_collaborator_price(collaborator, TestDataFactory.create_concept())
        client = AuthenticatedAPIClient()
        client.authenticate_user(collaborator)

        response = client.get('/api/v1/reports/collaborator-dashboard/')
        self.assertEqual(response.data['assignedServices'], 1)
        self.assertEqual(response.data['openServices'], 1)
        self.assertEqual(response.data['pendingApplications'], 1)
        self.assertEqual(response.data['prices'], 1)

    def test_client_portal_is_scoped_to_caller(self):
        customer = TestDataFactory.create_client()
        other = TestDataFactory.create_client()
        TestDataFactory.create_service(client=customer)
        TestDataFactory.create_service(client=other)
        TestDataFactory.create_contract(user=customer, status=Contract.STATUS_ACTIVE)
        invoice = TestDataFactory.create_invoice(user=customer)
        TestDataFactory.create_payment(invoice, amount='400.00')
        TestDataFactory.create_invoice(user=other)

        client = AuthenticatedAPIClient()
        client.authenticate_user(customer)
        response = client.get('/api/v1/reports/client-portal/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['services'], 1)
        self.assertEqual(response.data['activeContracts'], 1)
        self.assertEqual(response.data['invoices'], 1)
        self.assertEqual(response.data['pendingInvoices'], 1)
        self.assertEqual(response.data['totalPaid'], Decimal('400.00'))
        self.assertEqual(len(response.data['recentPayments']), 1)

    def test_client_portal_requires_login(self):
        client = AuthenticatedAPIClient()
        self.assertEqual(client.get('/api/v1/reports/client-portal/').status_code, status.HTTP_401_UNAUTHORIZED)


class BulkUpdateInvalidationTests(ReportsTestCase):
    """Writes that bypass model signals still refresh the dashboards"""

    def test_mark_read_refreshes_unread_count(self):
        supervisor = TestDataFactory.create_supervisor()
        colleague = TestDataFactory.create_collaborator()
        conversation = TestDataFactory.create_conversation(supervisor, colleague)
        TestDataFactory.create_message(conversation, colleague)
        client = AuthenticatedAPIClient()
        client.authenticate_user(supervisor)

        before = client.get('/api/v1/reports/supervisor-dashboard/')
        self.assertEqual(before.data['unreadMessages'], 1)

        with self.captureOnCommitCallbacks(execute=True):
            client.post(f'/api/v1/conversations/{conversation.id}/read/')
        after = client.get('/api/v1/reports/supervisor-dashboard/')
        self.assertEqual(after.data['unreadMessages'], 0)

    def test_collaborator_price_upsert_refreshes_dashboard(self):
        collaborator = TestDataFactory.create_collaborator()
        concept = TestDataFactory.create_concept()
        client = AuthenticatedAPIClient()
        client.authenticate_user(collaborator)

        self.assertEqual(client.get('/api/v1/reports/collaborator-dashboard/').data['prices'], 0)
        with self.captureOnCommitCallbacks(execute=True):
            client.post('/api/v1/collaborator-prices/', {'concept': concept.id, 'custom_price': '90.00'},
                        format='json')
        self.assertEqual(client.get('/api/v1/reports/collaborator-dashboard/').data['prices'], 1)

    def test_bulk_role_change_refreshes_admin_dashboard(self):
        customer = TestDataFactory.create_client()
        self.assertEqual(self.client.get('/api/v1/reports/admin-dashboard/').data['users']['CLIENT'], 1)

        with self.captureOnCommitCallbacks(execute=True):
            self.client.post('/api/v1/users/bulk/', {'action': 'role', 'ids': [customer.id], 'role': 'COLAB'},
                             format='json')
        users = self.client.get('/api/v1/reports/admin-dashboard/').data['users']
        self.assertNotIn('CLIENT', users)
        self.assertEqual(users['COLAB'], 1)
