"""
Test suite for the core module
Tests: authentication, role routing, user administration, company settings and audit logs
"""
from io import StringIO

from django.core.cache import cache
from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import TestCase
from django.utils import timezone
from rest_framework import status

from ccurity.core.cache_utils import cached_query, invalidate_reports_cache, make_cache_key, REPORTS_PREFIX
from ccurity.core.models import AuditLog, CompanySettings, User
from ccurity.core.permissions import check_route_access, home_route
from ccurity.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from ccurity.core.utils import create_audit_log, parse_id_list


class RouteAccessTests(TestCase):
    """Test the role to route matrix"""

    def test_home_routes(self):
        """Each role lands on its own area"""
        self.assertEqual(home_route(TestDataFactory.create_admin()), '/admin')
        self.assertEqual(home_route(TestDataFactory.create_supervisor()), '/supervisor')
        self.assertEqual(home_route(TestDataFactory.create_collaborator()), '/colaborador')
        self.assertEqual(home_route(TestDataFactory.create_client()), '/portal')

    def test_public_routes_always_allowed(self):
        result = check_route_access(None, '/cotizacion/abc')
        self.assertTrue(result['allowed'])

    def test_anonymous_redirected_to_login(self):
        result = check_route_access(None, '/admin/usuarios')
        self.assertFalse(result['allowed'])
        self.assertEqual(result['redirect'], '/login?redirect=/admin/usuarios')

    def test_supervisor_can_open_collaborator_area(self):
        supervisor = TestDataFactory.create_supervisor()
        self.assertTrue(check_route_access(supervisor, '/colaborador/servicios')['allowed'])
        denied = check_route_access(supervisor, '/admin')
        self.assertFalse(denied['allowed'])
        self.assertEqual(denied['redirect'], '/supervisor')

    def test_client_limited_to_portal(self):
        client = TestDataFactory.create_client()
        self.assertTrue(check_route_access(client, '/portal/facturas')['allowed'])
        self.assertEqual(check_route_access(client, '/colaborador')['redirect'], '/portal')


class AuthAPITests(TestCase):
    """Test registration, login and profile endpoints"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()

    def test_register_client(self):
        """Registration creates a CLIENT and returns tokens"""
        response = self.client.post('/api/v1/auth/register/', {
            'email': 'Nuevo@Ejemplo.com',
            'password': 'Segura#2024x',
            'password_confirm': 'Segura#2024x',
            'full_name': 'Cliente Nuevo',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertIn('access', response.data)
        self.assertEqual(response.data['redirect'], '/portal')
        user = User.objects.get(email='nuevo@ejemplo.com')
        self.assertEqual(user.role, User.ROLE_CLIENT)

    def test_register_cannot_choose_admin(self):
        response = self.client.post('/api/v1/auth/register/', {
            'email': 'malicioso@ejemplo.com',
            'password': 'Segura#2024x',
            'password_confirm': 'Segura#2024x',
            'role': User.ROLE_ADMIN,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_register_password_mismatch(self):
        response = self.client.post('/api/v1/auth/register/', {
            'email': 'otro@ejemplo.com',
            'password': 'Segura#2024x',
            'password_confirm': 'Distinta#2024x',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_login_with_email(self):
        """Login by email returns role and redirect"""
        TestDataFactory.create_supervisor(email='super@test.com', password='testpass123')
        response = self.client.post('/api/v1/auth/login/', {
            'email': 'super@test.com',
            'password': 'testpass123',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['role'], User.ROLE_SUPER)
        self.assertEqual(response.data['redirect'], '/supervisor')

    def test_login_wrong_password(self):
        TestDataFactory.create_client(email='cliente@test.com')
        response = self.client.post('/api/v1/auth/login/', {
            'username': 'cliente@test.com',
            'password': 'incorrecta',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_me_requires_authentication(self):
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_me_returns_allowed_prefixes(self):
        user = TestDataFactory.create_collaborator()
        self.client.authenticate_user(user)
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['home'], '/colaborador')
        self.assertEqual(response.data['allowed_prefixes'], ['/colaborador'])

    def test_me_patch_ignores_role(self):
        """Profile updates cannot change the role"""
        user = TestDataFactory.create_client()
        self.client.authenticate_user(user)
        response = self.client.patch('/api/v1/auth/me/', {'full_name': 'Nombre Nuevo', 'role': 'ADMIN'},
                                     format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        user.refresh_from_db()
        self.assertEqual(user.full_name, 'Nombre Nuevo')
        self.assertEqual(user.role, User.ROLE_CLIENT)

    def test_route_access_endpoint(self):
        self.client.authenticate_user(TestDataFactory.create_client())
        response = self.client.get('/api/v1/auth/route-access/', {'path': '/admin'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['allowed'])
        self.assertEqual(response.data['redirect'], '/portal')


class UserAdminAPITests(TestCase):
    """Test user administration endpoints"""

    def setUp(self):
        self.admin = TestDataFactory.create_admin()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)

    def test_list_requires_admin(self):
        other = AuthenticatedAPIClient()
        other.authenticate_user(TestDataFactory.create_supervisor())
        response = other.get('/api/v1/users/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_list_filters_by_role(self):
        TestDataFactory.create_client()
        TestDataFactory.create_collaborator()
        response = self.client.get('/api/v1/users/', {'role': User.ROLE_COLAB})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['role'], User.ROLE_COLAB)

    def test_cannot_delete_self(self):
        response = self.client.delete(f'/api/v1/users/{self.admin.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertTrue(User.objects.filter(pk=self.admin.pk).exists())

    def test_delete_user(self):
        user = TestDataFactory.create_client()
        response = self.client.delete(f'/api/v1/users/{user.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(User.objects.filter(pk=user.pk).exists())

    def test_toggle_active(self):
        user = TestDataFactory.create_client()
        response = self.client.post(f'/api/v1/users/{user.id}/toggle-active/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        user.refresh_from_db()
        self.assertFalse(user.is_active)

    def test_invite_creates_user_without_password(self):
        response = self.client.post('/api/v1/users/invite/', {
            'email': 'invitado@test.com',
            'full_name': 'Invitado',
            'role': User.ROLE_COLAB,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        user = User.objects.get(email='invitado@test.com')
        self.assertFalse(user.has_usable_password())
        self.assertTrue(AuditLog.objects.filter(action='invite', object_id=str(user.id)).exists())

    def test_bulk_role_change(self):
        users = [TestDataFactory.create_client() for _ in range(3)]
        response = self.client.post('/api/v1/users/bulk/', {
            'action': 'role',
            'ids': [u.id for u in users],
            'role': User.ROLE_COLAB,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['affected'], 3)
        self.assertEqual(User.objects.filter(role=User.ROLE_COLAB).count(), 3)

    def test_bulk_delete_skips_self(self):
        user = TestDataFactory.create_client()
        response = self.client.post('/api/v1/users/bulk/', {
            'action': 'delete',
            'ids': [user.id, self.admin.id],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['affected'], 1)
        self.assertTrue(User.objects.filter(pk=self.admin.pk).exists())

    def test_bulk_invalid_action(self):
        response = self.client.post('/api/v1/users/bulk/', {'action': 'explode', 'ids': [1]}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_stats(self):
        TestDataFactory.create_client()
        TestDataFactory.create_client(is_active=False)
        response = self.client.get('/api/v1/users/stats/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total'], 3)
        self.assertEqual(response.data['active'], 2)
        self.assertEqual(response.data['by_role'][User.ROLE_CLIENT], 2)

    def test_export_csv(self):
        TestDataFactory.create_client(full_name='Cliente Exportado')
        response = self.client.get('/api/v1/users/export/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('text/csv', response['Content-Type'])
        self.assertIn('Cliente Exportado', response.content.decode('utf-8'))


class ClientAPITests(TestCase):
    """Test the client picker used by the quotation builder"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(TestDataFactory.create_supervisor())

    def test_list_only_clients(self):
        TestDataFactory.create_client()
        TestDataFactory.create_collaborator()
        response = self.client.get('/api/v1/clients/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)

    def test_inline_create(self):
        response = self.client.post('/api/v1/clients/', {'name': 'Empresa XYZ', 'email': 'xyz@test.com'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['role'], User.ROLE_CLIENT)

    def test_inline_create_duplicate_email(self):
        TestDataFactory.create_client(email='dup@test.com')
        response = self.client.post('/api/v1/clients/', {'name': 'Dup', 'email': 'dup@test.com'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_client_detail_groups_related_records(self):
        customer = TestDataFactory.create_client()
        other = TestDataFactory.create_client()
        TestDataFactory.create_contract(user=customer, title='Monitoreo anual')
        TestDataFactory.create_service(client=customer)
        TestDataFactory.create_service(client=other)
        TestDataFactory.create_quotation(client=customer)

        admin_client = AuthenticatedAPIClient()
        admin_client.authenticate_user(TestDataFactory.create_admin())
        response = admin_client.get(f'/api/v1/clients/{customer.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['client']['id'], customer.id)
        self.assertEqual([c['title'] for c in response.data['contracts']], ['Monitoreo anual'])
        self.assertEqual(len(response.data['services']), 1)
        self.assertEqual(len(response.data['quotations']), 1)

    def test_client_detail_only_for_clients_and_admins(self):
        collaborator = TestDataFactory.create_collaborator()
        admin_client = AuthenticatedAPIClient()
        admin_client.authenticate_user(TestDataFactory.create_admin())
        self.assertEqual(admin_client.get(f'/api/v1/clients/{collaborator.id}/').status_code,
                         status.HTTP_404_NOT_FOUND)

        customer = TestDataFactory.create_client()
        self.assertEqual(self.client.get(f'/api/v1/clients/{customer.id}/').status_code,
                         status.HTTP_403_FORBIDDEN)


class CompanySettingsAPITests(TestCase):
    """Test the singleton company profile"""

    def test_load_creates_singleton(self):
        first = CompanySettings.load()
        second = CompanySettings.load()
        self.assertEqual(first.pk, second.pk)

    def test_only_admin_updates(self):
        client = AuthenticatedAPIClient()
        client.authenticate_user(TestDataFactory.create_client())
        self.assertEqual(client.get('/api/v1/company-settings/').status_code, status.HTTP_200_OK)
        response = client.patch('/api/v1/company-settings/', {'name': 'Hack'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        client.authenticate_user(TestDataFactory.create_admin())
        response = client.patch('/api/v1/company-settings/', {'rfc': 'CCU200101AB1'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(CompanySettings.load().rfc, 'CCU200101AB1')


class AuditLogTests(TestCase):
    """Test audit logging helpers and endpoints"""

    def test_create_audit_log_skips_missing_fields(self):
        self.assertIsNone(create_audit_log(action='create', model_name='User'))

    def test_non_admin_sees_own_logs(self):
        user = TestDataFactory.create_client()
        other = TestDataFactory.create_client()
        create_audit_log(user=user, action='update', model_name='User', object_id=user.id)
        create_audit_log(user=other, action='update', model_name='User', object_id=other.id)

        client = AuthenticatedAPIClient()
        client.authenticate_user(user)
        response = client.get('/api/v1/audit-logs/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)

    def test_date_filters(self):
        admin = TestDataFactory.create_admin()
        create_audit_log(user=admin, action='update', model_name='User', object_id=admin.id)
        client = AuthenticatedAPIClient()
        client.authenticate_user(admin)
        today = timezone.localdate().isoformat()

        response = client.get('/api/v1/audit-logs/', {'date_from': today, 'date_to': today})
        self.assertEqual(response.data['count'], 1)
        response = client.get('/api/v1/audit-logs/', {'date_from': '2099-01-01'})
        self.assertEqual(response.data['count'], 0)

        for bad in ({'date_from': 'abc'}, {'date_to': '2025-13-45'}):
            response = client.get('/api/v1/audit-logs/', bad)
            self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_parse_id_list(self):
        self.assertEqual(parse_id_list([4, None, '', 5]), [4, 5])
        self.assertEqual(parse_id_list('1,2'), [])
        self.assertEqual(parse_id_list(None), [])


class CacheUtilsTests(TestCase):
    """Test the report cache helpers"""

    def setUp(self):
        cache.clear()

    def test_make_cache_key_is_stable(self):
        self.assertEqual(make_cache_key('reports', 1, a=2), make_cache_key('reports', 1, a=2))
        self.assertNotEqual(make_cache_key('reports', 1), make_cache_key('reports', 2))

    def test_cached_query_and_invalidation(self):
        calls = []

        @cached_query(cache_ttl=60, key_prefix=f'{REPORTS_PREFIX}_test')
        def build():
            calls.append(1)
            return {'value': len(calls)}

        self.assertEqual(build(), {'value': 1})
        self.assertEqual(build(), {'value': 1})
        invalidate_reports_cache()
        self.assertEqual(build(), {'value': 2})


class CreateAdminCommandTests(TestCase):

    def test_creates_new_admin(self):
        call_command('create_admin', 'Jefa@Ccurity.mx', '--password', 'S3gura!2025', '--name', 'Jefa', stdout=StringIO())
        user = User.objects.get(email='jefa@ccurity.mx')
        self.assertEqual(user.role, User.ROLE_ADMIN)
        self.assertTrue(user.is_staff)
        self.assertTrue(user.check_password('S3gura!2025'))

    def test_promotes_existing_account(self):
        user = TestDataFactory.create_client()
        call_command('create_admin', user.email, stdout=StringIO())
        user.refresh_from_db()
        self.assertEqual(user.role, User.ROLE_ADMIN)

    def test_new_account_requires_password(self):
        with self.assertRaises(CommandError):
            call_command('create_admin', 'nadie@ccurity.mx', stdout=StringIO())
