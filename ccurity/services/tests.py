"""
Test suite for the services module
Tests: service dispatch, states, survey templates and collaborator applications
"""
from decimal import Decimal
from io import StringIO

from django.core.management import call_command
from django.test import TestCase
from rest_framework import status

from ccurity.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from ccurity.services.models import ServiceState, Service, ServiceItem, ServiceApplication, ServiceTypeConcept


class SeedStatesCommandTests(TestCase):
    """Test the seed_service_states management command"""

    def test_seed_is_idempotent(self):
        call_command('seed_service_states', stdout=StringIO())
        call_command('seed_service_states', stdout=StringIO())
        self.assertEqual(ServiceState.objects.count(), 6)
        self.assertTrue(ServiceState.objects.get(name=ServiceState.COMPLETED).is_final)
        self.assertFalse(ServiceState.objects.get(name=ServiceState.BIDDING).is_final)


class ServiceAPITests(TestCase):
    """Test service CRUD, assignment and state changes"""

    def setUp(self):
        call_command('seed_service_states', stdout=StringIO())
        self.supervisor = TestDataFactory.create_supervisor()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.supervisor)

    def test_new_service_starts_in_survey(self):
        client_user = TestDataFactory.create_client()
        response = self.client.post('/api/v1/services/', {
            'title': 'Instalación CCTV bodega',
            'client': client_user.id,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        service = Service.objects.get(pk=response.data['id'])
        self.assertEqual(service.state_name, ServiceState.SURVEY)

    def test_list_filters(self):
        service_type = TestDataFactory.create_service_type()
        TestDataFactory.create_service(title='Alarma casa', service_type=service_type)
        TestDataFactory.create_service(title='CCTV oficina')
        response = self.client.get('/api/v1/services/', {'type': service_type.id})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)

        response = self.client.get('/api/v1/services/', {'search': 'cctv'})
        self.assertEqual(response.data['results'][0]['title'], 'CCTV oficina')

    def test_final_state_stamps_completed_date(self):
        service = TestDataFactory.create_service(state_name=ServiceState.IN_PROGRESS)
        completed = ServiceState.objects.get(name=ServiceState.COMPLETED)
        response = self.client.post(f'/api/v1/services/{service.id}/state/', {'state': completed.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        service.refresh_from_db()
        self.assertIsNotNone(service.completed_date)

        in_progress = ServiceState.objects.get(name=ServiceState.IN_PROGRESS)
        self.client.post(f'/api/v1/services/{service.id}/state/', {'state': in_progress.id}, format='json')
        service.refresh_from_db()
        self.assertIsNone(service.completed_date)

    def test_assign_collaborator(self):
        service = TestDataFactory.create_service()
        collaborator = TestDataFactory.create_collaborator()
        response = self.client.post(f'/api/v1/services/{service.id}/assign/', {'collaborator': collaborator.id},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        service.refresh_from_db()
        self.assertEqual(service.collaborator, collaborator)

    def test_assign_requires_a_field(self):
        service = TestDataFactory.create_service()
        response = self.client.post(f'/api/v1/services/{service.id}/assign/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_stats_counts_services_without_state(self):
        TestDataFactory.create_service(state_name=ServiceState.BIDDING)
        TestDataFactory.create_service()
        response = self.client.get('/api/v1/services/stats/')
        self.assertEqual(response.data['total'], 2)
        self.assertEqual(response.data['by_state'][ServiceState.BIDDING], 1)
        self.assertEqual(response.data['by_state']['Sin estado'], 1)

    def test_collaborator_list(self):
        TestDataFactory.create_collaborator()
        TestDataFactory.create_collaborator(is_active=False)
        TestDataFactory.create_client()
        response = self.client.get('/api/v1/services/collaborators/')
        self.assertEqual(len(response.data), 1)

    def test_add_item_defaults_to_catalog_price(self):
        service = TestDataFactory.create_service()
        concept = TestDataFactory.create_concept(price=Decimal('350.00'))
        response = self.client.post(f'/api/v1/services/{service.id}/items/', {
            'concept': concept.id, 'quantity': '2',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(ServiceItem.objects.get(service=service).price, Decimal('350.00'))


class ServiceMembershipTests(TestCase):
    """Collaborators only reach services assigned to them"""

    def setUp(self):
        self.collaborator = TestDataFactory.create_collaborator()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.collaborator)

    def test_collaborator_sees_own_service(self):
        service = TestDataFactory.create_service(collaborator=self.collaborator)
        response = self.client.get(f'/api/v1/services/{service.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('items', response.data)

    def test_collaborator_blocked_from_other_service(self):
        service = TestDataFactory.create_service(collaborator=TestDataFactory.create_collaborator())
        response = self.client.get(f'/api/v1/services/{service.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_collaborator_cannot_delete(self):
        service = TestDataFactory.create_service(collaborator=self.collaborator)
        response = self.client.delete(f'/api/v1/services/{service.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_report_and_evidence(self):
        service = TestDataFactory.create_service(collaborator=self.collaborator)
        response = self.client.post(f'/api/v1/services/{service.id}/reports/', {
            'work_performed': 'Se instalaron 4 cámaras',
            'photo_urls': ['https://example.com/a.jpg'],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        response = self.client.post(f'/api/v1/services/{service.id}/evidence/', {
            'photo_url': 'https://example.com/b.jpg', 'caption': 'Cámara 1',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(service.reports.get().created_by, self.collaborator)

    def test_mine(self):
        TestDataFactory.create_service(collaborator=self.collaborator)
        TestDataFactory.create_service()
        response = self.client.get('/api/v1/services/mine/')
        self.assertEqual(len(response.data), 1)

    def test_client_forbidden(self):
        client = AuthenticatedAPIClient()
        client.authenticate_user(TestDataFactory.create_client())
        response = client.get('/api/v1/services/mine/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class SurveyTemplateTests(TestCase):
    """Test survey templates and the survey completion workflow"""

    def setUp(self):
        call_command('seed_service_states', stdout=StringIO())
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(TestDataFactory.create_supervisor())
        self.service_type = TestDataFactory.create_service_type(name='CCTV')
        self.camera = TestDataFactory.create_concept(title='Cámara', price=Decimal('900.00'))
        self.cable = TestDataFactory.create_concept(title='Cable', price=Decimal('15.00'), format='ml')

    def test_template_lines(self):
        response = self.client.post(f'/api/v1/service-types/{self.service_type.id}/template/',
                                    {'concept': self.camera.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['default_quantity'], 1)

        response = self.client.post(f'/api/v1/service-types/{self.service_type.id}/template/',
                                    {'concept': self.camera.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        line = ServiceTypeConcept.objects.get()
        response = self.client.patch(f'/api/v1/service-type-concepts/{line.id}/', {'default_quantity': 4},
                                     format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        line.refresh_from_db()
        self.assertEqual(line.default_quantity, 4)

    def test_complete_survey_creates_items_and_opens_bidding(self):
        ServiceTypeConcept.objects.create(service_type=self.service_type, concept=self.camera, default_quantity=4)
        ServiceTypeConcept.objects.create(service_type=self.service_type, concept=self.cable, default_quantity=100)
        service = TestDataFactory.create_service(service_type=self.service_type, state_name=ServiceState.SURVEY)

        response = self.client.post(f'/api/v1/services/{service.id}/complete-survey/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['items_created'], 2)
        service.refresh_from_db()
        self.assertEqual(service.state_name, ServiceState.BIDDING)
        camera_item = service.items.get(concept=self.camera)
        self.assertEqual(camera_item.quantity, Decimal('4'))
        self.assertEqual(camera_item.price, Decimal('900.00'))

    def test_complete_survey_requires_survey_state(self):
        service = TestDataFactory.create_service(service_type=self.service_type, state_name=ServiceState.ASSIGNED)
        response = self.client.post(f'/api/v1/services/{service.id}/complete-survey/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class ServiceApplicationTests(TestCase):
    """Test collaborator applications and their acceptance"""

    def setUp(self):
        call_command('seed_service_states', stdout=StringIO())
        self.service = TestDataFactory.create_service(state_name=ServiceState.BIDDING)
        self.collaborator = TestDataFactory.create_collaborator()
        self.collaborator_client = AuthenticatedAPIClient()
        self.collaborator_client.authenticate_user(self.collaborator)
        self.supervisor_client = AuthenticatedAPIClient()
        self.supervisor_client.authenticate_user(TestDataFactory.create_supervisor())

    def test_apply(self):
        response = self.collaborator_client.post(f'/api/v1/services/{self.service.id}/applications/',
                                                 {'message': 'Tengo disponibilidad'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], ServiceApplication.STATUS_PENDING)

    def test_apply_twice(self):
        url = f'/api/v1/services/{self.service.id}/applications/'
        self.collaborator_client.post(url, {}, format='json')
        response = self.collaborator_client.post(url, {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Ya te postulaste a este servicio')

    def test_apply_requires_bidding_state(self):
        service = TestDataFactory.create_service(state_name=ServiceState.SURVEY)
        response = self.collaborator_client.post(f'/api/v1/services/{service.id}/applications/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_collaborator_cannot_list_applications(self):
        response = self.collaborator_client.get(f'/api/v1/services/{self.service.id}/applications/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_accept_assigns_and_rejects_rivals(self):
        """Accepting one application rejects the other pending ones"""
        winner = TestDataFactory.create_application(self.service, self.collaborator)
        rival = TestDataFactory.create_application(self.service, TestDataFactory.create_collaborator())

        response = self.supervisor_client.get(f'/api/v1/services/{self.service.id}/applications/pending-count/')
        self.assertEqual(response.data['pending'], 2)

        response = self.supervisor_client.post(f'/api/v1/applications/{winner.id}/accept/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['rejected'], 1)

        self.service.refresh_from_db()
        rival.refresh_from_db()
        self.assertEqual(self.service.collaborator, self.collaborator)
        self.assertEqual(self.service.state_name, ServiceState.ASSIGNED)
        self.assertEqual(rival.status, ServiceApplication.STATUS_REJECTED)

    def test_accept_processed_application(self):
        application = TestDataFactory.create_application(self.service, self.collaborator,
                                                         status=ServiceApplication.STATUS_REJECTED)
        response = self.supervisor_client.post(f'/api/v1/applications/{application.id}/accept/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_reject(self):
        application = TestDataFactory.create_application(self.service, self.collaborator)
        response = self.supervisor_client.post(f'/api/v1/applications/{application.id}/reject/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        application.refresh_from_db()
        self.assertEqual(application.status, ServiceApplication.STATUS_REJECTED)

    def test_mine_and_filtered_list(self):
        TestDataFactory.create_application(self.service, self.collaborator)
        response = self.collaborator_client.get('/api/v1/applications/mine/')
        self.assertEqual(len(response.data), 1)
        response = self.supervisor_client.get('/api/v1/applications/', {'status': 'accepted'})
        self.assertEqual(len(response.data), 0)
