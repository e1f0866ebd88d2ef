"""
Test suite for the CPU concept catalog
Tests: filtering, price history, bulk actions, CSV import/export and collaborator prices
"""
from decimal import Decimal

from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import TestCase
from rest_framework import status

from ccurity.catalog.models import Concept, ConceptCategory, ConceptPriceHistory, CollaboratorPrice
from ccurity.catalog.views import parse_concepts_csv
from ccurity.core.test_utils import TestDataFactory, AuthenticatedAPIClient


class ConceptAPITests(TestCase):
    """Test concept CRUD and listing"""

    def setUp(self):
        self.admin = TestDataFactory.create_admin()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)

    def test_create_concept(self):
        response = self.client.post('/api/v1/concepts/', {
            'title': 'Cámara IP 4MP',
            'price': '1850.00',
            'format': 'pza',
            'category': 'CCTV',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['quotation_count'], 0)

    def test_negative_price_rejected(self):
        response = self.client.post('/api/v1/concepts/', {'title': 'Malo', 'price': '-1'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_list_is_paginated_by_25(self):
        for _ in range(30):
            TestDataFactory.create_concept()
        response = self.client.get('/api/v1/concepts/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 30)
        self.assertEqual(len(response.data['results']), 25)
        self.assertEqual(response.data['total_pages'], 2)

    def test_filter_and_sort(self):
        TestDataFactory.create_concept(title='Sensor de humo', price=Decimal('300'), category='Incendio')
        TestDataFactory.create_concept(title='Sensor PIR', price=Decimal('250'), category='Alarma')
        TestDataFactory.create_concept(title='Cable UTP', price=Decimal('12'), category='Alarma')

        response = self.client.get('/api/v1/concepts/', {'search': 'sensor', 'sort_by': 'price', 'sort_dir': 'desc'})
        titles = [row['title'] for row in response.data['results']]
        self.assertEqual(titles, ['Sensor de humo', 'Sensor PIR'])

        response = self.client.get('/api/v1/concepts/', {'category': 'Alarma', 'price_max': '100'})
        self.assertEqual(response.data['count'], 1)

    def test_collaborator_cannot_manage_catalog(self):
        client = AuthenticatedAPIClient()
        client.authenticate_user(TestDataFactory.create_collaborator())
        response = client.post('/api/v1/concepts/', {'title': 'X', 'price': '1'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_active_list_for_picker(self):
        TestDataFactory.create_concept(title='Activo')
        TestDataFactory.create_concept(title='Inactivo', is_active=False)
        client = AuthenticatedAPIClient()
        client.authenticate_user(TestDataFactory.create_collaborator())
        response = client.get('/api/v1/concepts/active/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([c['title'] for c in response.data], ['Activo'])

    def test_price_change_recorded(self):
        """Updating the price writes a history row"""
        concept = TestDataFactory.create_concept(price=Decimal('100.00'))
        response = self.client.patch(f'/api/v1/concepts/{concept.id}/', {'price': '120.00'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        history = ConceptPriceHistory.objects.get(concept=concept)
        self.assertEqual(history.old_price, Decimal('100.00'))
        self.assertEqual(history.new_price, Decimal('120.00'))
        self.assertEqual(history.changed_by, self.admin)

        response = self.client.get(f'/api/v1/concepts/{concept.id}/price-history/')
        self.assertEqual(len(response.data), 1)

    def test_same_price_not_recorded(self):
        concept = TestDataFactory.create_concept(price=Decimal('100.00'))
        self.client.patch(f'/api/v1/concepts/{concept.id}/', {'price': '100.00', 'title': 'Nuevo'}, format='json')
        self.assertFalse(ConceptPriceHistory.objects.filter(concept=concept).exists())

    def test_toggle_and_duplicate(self):
        concept = TestDataFactory.create_concept(title='DVR 8 canales')
        concept.sat_code = '46171610'
        concept.save()

        response = self.client.post(f'/api/v1/concepts/{concept.id}/toggle/')
        self.assertFalse(response.data['is_active'])

        response = self.client.post(f'/api/v1/concepts/{concept.id}/duplicate/')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['title'], 'DVR 8 canales (copia)')
        self.assertEqual(response.data['sat_code'], '46171610-COPY')

    def test_stats(self):
        TestDataFactory.create_concept(price=Decimal('100'), category='A', format='pza')
        TestDataFactory.create_concept(price=Decimal('200'), category='B', format='ml', is_active=False)
        response = self.client.get('/api/v1/concepts/stats/')
        self.assertEqual(response.data['total'], 2)
        self.assertEqual(response.data['active'], 1)
        self.assertEqual(response.data['categories'], 2)
        self.assertEqual(response.data['formats'], 2)
        self.assertEqual(Decimal(str(response.data['avg_price'])), Decimal('150.00'))


class ConceptCategoryAPITests(TestCase):
    """Test category management"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(TestDataFactory.create_admin())

    def test_categories_merge_concepts_and_table(self):
        TestDataFactory.create_concept(category='CCTV')
        ConceptCategory.objects.create(name='Alarmas')
        response = self.client.get('/api/v1/concept-categories/')
        self.assertEqual(response.data, ['Alarmas', 'CCTV'])

    def test_rename_category(self):
        concept = TestDataFactory.create_concept(category='CCTV')
        response = self.client.patch('/api/v1/concept-categories/CCTV/', {'name': 'Videovigilancia'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        concept.refresh_from_db()
        self.assertEqual(concept.category, 'Videovigilancia')
        self.assertNotIn('CCTV', response.data)

    def test_delete_category_clears_concepts(self):
        concept = TestDataFactory.create_concept(category='Temporal')
        response = self.client.delete('/api/v1/concept-categories/Temporal/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        concept.refresh_from_db()
        self.assertIsNone(concept.category)


class ConceptBulkActionTests(TestCase):
    """Test bulk operations"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(TestDataFactory.create_admin())
        self.concepts = [TestDataFactory.create_concept(price=Decimal('100.00')) for _ in range(3)]
        self.ids = [c.id for c in self.concepts]

    def test_adjust_price(self):
        response = self.client.post('/api/v1/concepts/bulk/', {
            'action': 'adjust_price', 'ids': self.ids, 'percent': 10,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['affected'], 3)
        for concept in Concept.objects.filter(pk__in=self.ids):
            self.assertEqual(concept.price, Decimal('110.00'))
        self.assertEqual(ConceptPriceHistory.objects.count(), 3)

    def test_adjust_price_never_negative(self):
        self.client.post('/api/v1/concepts/bulk/', {
            'action': 'adjust_price', 'ids': self.ids[:1], 'percent': -150,
        }, format='json')
        self.assertEqual(Concept.objects.get(pk=self.ids[0]).price, Decimal('0.00'))

    def test_invalid_percent(self):
        response = self.client.post('/api/v1/concepts/bulk/', {
            'action': 'adjust_price', 'ids': self.ids, 'percent': 'abc',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_bulk_category_and_delete(self):
        self.client.post('/api/v1/concepts/bulk/', {'action': 'category', 'ids': self.ids, 'category': 'Redes'},
                         format='json')
        self.assertEqual(Concept.objects.filter(category='Redes').count(), 3)
        self.assertTrue(ConceptCategory.objects.filter(name='Redes').exists())

        response = self.client.post('/api/v1/concepts/bulk/', {'action': 'delete', 'ids': self.ids[:2]},
                                    format='json')
        self.assertEqual(response.data['affected'], 2)
        self.assertEqual(Concept.objects.count(), 1)

    def test_missing_ids(self):
        response = self.client.post('/api/v1/concepts/bulk/', {'action': 'delete', 'ids': []}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class ConceptCSVTests(TestCase):
    """Test CSV export and import"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(TestDataFactory.create_admin())

    def test_parse_defaults(self):
        content = (
            '"Código SAT","Título","Categoría","Marca","Modelo","Precio","Formato",'
            '"Garantía (meses)","Tiempo Ejecución","Descripción","Activo"\n'
            '"","","CCTV","","","abc","litros","x","","","No"\n'
            '\n'
            '"123","Bala 2MP","CCTV","Hikvision","DS-2CE","950.50","pza","12","1 día","Cámara bala","Sí"\n'
        )
        rows = parse_concepts_csv(content)
        self.assertEqual(len(rows), 2)
        self.assertEqual(rows[0]['title'], 'Sin título')
        self.assertEqual(rows[0]['format'], 'pza')
        self.assertEqual(rows[0]['price'], Decimal('0'))
        self.assertFalse(rows[0]['is_active'])
        self.assertEqual(rows[1]['price'], Decimal('950.50'))
        self.assertEqual(rows[1]['warranty_months'], 12)

    def test_export_contains_concepts(self):
        TestDataFactory.create_concept(title='Panel de alarma')
        response = self.client.get('/api/v1/concepts/export/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        content = response.content.decode('utf-8')
        self.assertIn('"Título"', content)
        self.assertIn('"Panel de alarma"', content)

    def test_import_from_upload(self):
        content = (
            'Código SAT,Título,Categoría,Marca,Modelo,Precio,Formato,Garantía (meses),Tiempo Ejecución,Descripción,Activo\n'
            ',Switch PoE,Redes,TP-Link,,1200,pza,,,,Sí\n'
        )
        upload = SimpleUploadedFile('catalogo.csv', content.encode('utf-8'), content_type='text/csv')
        response = self.client.post('/api/v1/concepts/import/', {'file': upload}, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['created'], 1)
        self.assertTrue(Concept.objects.filter(title='Switch PoE', category='Redes').exists())
        self.assertTrue(ConceptCategory.objects.filter(name='Redes').exists())

    def test_import_empty(self):
        response = self.client.post('/api/v1/concepts/import/', {'csv_content': '  '}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class CollaboratorPriceAPITests(TestCase):
    """Test collaborator price overrides"""

    def setUp(self):
        self.collaborator = TestDataFactory.create_collaborator()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.collaborator)
        self.concept = TestDataFactory.create_concept(price=Decimal('500.00'))

    def test_upsert(self):
        response = self.client.post('/api/v1/collaborator-prices/', {
            'concept': self.concept.id, 'custom_price': '450.00',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

        response = self.client.post('/api/v1/collaborator-prices/', {
            'concept': self.concept.id, 'custom_price': '430.00',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(CollaboratorPrice.objects.get().custom_price, Decimal('430.00'))

    def test_list_only_own(self):
        TestDataFactory.create_collaborator_price(self.collaborator, self.concept)
        TestDataFactory.create_collaborator_price(TestDataFactory.create_collaborator(), self.concept)
        response = self.client.get('/api/v1/collaborator-prices/')
        self.assertEqual(len(response.data), 1)
        self.assertEqual(Decimal(response.data[0]['concept_price']), Decimal('500.00'))

    def test_cannot_delete_other_collaborator_price(self):
        other_price = TestDataFactory.create_collaborator_price(TestDataFactory.create_collaborator(), self.concept)
        response = self.client.delete(f'/api/v1/collaborator-prices/{other_price.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_client_forbidden(self):
        client = AuthenticatedAPIClient()
        client.authenticate_user(TestDataFactory.create_client())
        response = client.get('/api/v1/collaborator-prices/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
