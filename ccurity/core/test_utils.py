"""
Test utilities and factories for creating test data
"""
import base64
import io
import random
import string
from datetime import timedelta
from decimal import Decimal

from PIL import Image
from django.contrib.auth import get_user_model
from django.utils import timezone
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from ccurity.catalog.models import Concept, CollaboratorPrice
from ccurity.chat.models import Conversation, ConversationParticipant, Message
from ccurity.finance.models import ContractType, Contract, Invoice, Payment
from ccurity.quotations.models import Quotation, QuotationItem, QuotationTab
from ccurity.services.models import ServiceType, ServiceState, Service, ServiceApplication

User = get_user_model()


class TestDataFactory:
    """Factory class for creating test data"""

    @staticmethod
    def random_string(length=10):
        """Generate a random string"""
        return ''.join(random.choices(string.ascii_letters + string.digits, k=length))

    @staticmethod
    def create_user(role=User.ROLE_CLIENT, email=None, password='testpass123', full_name=None, **extra):
        """Create a test user with a role"""
        if not email:
            email = f'{role.lower()}_{TestDataFactory.random_string(6).lower()}@test.com'
        return User.objects.create_user(
            username=email,
            email=email,
            password=password,
            role=role,
            full_name=full_name or f'{role.title()} {TestDataFactory.random_string(4)}',
            **extra
        )

    @staticmethod
    def create_admin(**kwargs):
        return TestDataFactory.create_user(role=User.ROLE_ADMIN, **kwargs)

    @staticmethod
    def create_supervisor(**kwargs):
        return TestDataFactory.create_user(role=User.ROLE_SUPER, **kwargs)

    @staticmethod
    def create_collaborator(**kwargs):
        return TestDataFactory.create_user(role=User.ROLE_COLAB, **kwargs)

    @staticmethod
    def create_client(**kwargs):
        return TestDataFactory.create_user(role=User.ROLE_CLIENT, **kwargs)

    @staticmethod
    def create_concept(title=None, price=None, category='Cámaras', format='pza', is_active=True):
        """Create a catalog concept"""
        return Concept.objects.create(
            title=title or f'Concepto {TestDataFactory.random_string(6)}',
            price=price if price is not None else Decimal('100.00'),
            category=category,
            format=format,
            is_active=is_active,
        )

    @staticmethod
    def create_collaborator_price(collaborator, concept, custom_price=None):
        return CollaboratorPrice.objects.create(
            collaborator=collaborator,
            concept=concept,
            custom_price=custom_price if custom_price is not None else Decimal('80.00'),
        )

    @staticmethod
    def create_service_type(name=None):
        return ServiceType.objects.create(name=name or f'Tipo {TestDataFactory.random_string(5)}')

    @staticmethod
    def create_state(name, is_final=False):
        """Get or create a service state by name"""
        state, _ = ServiceState.objects.get_or_create(name=name, defaults={'is_final': is_final})
        return state

    @staticmethod
    def create_service(title=None, client=None, collaborator=None, service_type=None, state_name=None,
                       scheduled_date=None):
        """Create a service, optionally in a named state"""
        return Service.objects.create(
            title=title or f'Servicio {TestDataFactory.random_string(6)}',
            client=client,
            collaborator=collaborator,
            service_type=service_type,
            service_state=TestDataFactory.create_state(state_name) if state_name else None,
            scheduled_date=scheduled_date,
            address='Av. Reforma 100, CDMX',
        )

    @staticmethod
    def create_application(service, collaborator, status=ServiceApplication.STATUS_PENDING):
        return ServiceApplication.objects.create(service=service, collaborator=collaborator, status=status)

    @staticmethod
    def create_quotation(client=None, title=None, status=Quotation.STATUS_DRAFT, items=None, **extra):
        """
        Create a quotation with items.

        ``items`` is a list of (quantity, unit_price) pairs placed in one
        "equipos" tab.
        """
        quotation = Quotation.objects.create(
            client=client,
            title=title or f'Cotización {TestDataFactory.random_string(5)}',
            status=status,
            valid_until=timezone.now() + timedelta(days=30),
            **extra
        )
        quotation.folio = f"COT-{str(quotation.pk)[:6].upper()}-V{quotation.version}"
        quotation.save(update_fields=['folio'])
        if items:
            tab = QuotationTab.objects.create(quotation=quotation, section='equipos', label='Cámaras')
            for quantity, unit_price in items:
                QuotationItem.objects.create(
                    quotation=quotation,
                    tab=tab,
                    section='equipos',
                    concept=TestDataFactory.create_concept(price=Decimal(unit_price)),
                    quantity=Decimal(quantity),
                    unit_price=Decimal(unit_price),
                )
        return quotation

    @staticmethod
    def create_contract(user=None, title=None, status=Contract.STATUS_DRAFT, counterpart_role=Contract.ROLE_CLIENT,
                        contract_type=None, end_date=None):
        return Contract.objects.create(
            user=user,
            title=title or f'Contrato {TestDataFactory.random_string(5)}',
            status=status,
            counterpart_role=counterpart_role,
            contract_type=contract_type,
            start_date=timezone.localdate(),
            end_date=end_date,
        )

    @staticmethod
    def create_contract_type(name=None, service_type=None, is_active=True, order=0):
        return ContractType.objects.create(
            name=name or f'Tipo contrato {TestDataFactory.random_string(4)}',
            service_type=service_type,
            is_active=is_active,
            order=order,
        )

    @staticmethod
    def create_invoice(user=None, subtotal='1000.00', tax='160.00', status=Invoice.STATUS_PENDING, due_date=None):
        subtotal = Decimal(subtotal)
        tax = Decimal(tax)
        return Invoice.objects.create(
            user=user,
            number=f'FAC-TEST-{TestDataFactory.random_string(6).upper()}',
            subtotal=subtotal,
            tax=tax,
            total=subtotal + tax,
            status=status,
            due_date=due_date,
        )

    @staticmethod
    def create_payment(invoice, amount='100.00', method='transfer'):
        return Payment.objects.create(invoice=invoice, amount=Decimal(amount), method=method, paid_at=timezone.now())

    @staticmethod
    def create_conversation(*users, title=None):
        conversation = Conversation.objects.create(title=title)
        for user in users:
            ConversationParticipant.objects.create(conversation=conversation, user=user)
        return conversation

    @staticmethod
    def create_message(conversation, sender, content='Hola', is_read=False):
        return Message.objects.create(conversation=conversation, sender=sender, content=content, is_read=is_read)

    @staticmethod
    def image_data_url(color='red', fmt='PNG'):
        """A tiny real image encoded as a base64 data URL"""
        buffer = io.BytesIO()
        Image.new('RGB', (4, 4), color=color).save(buffer, format=fmt)
        encoded = base64.b64encode(buffer.getvalue()).decode()
        return f"data:image/{fmt.lower()};base64,{encoded}"


class AuthenticatedAPIClient(APIClient):
    """APIClient with authentication helper"""

    def authenticate_user(self, user):
        """Authenticate the client with a user"""
        refresh = RefreshToken.for_user(user)
        self.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
        return self

    def logout(self):
        """Remove authentication"""
        self.credentials()
