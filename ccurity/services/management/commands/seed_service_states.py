from django.core.management.base import BaseCommand

from ccurity.services.models import ServiceState

DEFAULT_STATES = [
    {'name': ServiceState.SURVEY, 'color': '#F59E0B', 'description': 'Visita de levantamiento pendiente'},
    {'name': ServiceState.BIDDING, 'color': '#8B5CF6', 'description': 'Abierto a postulaciones de colaboradores'},
    {'name': ServiceState.ASSIGNED, 'color': '#3B82F6', 'description': 'Colaborador asignado'},
    {'name': ServiceState.IN_PROGRESS, 'color': '#06B6D4', 'description': 'Trabajo en curso'},
    {'name': ServiceState.COMPLETED, 'color': '#10B981', 'description': 'Servicio terminado', 'is_final': True},
    {'name': ServiceState.CANCELLED, 'color': '#EF4444', 'description': 'Servicio cancelado', 'is_final': True},
]


class Command(BaseCommand):
    help = 'Create the workflow service states (Levantamiento, Postulando, Asignado, ...)'

    def handle(self, *args, **options):
        created_count = 0
        for config in DEFAULT_STATES:
            defaults = {k: v for k, v in config.items() if k != 'name'}
            _, created = ServiceState.objects.get_or_create(name=config['name'], defaults=defaults)
            if created:
                created_count += 1
                self.stdout.write(f"  - Created state: {config['name']}")
        self.stdout.write(self.style.SUCCESS(f"Service states ready ({created_count} new)"))
