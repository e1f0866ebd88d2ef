from django.core.management.base import BaseCommand, CommandError
from django.contrib.auth import get_user_model

User = get_user_model()


class Command(BaseCommand):
    help = 'Create an ADMIN user, or promote an existing account to ADMIN'

    def add_arguments(self, parser):
        parser.add_argument('email', help='Email of the administrator')
        parser.add_argument('--password', help='Password for a new account')
        parser.add_argument('--name', default='', help='Full name')

    def handle(self, *args, **options):
        email = options['email'].strip().lower()
        user = User.objects.filter(email__iexact=email).first()

        if user:
            user.role = User.ROLE_ADMIN
            user.is_staff = True
            user.is_active = True
            user.save(update_fields=['role', 'is_staff', 'is_active', 'updated_at'])
            self.stdout.write(self.style.SUCCESS(f'Promoted {email} to ADMIN'))
            return

        if not options['password']:
            raise CommandError('--password is required when creating a new account')

        User.objects.create_user(
            username=email,
            email=email,
            password=options['password'],
            full_name=options['name'],
            role=User.ROLE_ADMIN,
            is_staff=True,
        )
        self.stdout.write(self.style.SUCCESS(f'Created ADMIN {email}'))
