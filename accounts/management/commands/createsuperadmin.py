from django.contrib.auth import get_user_model
from django.contrib.auth.password_validation import validate_password
from django.core.exceptions import ValidationError
from django.core.management.base import BaseCommand, CommandError

User = get_user_model()


class Command(BaseCommand):
    help = 'Create an admin user who can decide any leave request and manage teams'

    def add_arguments(self, parser):
        parser.add_argument('--email', type=str, help='Admin email address', required=True)
        parser.add_argument('--password', type=str, help='Admin password', required=False)
        parser.add_argument('--first-name', dest='first_name', type=str, default='')
        parser.add_argument('--last-name', dest='last_name', type=str, default='')

    def handle(self, *args, **options):
        email = User.objects.normalize_email(options['email'])
        password = options.get('password')

        if User.objects.filter(email__iexact=email).exists():
            raise CommandError(f'User with email {email} already exists')

        if not password:
            import getpass
            password = getpass.getpass('Enter password: ')
            confirm_password = getpass.getpass('Confirm password: ')
            if password != confirm_password:
                raise CommandError('Passwords do not match')

        try:
            validate_password(password)
        except ValidationError as e:
            raise CommandError('; '.join(e.messages))

        user = User.objects.create_superuser(
            email=email,
            password=password,
            first_name=options['first_name'],
            last_name=options['last_name'],
        )

        self.stdout.write(self.style.SUCCESS(f'Successfully created admin: {email}'))
        self.stdout.write(f'  - Role: {user.role}')
        self.stdout.write(f'  - Is Superuser: {user.is_superuser}')
        self.stdout.write(f'  - Is Active: {user.is_active}')
