from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand, CommandError
from django.db import transaction
from django.utils.text import slugify

from accounts.identity import owner_login_email
from accounts.models import Profile, UserRole
from core.models import Tenant, TenantSubscription
from core.utils import generate_pin, is_valid_phone_number


class Command(BaseCommand):
    help = 'Create a new tenant with a subscription and, optionally, its owner account'

    def add_arguments(self, parser):
        parser.add_argument('name', type=str, help='Tenant internal name (URL-safe slug)')
        parser.add_argument(
            '--domain',
            type=str,
            default='',
            help='Tenant domain (e.g., mama.lipia.app)'
        )
        parser.add_argument(
            '--business-name',
            type=str,
            default='',
            help='Public-facing business name (used in SMS)'
        )
        parser.add_argument('--email', type=str, default='', help='Contact email')
        parser.add_argument('--phone', type=str, default='', help='Contact phone number')
        parser.add_argument(
            '--plan',
            choices=[plan for plan, _ in TenantSubscription.PLAN_CHOICES],
            default=TenantSubscription.PLAN_FREE,
            help='Subscription plan (default: free)'
        )
        parser.add_argument(
            '--inactive',
            action='store_true',
            help='Create tenant as pending (requires activation)'
        )
        parser.add_argument(
            '--owner-phone',
            type=str,
            help='Create the owner login for this phone number (a PIN is generated)'
        )
        parser.add_argument('--owner-name', type=str, default='', help='Owner full name')

    def handle(self, *args, **options):
        name = options['name']
        domain = options['domain']

        # Validate inputs
        if slugify(name) != name:
            raise CommandError('Tenant name must be a URL-safe slug (lowercase letters, numbers, hyphens)')

        if ' ' in domain:
            raise CommandError('Domain cannot contain spaces')

        if Tenant.objects.filter(name=name).exists():
            raise CommandError(f'Tenant with name "{name}" already exists')

        if domain and Tenant.objects.filter(domain=domain).exists():
            raise CommandError(f'Tenant with domain "{domain}" already exists')

        owner_phone = options.get('owner_phone')
        if owner_phone:
            if not is_valid_phone_number(owner_phone):
                raise CommandError('Owner phone must be 10 digits starting with 0')
            if get_user_model().objects.filter(username=owner_login_email(owner_phone)).exists():
                raise CommandError(f'An owner account for {owner_phone} already exists')

        with transaction.atomic():
            tenant = Tenant.objects.create(
                name=name,
                domain=domain,
                business_name=options['business_name'] or name.replace('-', ' ').title(),
                email=options['email'],
                phone_number=options['phone'] or owner_phone or '',
                status=Tenant.STATUS_PENDING if options['inactive'] else Tenant.STATUS_ACTIVE,
            )
            TenantSubscription.for_plan(tenant, options['plan']).save()

            pin = None
            if owner_phone:
                pin = self._create_owner(tenant, owner_phone, options['owner_name'])

        self.stdout.write(self.style.SUCCESS(f'✅ Successfully created tenant: {tenant.name}'))
        self.stdout.write(f'   Domain: {tenant.domain or "-"}')
        self.stdout.write(f'   Business Name: {tenant.business_name}')
        self.stdout.write(f'   Plan: {options["plan"]}')
        self.stdout.write(f'   Status: {"🟢 Active" if tenant.is_active else "🔴 " + tenant.status}')
        self.stdout.write(f'   Tenant ID: {tenant.pk}')

        if not tenant.is_active:
            self.stdout.write(self.style.WARNING('\n⚠️  Tenant created as PENDING'))
            self.stdout.write(f'   Activate with: python manage.py toggle_tenant {name} --activate')

        if pin:
            self.stdout.write(self.style.SUCCESS('\n👤 Created owner account:'))
            self.stdout.write(f'   Phone: {owner_phone}')
            self.stdout.write(f'   PIN: {pin}')
            self.stdout.write('\n⚠️  SECURITY: Share this PIN with the owner only!')

    def _create_owner(self, tenant, phone_number, full_name):
        User = get_user_model()
        email = owner_login_email(phone_number)
        pin = generate_pin()

        user = User(username=email, email=email)
        user.set_password(pin)
        user.save()

        Profile.all_objects.create(
            user=user,
            tenant=tenant,
            full_name=full_name or tenant.business_name,
            phone_number=phone_number,
        )
        UserRole.objects.get_or_create(user=user, role=UserRole.ROLE_ADMIN)
        return pin
