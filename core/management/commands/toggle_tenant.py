import uuid

from django.apps import apps
from django.core.management.base import BaseCommand, CommandError
from django.db.models import Q

from core.models import Tenant, TenantAwareModel


class Command(BaseCommand):
    help = 'Activate or suspend a tenant'

    def add_arguments(self, parser):
        parser.add_argument(
            'identifier',
            type=str,
            help='Tenant name, domain or id'
        )
        parser.add_argument(
            '--activate',
            action='store_true',
            help='Activate the tenant'
        )
        parser.add_argument(
            '--deactivate',
            action='store_true',
            help='Suspend the tenant'
        )
        parser.add_argument(
            '--force',
            action='store_true',
            help='Force operation without confirmation'
        )

    def handle(self, *args, **options):
        identifier = options['identifier']

        # Validate arguments
        if options['activate'] and options['deactivate']:
            raise CommandError('Cannot use both --activate and --deactivate')

        if not options['activate'] and not options['deactivate']:
            raise CommandError('Must specify either --activate or --deactivate')

        tenant = self._find_tenant(identifier)
        if not tenant:
            raise CommandError(f'Tenant not found: {identifier}')

        if tenant.deleted_at is not None and options['activate']:
            raise CommandError(f'Tenant "{tenant.name}" was deleted on {tenant.deleted_at:%Y-%m-%d}')

        action = 'activate' if options['activate'] else 'deactivate'

        # Check if already in desired state
        if (action == 'activate' and tenant.is_active) or \
           (action == 'deactivate' and tenant.status == Tenant.STATUS_SUSPENDED):
            self.stdout.write(
                self.style.WARNING(f'⚠️  Tenant "{tenant.name}" is already {tenant.status}')
            )
            return

        # Show preview
        self.stdout.write('\n' + '═' * 50)
        self.stdout.write(f'Tenant: {tenant.name} ({tenant.business_name})')
        self.stdout.write(f'Current Status: {self._status_label(tenant)}')
        self.stdout.write(f'Action: {action.upper()}')
        self.stdout.write('═' * 50 + '\n')

        if not options['force']:
            confirm = input(f'Are you sure you want to {action} this tenant? [y/N]: ')
            if confirm.lower() not in ['y', 'yes']:
                self.stdout.write(self.style.WARNING('❌ Operation cancelled'))
                return

        if action == 'deactivate':
            data_count = self._count_tenant_data(tenant)
            if data_count > 0:
                self.stdout.write(
                    self.style.WARNING(f'⚠️  This tenant has {data_count} data records (they are kept)')
                )
            tenant.set_status(Tenant.STATUS_SUSPENDED)
        else:
            tenant.set_status(Tenant.STATUS_ACTIVE)

        # set_status() clears the cached middleware lookups
        self.stdout.write(self.style.SUCCESS(f'✅ {action.title()}d tenant: {tenant.name}'))
        self.stdout.write(f'   New Status: {self._status_label(tenant)}')
        self.stdout.write(f'   Affected Users: {tenant.profile_set.count()} accounts')

    def _find_tenant(self, identifier):
        query = Q(name=identifier) | (Q(domain=identifier) & ~Q(domain=''))
        try:
            query |= Q(pk=uuid.UUID(identifier))
        except ValueError:
            pass
        return Tenant.objects.filter(query).first()

    def _status_label(self, tenant):
        return f'🟢 {tenant.status}' if tenant.is_active else f'🔴 {tenant.status}'

    def _count_tenant_data(self, tenant):
        """Count data records for this tenant"""
        total = 0
        for model in apps.get_models():
            if issubclass(model, TenantAwareModel):
                total += model.all_objects.filter(tenant=tenant).count()
        return total
