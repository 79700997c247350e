from datetime import timedelta

from django.apps import apps
from django.core.cache import cache
from django.core.management.base import BaseCommand
from django.db import DatabaseError, connection
from django.db.models import Count, Q
from django.utils import timezone

from core.limits import LIMITED_RESOURCES, current_usage
from core.models import Tenant, TenantAwareModel
from core.sms import SmsGateway
from payments.ledger import tenant_totals


class Command(BaseCommand):
    help = 'Show tenant ledger totals, plan usage and system health'

    def add_arguments(self, parser):
        parser.add_argument(
            'tenant',
            nargs='?',
            type=str,
            help='Specific tenant name or domain (optional)'
        )
        parser.add_argument(
            '--detailed',
            action='store_true',
            help='Show model-by-model record counts'
        )
        parser.add_argument(
            '--health',
            action='store_true',
            help='Show system health check'
        )

    def handle(self, *args, **options):
        if options['health']:
            self._show_system_health()
            return

        if options['tenant']:
            tenant = Tenant.objects.filter(
                Q(name=options['tenant']) | (Q(domain=options['tenant']) & ~Q(domain=''))
            ).first()

            if not tenant:
                self.stdout.write(self.style.ERROR(f'❌ Tenant not found: {options["tenant"]}'))
                return

            self._show_tenant_stats(tenant, options['detailed'])
        else:
            self._show_system_stats(options['detailed'])

    def _show_system_health(self):
        self.stdout.write(self.style.SUCCESS('\n🏥 SYSTEM HEALTH CHECK\n'))

        try:
            with connection.cursor() as cursor:
                cursor.execute("SELECT 1")
            self.stdout.write('✅ Database: Connected')
        except DatabaseError as e:
            self.stdout.write(self.style.ERROR(f'❌ Database: Error - {e}'))

        try:
            cache.set('health_check', 'ok', 1)
            if cache.get('health_check') == 'ok':
                self.stdout.write('✅ Cache: Working')
            else:
                self.stdout.write(self.style.WARNING('⚠️ Cache: Issues detected'))
        except Exception as e:
            self.stdout.write(self.style.ERROR(f'❌ Cache: Error - {e}'))

        gateway = SmsGateway()
        if gateway.is_configured:
            self.stdout.write('✅ SMS: Configured')
        else:
            self.stdout.write(self.style.WARNING('⚠️ SMS: Not configured (messages are skipped)'))

        by_status = dict(Tenant.objects.order_by().values_list('status').annotate(count=Count('id')))
        self.stdout.write(f'\n👥 Tenants: {sum(by_status.values())} total')
        for status, _ in Tenant.STATUS_CHOICES:
            self.stdout.write(f'   • {status.title()}: {by_status.get(status, 0)}')

        recent = Tenant.objects.filter(created_at__gte=timezone.now() - timedelta(days=7)).count()
        self.stdout.write(f'   • Created last 7 days: {recent}')

    def _show_system_stats(self, detailed):
        tenants = Tenant.objects.filter(deleted_at__isnull=True)

        self.stdout.write(self.style.SUCCESS('\n📊 SYSTEM STATISTICS\n'))
        self.stdout.write(f'Total Tenants: {tenants.count()}')
        self.stdout.write(f'Active Tenants: {tenants.filter(status=Tenant.STATUS_ACTIVE).count()}')
        self.stdout.write(f'Suspended Tenants: {tenants.filter(status=Tenant.STATUS_SUSPENDED).count()}')

        self.stdout.write('\n💰 LEDGER BY TENANT:\n')
        self.stdout.write(f"  {'Tenant':<24} {'Invoiced':>14} {'Paid':>14} {'Outstanding':>14}")
        for tenant in tenants.order_by('name'):
            invoiced, paid, outstanding = tenant_totals(tenant)
            self.stdout.write(f'  {tenant.name[:24]:<24} {invoiced:>14,} {paid:>14,} {outstanding:>14,}')

        if detailed:
            self.stdout.write('\n' + '─' * 60)
            self.stdout.write('\n📦 DATA DISTRIBUTION:\n')

            for model in self._tenant_models():
                total = model.all_objects.count()
                if total > 0:
                    top_tenants = (
                        model.all_objects.order_by()
                        .values('tenant__name')
                        .annotate(count=Count('pk'))
                        .order_by('-count')[:5]
                    )
                    self.stdout.write(f'\n{model._meta.verbose_name_plural}: {total:,} total')
                    for item in top_tenants:
                        self.stdout.write(f'  • {item["tenant__name"]}: {item["count"]:,}')

        self.stdout.write('\n' + '═' * 60)
        self.stdout.write('💡 Tip: Use --detailed flag for more information')

    def _show_tenant_stats(self, tenant, detailed):
        subscription = tenant.subscription_or_default

        self.stdout.write(self.style.SUCCESS(f'\n📊 STATISTICS FOR: {tenant.name}\n'))
        self.stdout.write(f'Business Name: {tenant.business_name or "N/A"}')
        self.stdout.write(f'Status: {"🟢" if tenant.is_active else "🔴"} {tenant.status}')
        self.stdout.write(f'Plan: {subscription.plan}')
        self.stdout.write(f'Created: {tenant.created_at:%Y-%m-%d}')

        invoiced, paid, outstanding = tenant_totals(tenant)
        self.stdout.write('\n💰 LEDGER:')
        self.stdout.write(f'  Invoiced:    {invoiced:>14,}')
        self.stdout.write(f'  Paid:        {paid:>14,}')
        self.stdout.write(f'  Outstanding: {outstanding:>14,}')

        self.stdout.write('\n📏 PLAN USAGE:')
        for resource, (_, limit_field, monthly) in LIMITED_RESOURCES.items():
            used = current_usage(tenant, resource)
            limit = getattr(subscription, limit_field)
            percentage = min(used / limit * 100, 100) if limit else 100
            bar_length = int(percentage / 5)
            bar = '█' * bar_length + '░' * (20 - bar_length)
            label = f'{resource}{" (month)" if monthly else ""}'
            self.stdout.write(f'  {label:<18} {used:>6,}/{limit:<7,} {bar} {percentage:5.1f}%')

        if detailed:
            self.stdout.write('\n🔍 DETAILED BREAKDOWN:')
            for model in self._tenant_models():
                records = model.all_objects.filter(tenant=tenant)
                count = records.count()
                if not count:
                    continue
                self.stdout.write(f'\n{model._meta.verbose_name_plural}: {count:,}')
                if any(field.name == 'status' for field in model._meta.fields):
                    for item in records.order_by().values('status').annotate(count=Count('pk')).order_by('-count'):
                        self.stdout.write(f'  • {item["status"]}: {item["count"]:,}')
                if any(field.name == 'created_at' for field in model._meta.fields):
                    recent = records.filter(created_at__gte=timezone.now() - timedelta(days=30)).count()
                    self.stdout.write(f'  • Last 30 days: {recent:,}')

    def _tenant_models(self):
        return [model for model in apps.get_models() if issubclass(model, TenantAwareModel)]
