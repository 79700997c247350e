import csv
import json

from django.core.management.base import BaseCommand

from core.models import Tenant
from payments.ledger import tenant_totals


class Command(BaseCommand):
    help = 'List tenants with plan, status and (optionally) ledger totals'

    def add_arguments(self, parser):
        parser.add_argument(
            '--status',
            choices=[status for status, _ in Tenant.STATUS_CHOICES],
            help='Show only tenants with this status'
        )
        parser.add_argument(
            '--include-deleted',
            action='store_true',
            help='Include soft-deleted tenants'
        )
        parser.add_argument(
            '--with-stats',
            action='store_true',
            help='Show tenant statistics (slower)'
        )
        parser.add_argument(
            '--format',
            type=str,
            choices=['table', 'json', 'csv'],
            default='table',
            help='Output format'
        )

    def handle(self, *args, **options):
        tenants = Tenant.objects.select_related('subscription').order_by('name')

        if not options['include_deleted']:
            tenants = tenants.filter(deleted_at__isnull=True)
        if options['status']:
            tenants = tenants.filter(status=options['status'])

        if options['format'] == 'json':
            self._output_json(tenants, options['with_stats'])
        elif options['format'] == 'csv':
            self._output_csv(tenants)
        else:
            self._output_table(tenants, options['status'] or 'All', options['with_stats'])

    def _output_table(self, tenants, status_filter, with_stats):
        self.stdout.write(
            self.style.SUCCESS(f'\n📋 {status_filter.title()} Tenants ({tenants.count()})\n')
        )
        self.stdout.write('─' * 96)
        self.stdout.write(
            f"{'Status':^10} | {'Name':<20} | {'Business Name':<24} | {'Plan':<10} | {'Created':<10}"
        )
        self.stdout.write('─' * 96)

        for tenant in tenants:
            status = '🟢' if tenant.is_active else '🔴'
            self.stdout.write(
                f" {status} {tenant.status:<7} | {tenant.name[:20]:<20} | "
                f"{tenant.business_name[:24]:<24} | {tenant.subscription_or_default.plan:<10} | "
                f"{tenant.created_at:%Y-%m-%d}"
            )

        self.stdout.write('─' * 96)

        if with_stats and tenants.exists():
            self.stdout.write('\n📊 Tenant Statistics:')
            for tenant in tenants:
                stats = self._get_tenant_stats(tenant)
                self.stdout.write(f"\n  {tenant.name}:")
                self.stdout.write(f"    • clients: {stats['clients']}, invoices: {stats['invoices']}")
                self.stdout.write(
                    f"    • invoiced: {stats['total_invoiced']}, paid: {stats['total_paid']}, "
                    f"outstanding: {stats['outstanding_balance']}"
                )

    def _output_json(self, tenants, with_stats):
        data = []
        for tenant in tenants:
            tenant_data = {
                'id': str(tenant.pk),
                'name': tenant.name,
                'domain': tenant.domain,
                'business_name': tenant.business_name,
                'email': tenant.email,
                'phone_number': tenant.phone_number,
                'status': tenant.status,
                'plan': tenant.subscription_or_default.plan,
                'deleted_at': tenant.deleted_at.isoformat() if tenant.deleted_at else None,
                'created_at': tenant.created_at.isoformat(),
                'updated_at': tenant.updated_at.isoformat(),
            }

            if with_stats:
                tenant_data['stats'] = self._get_tenant_stats(tenant)

            data.append(tenant_data)

        self.stdout.write(json.dumps(data, indent=2, default=str))

    def _output_csv(self, tenants):
        writer = csv.writer(self.stdout)
        writer.writerow(['ID', 'Name', 'Domain', 'Business Name', 'Email', 'Phone', 'Status', 'Plan', 'Created'])

        for tenant in tenants:
            writer.writerow([
                tenant.pk,
                tenant.name,
                tenant.domain,
                tenant.business_name,
                tenant.email,
                tenant.phone_number,
                tenant.status,
                tenant.subscription_or_default.plan,
                tenant.created_at.strftime('%Y-%m-%d')
            ])

    def _get_tenant_stats(self, tenant):
        invoiced, paid, outstanding = tenant_totals(tenant)
        return {
            'clients': tenant.client_set.count(),
            'products': tenant.product_set.count(),
            'invoices': tenant.invoice_set.count(),
            'total_invoiced': str(invoiced),
            'total_paid': str(paid),
            'outstanding_balance': str(outstanding),
        }
