from django.core.management.base import BaseCommand, CommandError
from django.db import transaction

from clients.models import Client
from core.models import Tenant
from payments.ledger import (
    client_outstanding_balance,
    derive_invoice_status,
    invoice_total_paid,
    recompute_invoice_status,
    refresh_client_balance,
)
from payments.models import Invoice


class Command(BaseCommand):
    help = 'Rebuild invoice statuses and cached client balances from the ledger'

    def add_arguments(self, parser):
        parser.add_argument(
            '--tenant',
            type=str,
            help='Only this tenant (name)'
        )
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Report drift without writing'
        )

    def handle(self, *args, **options):
        tenants = Tenant.objects.order_by('name')
        if options['tenant']:
            tenants = tenants.filter(name=options['tenant'])
            if not tenants.exists():
                raise CommandError(f'Tenant not found: {options["tenant"]}')

        dry_run = options['dry_run']
        invoices_fixed = 0
        clients_fixed = 0

        for tenant in tenants:
            with transaction.atomic():
                for invoice in Invoice.objects.for_tenant(tenant).select_for_update():
                    before = invoice.status
                    if dry_run:
                        after = derive_invoice_status(invoice.amount, invoice_total_paid(invoice))
                    else:
                        after = recompute_invoice_status(invoice).status
                    if before != after:
                        invoices_fixed += 1
                        self.stdout.write(f'  {tenant.name} {invoice.invoice_number}: {before} -> {after}')

                for client in Client.objects.for_tenant(tenant).select_for_update():
                    before = client.total_balance
                    if dry_run:
                        after = client_outstanding_balance(client)
                    else:
                        after = refresh_client_balance(client)
                    if before != after:
                        clients_fixed += 1
                        self.stdout.write(f'  {tenant.name} client {client.pk}: {before} -> {after}')

        verb = 'would be updated' if dry_run else 'updated'
        self.stdout.write(self.style.SUCCESS(
            f'✅ {invoices_fixed} invoice statuses and {clients_fixed} client balances {verb}'
        ))
