"""
Django management command to check the Supabase configuration.
"""
from django.conf import settings
from django.core.management.base import BaseCommand
from supabase import PostgrestAPIError

from builder.services.supabase import get_admin_client, missing_config

TABLES = ("automations", "executions", "profiles")


def _mask(value):
    if not value:
        return '(not set)'
    return value[:6] + '...' if len(value) > 10 else '***'


class Command(BaseCommand):
    help = 'Check Supabase settings and that the expected tables are reachable'

    def handle(self, *args, **options):
        self.stdout.write(self.style.SUCCESS('\n=== Supabase Configuration Check ===\n'))

        self.stdout.write('1. Settings:')
        self.stdout.write(f'   SUPABASE_URL: {settings.SUPABASE_URL or "(not set)"}')
        self.stdout.write(f'   SUPABASE_ANON_KEY: {_mask(settings.SUPABASE_ANON_KEY)}')
        self.stdout.write(f'   SUPABASE_SERVICE_ROLE_KEY: {_mask(settings.SUPABASE_SERVICE_ROLE_KEY)}')
        self.stdout.write(f'   SITE_URL: {settings.SITE_URL}')

        missing = missing_config()
        if missing:
            self.stdout.write(self.style.ERROR(f'   ❌ Missing: {", ".join(missing)}'))
        else:
            self.stdout.write(self.style.SUCCESS('   ✅ Public settings present'))

        self.stdout.write('\n2. Callback URLs (add them to the Supabase redirect allow list):')
        self.stdout.write(f'   {settings.SITE_URL}/auth/callback')
        self.stdout.write(f'   {settings.SITE_URL}/reset-password/confirm/')

        self.stdout.write('\n3. Tables:')
        reachable = 0
        if not settings.SUPABASE_URL or not settings.SUPABASE_SERVICE_ROLE_KEY:
            self.stdout.write(self.style.WARNING('   ⚠️  Service role key not set, skipping table check'))
        else:
            client = get_admin_client()
            for table in TABLES:
                try:
                    client.table(table).select("*").limit(1).execute()
                    reachable += 1
                    self.stdout.write(self.style.SUCCESS(f'   ✅ {table}'))
                except PostgrestAPIError as e:
                    self.stdout.write(self.style.ERROR(f'   ❌ {table}: {e.message}'))

        self.stdout.write('\n=== Summary ===')
        if not missing and reachable == len(TABLES):
            self.stdout.write(self.style.SUCCESS('✅ Supabase is configured correctly'))
        elif not missing:
            self.stdout.write(self.style.WARNING('⚠️  Auth is configured, tables not verified'))
        else:
            self.stdout.write(self.style.ERROR('❌ Supabase is not configured'))
            self.stdout.write('   Action: set the missing variables in the environment or .env file')

        self.stdout.write('')
