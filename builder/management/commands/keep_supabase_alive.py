"""
Django management command to keep the Supabase project awake.
Free Supabase projects are paused after a period of inactivity.

Usage:
    python manage.py keep_supabase_alive
"""
import logging
from django.core.management.base import BaseCommand, CommandError
from django.db import connection
from django.db.utils import OperationalError
from supabase import PostgrestAPIError

from builder.exceptions import ConfigurationError
from builder.services.supabase import get_admin_client

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = 'Keep the Supabase project and the session database alive with a trivial query'

    def add_arguments(self, parser):
        parser.add_argument(
            '--verbose',
            action='store_true',
            help='Enable verbose output',
        )

    def handle(self, *args, **options):
        verbose = options.get('verbose', False)

        try:
            client = get_admin_client()
        except ConfigurationError as e:
            logger.error(f"Supabase keep-alive skipped: {e}")
            raise CommandError(str(e))

        try:
            result = client.table("profiles").select("id").limit(1).execute()

            # Sessions live in the Django database
            with connection.cursor() as cursor:
                cursor.execute("SELECT 1")
                cursor.fetchone()

            if verbose:
                self.stdout.write(
                    self.style.SUCCESS(
                        f'✓ Supabase is alive. Rows returned: {len(result.data or [])}'
                    )
                )
            else:
                self.stdout.write('ok')

            logger.info("Supabase keep-alive check successful")

        except PostgrestAPIError as e:
            self.stdout.write(self.style.ERROR(f'✗ Supabase query failed: {e.message}'))
            logger.error(f"Supabase keep-alive check failed: {e.message}")
            raise
        except OperationalError as e:
            self.stdout.write(self.style.ERROR(f'✗ Database connection failed: {str(e)}'))
            logger.error(f"Database keep-alive check failed: {str(e)}")
            raise
