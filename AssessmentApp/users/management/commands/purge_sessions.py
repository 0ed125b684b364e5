from django.core.management.base import BaseCommand

from AssessmentApp.domain.services import session_service

class Command(BaseCommand):
    help = "Delete expired login sessions."

    def handle(self, *args, **options):
        deleted = session_service.purge_expired()
        self.stdout.write(self.style.SUCCESS(f"Deleted {deleted} expired sessions"))
