from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand, CommandError

from AssessmentApp.core.choices import UserRole
from AssessmentApp.domain.services import user_service

User = get_user_model()

class Command(BaseCommand):
    help = "Create the first admin account."

    def add_arguments(self, parser):
        parser.add_argument("email")
        parser.add_argument("password")
        parser.add_argument("--full-name", default="Administrator")

    def handle(self, *args, **options):
        email = options["email"]
        if User.objects.filter(email__iexact=email).exists():
            raise CommandError(f"User {email} already exists")
        user = user_service.create_user(
            None,
            email=email,
            password=options["password"],
            full_name=options["full_name"],
            role=UserRole.ADMIN,
        )
        self.stdout.write(self.style.SUCCESS(f"Created admin {user.email} (id={user.pk})"))
