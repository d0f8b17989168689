from django.contrib.auth.models import Group
from django.core.management.base import BaseCommand, CommandError

from apps.accounts.models import User, UserRole


class Command(BaseCommand):
    help = "Create default user role groups and, optionally, the first super admin"

    def add_arguments(self, parser):
        parser.add_argument("--superadmin-username", default="")
        parser.add_argument("--superadmin-password", default="")

    def handle(self, *args, **options):
        for role in UserRole.values:
            group, created = Group.objects.get_or_create(name=role)
            action = "created" if created else "exists"
            self.stdout.write(self.style.SUCCESS(f"{group.name}: {action}"))

        username = options["superadmin_username"].strip()
        password = options["superadmin_password"]
        if not username:
            return
        if not password:
            raise CommandError("--superadmin-password is required with --superadmin-username")
        if User.objects.filter(username=username).exists():
            self.stdout.write(self.style.WARNING(f"{username}: exists"))
            return
        user = User.objects.create_user(username=username, password=password, role=UserRole.SUPER_ADMIN)
        user.groups.add(Group.objects.get(name=UserRole.SUPER_ADMIN))
        self.stdout.write(self.style.SUCCESS(f"{username}: created"))
