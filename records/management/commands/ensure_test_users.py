# records/management/commands/ensure_test_users.py
from django.core.management.base import BaseCommand
from django.contrib.auth.hashers import make_password

from records.models import Patient, User

TEST_SET = [
    ("admin1", "admin"),
    ("doctor1", "doctor"),
    ("patient1", "patient"),
]


class Command(BaseCommand):
    help = "Ensure test users exist and password=123456 (idempotent)."

    def handle(self, *args, **opts):
        for username, role in TEST_SET:
            u, created = User.objects.get_or_create(
                username=username,
                defaults={"role": role, "password": make_password("123456"), "is_active": True,
                          "email": f"{username}@example.com"},
            )
            if not created:
                # reset password, role and active flag
                u.password = make_password("123456")
                u.role = role
                u.is_active = True
                u.save(update_fields=["password", "role", "is_active"])
            if role == User.ROLE_PATIENT:
                Patient.objects.get_or_create(
                    user=u, defaults={"full_name": username.capitalize(), "email": u.email or f"{username}@example.com"},
                )
            self.stdout.write(self.style.SUCCESS(f"ok: {username} ({role})"))
        self.stdout.write(self.style.SUCCESS("All test users ensured."))
