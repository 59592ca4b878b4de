# core/management/commands/ensure_test_users.py
from django.core.management.base import BaseCommand
from django.contrib.auth.hashers import make_password
from core.models import User
from core.services.patients import get_patient_by_user, save_patient

TEST_SET = [
    ("patient1@cervihealth.test", "Test Patient", User.ROLE_PATIENT),
    ("hcw1@cervihealth.test", "Test Healthcare Worker", User.ROLE_HCW),
    ("doctor1@cervihealth.test", "Test Doctor", User.ROLE_DOCTOR),
]


class Command(BaseCommand):
    help = "Ensure one test user per role exists with password=123456 (idempotent)."

    def handle(self, *args, **opts):
        for email, name, role in TEST_SET:
            u, created = User.objects.get_or_create(
                email=email,
                defaults={
                    "username": email, "name": name, "role": role,
                    "password": make_password("123456"), "is_active": True,
                },
            )
            if not created:
                # reset password, activation and role
                u.password = make_password("123456")
                u.role = role
                u.is_active = True
                u.save(update_fields=["password", "role", "is_active"])
            if role == User.ROLE_PATIENT and not get_patient_by_user(u):
                patient = save_patient({"name": name, "email": email}, user=u)
                u.patient_code = patient.patient_code
                u.save(update_fields=["patient_code"])
            self.stdout.write(self.style.SUCCESS(f"ok: {email} ({role})"))
        self.stdout.write(self.style.SUCCESS("All test users ensured."))
