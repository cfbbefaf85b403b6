from datetime import timedelta

from django.core.management.base import BaseCommand
from django.contrib.auth.hashers import make_password
from django.utils import timezone
from rest_framework.authtoken.models import Token

from scheduling.models import Appointment, User

DEMO_USERS = [
    ("reception1", "receptionist", "Rita", "Front"),
    ("drsmith", "doctor", "John", "Smith"),
    ("drlee", "doctor", "Ann", "Lee"),
    ("patient1", "patient", "Jane", "Doe"),
    ("patient2", "patient", "Sam", "Roe"),
]
STATUSES = ["pending", "confirmed", "completed", "cancelled"]


class Command(BaseCommand):
    help = "Ensure demo users exist (password=123456) and seed a week of appointments (idempotent)."

    def add_arguments(self, parser):
        parser.add_argument("--days", type=int, default=7)
        parser.add_argument("--reset", action="store_true", help="delete existing appointments first")

    def handle(self, *args, **opts):
        users = {}
        for username, role, first, last in DEMO_USERS:
            u, created = User.objects.get_or_create(
                username=username,
                defaults={"role": role, "first_name": first, "last_name": last,
                          "password": make_password("123456"), "is_active": True},
            )
            if not created and u.role != role:
                u.role = role
                u.save(update_fields=["role"])
            users[username] = u
            token, _ = Token.objects.get_or_create(user=u)
            self.stdout.write(self.style.SUCCESS(f"ok: {username} ({role}) token={token.key}"))

        if opts["reset"]:
            Appointment.objects.all().delete()
        if Appointment.objects.exists():
            self.stdout.write("appointments already present, skipping seed")
            return

        doctors = [users["drsmith"], users["drlee"]]
        patients = [users["patient1"], users["patient2"]]
        start_of_day = timezone.localtime().replace(hour=9, minute=0, second=0, microsecond=0)
        count = 0
        for day in range(opts["days"]):
            for slot in range(4):
                doctor = doctors[(day + slot) % 2]
                patient = patients[slot % 2]
                start = start_of_day + timedelta(days=day, hours=slot * 2)
                Appointment.objects.create(
                    patient=patient, doctor=doctor,
                    patient_name=patient.display_name, doctor_name=doctor.display_name,
                    date=start,
                    # every third appointment relies on the default duration
                    end_time=None if slot % 3 == 0 else start + timedelta(minutes=30 * (slot + 1)),
                    status=STATUSES[(day + slot) % 4],
                    notes="Patient has allergies to penicillin" if slot == 1 else "",
                )
                count += 1
        self.stdout.write(self.style.SUCCESS(f"Seeded {count} appointments."))
