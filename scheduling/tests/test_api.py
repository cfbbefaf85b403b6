"""
Integration tests for the scheduling REST API.

These tests exercise the appointment data service and the stateless
dashboard endpoints: role based access, booking, status actions,
rescheduling and the audit trail.  They use Django REST Framework's
APIClient within the APITestCase base class.
"""
from datetime import datetime, timedelta, timezone as dt_timezone

from django.urls import reverse
from django.utils.dateparse import parse_datetime
from rest_framework import status
from rest_framework.test import APITestCase

from ..models import Appointment, AuditEvent, User

T0 = datetime(2030, 5, 14, 10, 0, tzinfo=dt_timezone.utc)


class SchedulingAPITests(APITestCase):
    def setUp(self) -> None:
        """Create staff, a patient and two appointments."""
        self.receptionist = User.objects.create_user(username="reception1", password="pass", role="receptionist")
        self.doctor = User.objects.create_user(
            username="drlee", password="pass", role="doctor", first_name="Ann", last_name="Lee"
        )
        self.patient = User.objects.create_user(
            username="patient1", password="pass", role="patient", first_name="Jane", last_name="Doe"
        )
        self.pending = Appointment.objects.create(
            patient=self.patient, doctor=self.doctor, patient_name="Jane Doe", doctor_name="Ann Lee",
            date=T0, status="pending",
        )
        self.confirmed = Appointment.objects.create(
            patient=self.patient, doctor=self.doctor, patient_name="Jane Doe", doctor_name="Ann Lee",
            date=T0 + timedelta(days=1), end_time=T0 + timedelta(days=1, minutes=30), status="confirmed",
            notes="knee check",
        )
        self.client.force_authenticate(user=self.receptionist)

    def test_list_uses_envelope(self):
        resp = self.client.get(reverse("appointments"))
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertTrue(resp.data["ok"])
        self.assertEqual([a["id"] for a in resp.data["appointments"]], [self.pending.id, self.confirmed.id])
        self.assertEqual(resp.data["appointments"][0]["patientName"], "Jane Doe")

    def test_anonymous_is_rejected(self):
        self.client.force_authenticate(user=None)
        resp = self.client.get(reverse("appointments"))
        self.assertIn(resp.status_code, (status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN))

    def test_patient_cannot_use_schedule(self):
        self.client.force_authenticate(user=self.patient)
        resp = self.client.get(reverse("appointments"))
        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)

    def test_doctor_reads_but_cannot_write(self):
        self.client.force_authenticate(user=self.doctor)
        self.assertEqual(self.client.get(reverse("appointments_dashboard")).status_code, status.HTTP_200_OK)
        url = reverse("appointment_action", args=[self.pending.id])
        resp = self.client.post(url, {"action": "confirm"}, format="json")
        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)

    def test_create_defaults_to_pending_and_fills_names(self):
        body = {"patientId": self.patient.id, "doctorId": self.doctor.id,
                "date": "2030-05-20T09:00:00Z", "notes": "first visit<img src=\"x\" onerror=\"alert(1)\">"}
        resp = self.client.post(reverse("appointments"), body, format="json")
        self.assertEqual(resp.status_code, status.HTTP_201_CREATED)
        appt = resp.data["appointment"]
        self.assertEqual(appt["status"], "pending")
        self.assertEqual(appt["patientName"], "Jane Doe")
        self.assertEqual(appt["doctorName"], "Ann Lee")
        self.assertEqual(appt["notes"], "first visit")
        self.assertTrue(AuditEvent.objects.filter(action="appointment_create", object_id=str(appt["id"])).exists())

    def test_create_accepts_appointment_date_alias(self):
        body = {"patientName": "Walk In", "appointmentDate": "2030-05-21T09:00:00Z"}
        resp = self.client.post(reverse("appointments"), body, format="json")
        self.assertEqual(resp.status_code, status.HTTP_201_CREATED)
        self.assertEqual(parse_datetime(resp.data["appointment"]["date"]), datetime(2030, 5, 21, 9, tzinfo=dt_timezone.utc))

    def test_create_requires_date(self):
        resp = self.client.post(reverse("appointments"), {"patientName": "Jane"}, format="json")
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(resp.data["ok"])

    def test_create_rejects_end_before_start(self):
        body = {"patientName": "Jane", "date": "2030-05-20T09:00:00Z", "endTime": "2030-05-20T08:00:00Z"}
        resp = self.client.post(reverse("appointments"), body, format="json")
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)

    def test_update_keeps_patient(self):
        other = User.objects.create_user(username="patient2", password="pass", role="patient")
        url = reverse("appointment_detail", args=[self.pending.id])
        resp = self.client.patch(url, {"notes": "bring x-rays", "patientId": other.id}, format="json")
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.pending.refresh_from_db()
        self.assertEqual(self.pending.notes, "bring x-rays")
        self.assertEqual(self.pending.patient_id, self.patient.id)
        self.assertEqual(self.pending.version, 2)

    def test_update_can_unassign_doctor(self):
        url = reverse("appointment_detail", args=[self.pending.id])
        resp = self.client.patch(url, {"doctorId": None}, format="json")
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertIsNone(resp.data["appointment"]["doctorId"])
        self.pending.refresh_from_db()
        self.assertIsNone(self.pending.doctor_id)

    def test_update_invalid_status(self):
        url = reverse("appointment_detail", args=[self.pending.id])
        resp = self.client.put(url, {"status": "archived"}, format="json")
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)

    def test_delete_then_not_found(self):
        url = reverse("appointment_detail", args=[self.pending.id])
        resp = self.client.delete(url)
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.data["message"], "Appointment deleted successfully")
        resp = self.client.get(url)
        self.assertEqual(resp.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(resp.data["error"]["code"], "not_found")
        self.assertEqual(self.client.delete(url).status_code, status.HTTP_404_NOT_FOUND)

    def test_cancel_action_persists_and_is_audited(self):
        url = reverse("appointment_action", args=[self.pending.id])
        resp = self.client.post(url, {"action": "cancel"}, format="json")
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertTrue(resp.data["ok"])
        self.assertEqual(resp.data["message"], "Appointment cancelled")
        self.assertEqual(resp.data["appointment"]["status"], "cancelled")
        self.pending.refresh_from_db()
        self.assertEqual(self.pending.status, "cancelled")
        detail = self.client.get(reverse("appointment_detail", args=[self.pending.id]))
        self.assertEqual(detail.data["history"][0]["action"], "appointment_cancel")
        self.assertEqual(detail.data["history"][0]["detail"], {"from": "pending", "to": "cancelled"})

    def test_unknown_action(self):
        url = reverse("appointment_action", args=[self.pending.id])
        resp = self.client.post(url, {"action": "archive"}, format="json")
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)

    def test_action_on_missing_appointment(self):
        url = reverse("appointment_action", args=[999999])
        resp = self.client.post(url, {"action": "confirm"}, format="json")
        self.assertEqual(resp.status_code, status.HTTP_404_NOT_FOUND)

    def test_reschedule_preserves_duration(self):
        url = reverse("appointment_reschedule", args=[self.confirmed.id])
        resp = self.client.post(url, {"start": "2030-05-16T14:00:00Z"}, format="json")
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.data["message"], "Appointment rescheduled successfully")
        start = datetime(2030, 5, 16, 14, tzinfo=dt_timezone.utc)
        self.confirmed.refresh_from_db()
        self.assertEqual(self.confirmed.date, start)
        self.assertEqual(self.confirmed.end_time, start + timedelta(minutes=30))

    def test_reschedule_without_end_uses_default_duration(self):
        url = reverse("appointment_reschedule", args=[self.pending.id])
        resp = self.client.post(url, {"start": "2030-05-14T23:30:00Z"}, format="json")
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(parse_datetime(resp.data["appointment"]["endTime"]),
                         datetime(2030, 5, 15, 0, 30, tzinfo=dt_timezone.utc))

    def test_reschedule_rejects_inverted_range(self):
        url = reverse("appointment_reschedule", args=[self.pending.id])
        body = {"start": "2030-05-16T14:00:00Z", "end": "2030-05-16T13:00:00Z"}
        resp = self.client.post(url, body, format="json")
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.pending.refresh_from_db()
        self.assertEqual(self.pending.date, T0)

    def test_dashboard_filters_but_counts_everything(self):
        resp = self.client.get(reverse("appointments_dashboard"), {"status": "confirmed", "viewMode": "day"})
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual([a["id"] for a in resp.data["appointments"]], [self.confirmed.id])
        self.assertEqual(resp.data["stats"]["total"], 2)
        self.assertEqual(resp.data["stats"]["pending"], 1)
        self.assertEqual(resp.data["viewMode"], "day")
        event = resp.data["events"][0]
        self.assertEqual(event["title"], "Jane Doe - Ann Lee")
        self.assertEqual(event["style"]["backgroundColor"], "#10b981")

    def test_dashboard_search(self):
        resp = self.client.get(reverse("appointments_dashboard"), {"q": "KNEE"})
        self.assertEqual([a["id"] for a in resp.data["appointments"]], [self.confirmed.id])

    def test_dashboard_rejects_unknown_filter(self):
        resp = self.client.get(reverse("appointments_dashboard"), {"status": "archived"})
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)

    def test_doctor_and_patient_listings(self):
        resp = self.client.get(reverse("doctor_appointments", args=[self.doctor.id]))
        self.assertEqual(len(resp.data["appointments"]), 2)
        resp = self.client.get(reverse("patient_appointments", args=[self.receptionist.id]))
        self.assertEqual(resp.data["appointments"], [])

    def test_doctor_schedule_range(self):
        url = reverse("doctor_schedule", args=[self.doctor.id])
        resp = self.client.get(url, {"start": "2030-05-14T00:00:00Z", "end": "2030-05-14T23:59:59Z"})
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual([a["id"] for a in resp.data["schedule"]], [self.pending.id])
        resp = self.client.get(url, {"start": "2030-05-15T00:00:00Z", "end": "2030-05-14T00:00:00Z"})
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)

    def test_healthz(self):
        resp = self.client.get(reverse("healthz"))
        self.assertEqual(resp.status_code, 200)
        self.assertTrue(resp.json()["ok"])
        self.assertEqual(resp.json()["store"], "orm")
