"""
Database models for the clinic scheduling backend.

These models capture the users of the clinic (patients, doctors and
front-desk staff), the appointments booked between them and an audit
trail of changes.  Appointment rows keep denormalized patient and doctor
names next to the foreign keys so that list and calendar views can be
rendered without extra joins; the foreign keys remain authoritative.
"""
from __future__ import annotations

from django.contrib.auth.models import AbstractUser
from django.core.exceptions import ValidationError
from django.db import models


class User(AbstractUser):
    """Custom user model with a clinic role.

    Roles mirror the front-end roles.  Patients and doctors appear on
    appointments; receptionists and admins manage the schedule.
    """
    ROLE_CHOICES = [
        ('patient', 'Patient'),
        ('doctor', 'Doctor'),
        ('receptionist', 'Receptionist'),
        ('dietitian', 'Dietitian'),
        ('admin', 'Administrator'),
    ]
    role = models.CharField(max_length=16, choices=ROLE_CHOICES, default='patient', db_index=True)
    phone = models.CharField(max_length=20, blank=True)
    specialization = models.CharField(max_length=128, blank=True)

    @property
    def display_name(self) -> str:
        return self.get_full_name() or self.username

    def __str__(self) -> str:
        return f"{self.username} ({self.role})"


class Appointment(models.Model):
    """A scheduled encounter between a patient and a doctor.

    ``end_time`` is optional; consumers treat a missing value as the
    default appointment duration after ``date``.  ``version`` increases on
    every update so that callers can tell which write is the newest.
    """
    STATUS_PENDING = 'pending'
    STATUS_CONFIRMED = 'confirmed'
    STATUS_COMPLETED = 'completed'
    STATUS_CANCELLED = 'cancelled'
    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_CONFIRMED, 'Confirmed'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_CANCELLED, 'Cancelled'),
    ]

    patient = models.ForeignKey(
        User, null=True, blank=True, on_delete=models.SET_NULL, related_name='patient_appointments'
    )
    doctor = models.ForeignKey(
        User, null=True, blank=True, on_delete=models.SET_NULL, related_name='doctor_appointments'
    )
    patient_name = models.CharField(max_length=255, blank=True)
    doctor_name = models.CharField(max_length=255, blank=True)
    date = models.DateTimeField(db_index=True)
    end_time = models.DateTimeField(null=True, blank=True)
    # Filtered on by the dashboard status select
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_PENDING, db_index=True)
    type = models.CharField(max_length=64, blank=True, default='checkup')
    notes = models.TextField(blank=True)
    version = models.PositiveIntegerField(default=1)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['date', 'id']
        indexes = [
            models.Index(fields=['doctor', 'date'], name='appt_doctor_date_idx'),
            models.Index(fields=['patient', 'date'], name='appt_patient_date_idx'),
        ]

    def clean(self) -> None:
        if self.end_time is not None and self.date is not None and self.end_time <= self.date:
            raise ValidationError({'end_time': 'end time must be after the start time'})

    def __str__(self) -> str:
        return f"{self.patient_name or self.patient_id} with {self.doctor_name or self.doctor_id} @ {self.date:%F %H:%M}"


class AuditEvent(models.Model):
    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True)
    action = models.CharField(max_length=64)
    object_type = models.CharField(max_length=64, blank=True, null=True)
    object_id = models.CharField(max_length=64, blank=True, null=True)
    detail = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=['action', 'created_at'], name='audit_action_idx'),
            models.Index(fields=['object_type', 'object_id', 'created_at'], name='audit_object_idx'),
        ]

    def __str__(self):
        return f"{self.action}:{self.object_type}#{self.object_id}@{self.created_at:%F %T}"
