"""
URL mappings for the scheduling API.

Paths mirror those used by the clinic front end (``/api/appointments``
and friends).  Trailing slashes are deliberately omitted.
"""
from django.urls import path, include

from .views import health
from .views.appointments import (
    appointments,
    appointment_detail,
    doctor_appointments,
    patient_appointments,
    doctor_schedule,
)
from .views.dashboard import dashboard, appointment_action, appointment_reschedule


urlpatterns = [
    path('metrics', include('django_prometheus.urls')),
    path('healthz', health.healthz, name='healthz'),
    # Appointment data service
    path('api/appointments', appointments, name='appointments'),
    path('api/appointments/dashboard', dashboard, name='appointments_dashboard'),
    path('api/appointments/<int:pk>', appointment_detail, name='appointment_detail'),
    path('api/appointments/<int:pk>/action', appointment_action, name='appointment_action'),
    path('api/appointments/<int:pk>/reschedule', appointment_reschedule, name='appointment_reschedule'),
    path('api/appointments/doctor/<int:doctor_id>', doctor_appointments, name='doctor_appointments'),
    path('api/appointments/doctor/<int:doctor_id>/schedule', doctor_schedule, name='doctor_schedule'),
    path('api/appointments/patient/<int:patient_id>', patient_appointments, name='patient_appointments'),
]
