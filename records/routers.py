"""
URL mappings for the health record API.

Trailing slashes are omitted throughout.  Child collections of a patient
share one pair of views; ``kind`` is one of records, vaccinations or
appointments.
"""
from django.urls import include, path, re_path

from .auth_views import jwt_logout_view, jwt_refresh_view, login_view, me_view, register_view
from .views import clinical, dashboard, files, health, patients

KIND = r'(?P<kind>records|vaccinations|appointments)'

urlpatterns = [
    path('metrics', include('django_prometheus.urls')),
    path('healthz', health.healthz, name='healthz'),

    path('api/auth/register', register_view, name='register_view'),
    path('api/auth/login', login_view, name='login_view'),
    path('api/auth/refresh', jwt_refresh_view, name='jwt_refresh_view'),
    path('api/auth/logout', jwt_logout_view, name='jwt_logout_view'),
    path('api/auth/me', me_view, name='me_view'),

    path('api/patients', patients.patients, name='patients'),
    path('api/patients/<int:patient_id>', patients.patient_detail, name='patient_detail'),
    path('api/patient/profile', patients.own_profile, name='own_profile'),
    path('api/patient/dashboard', patients.own_dashboard, name='own_dashboard'),

    re_path(rf'^api/patients/(?P<patient_id>\d+)/{KIND}$', clinical.children, name='patient_children'),
    re_path(rf'^api/patients/(?P<patient_id>\d+)/{KIND}/(?P<child_id>\d+)$', clinical.child_detail,
            name='patient_child_detail'),

    path('api/patients/<int:patient_id>/files', files.patient_files, name='patient_files'),
    path('api/patients/<int:patient_id>/files/<str:file_name>', files.patient_file_detail,
         name='patient_file_detail'),

    path('api/dashboard/doctor', dashboard.doctor_dashboard, name='doctor_dashboard'),
    path('api/reminders/vaccinations', dashboard.upcoming_vaccinations, name='upcoming_vaccinations'),
    path('api/reminders/appointments', dashboard.upcoming_appointments, name='upcoming_appointments'),
]
