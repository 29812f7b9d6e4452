import pytest
from django.core.cache import cache
from rest_framework.test import APIClient

from records.models import Patient, User


@pytest.fixture(autouse=True)
def _clear_cache():
    # throttles and the dashboard cache live in the cache
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def doctor(db):
    return User.objects.create_user(username='doctor1', password='P@ssw0rd1', role='doctor',
                                    email='doctor1@example.com')


@pytest.fixture
def patient_user(db):
    return User.objects.create_user(username='alice@example.com', password='P@ssw0rd1', role='patient',
                                    email='alice@example.com', first_name='Alice')


@pytest.fixture
def patient(patient_user):
    return Patient.objects.create(user=patient_user, full_name='Alice', email='alice@example.com')


@pytest.fixture
def doctor_client(doctor):
    client = APIClient()
    client.force_authenticate(user=doctor)
    return client


@pytest.fixture
def patient_client(patient_user):
    client = APIClient()
    client.force_authenticate(user=patient_user)
    return client
