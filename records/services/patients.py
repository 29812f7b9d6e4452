from __future__ import annotations

import logging
import secrets
from typing import Optional

from django.contrib.auth import get_user_model
from django.contrib.auth.password_validation import validate_password
from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import Q
from rest_framework.exceptions import NotFound, PermissionDenied, ValidationError as DRFValidation

from records.exceptions import BackendReadError, BackendWriteError, backend_errors
from records.models import Patient
from records.permissions import is_staff_role
from records.services.audit import log_action
from records.services.dashboard import invalidate_dashboard

logger = logging.getLogger(__name__)

User = get_user_model()


def format_patient(p: Patient) -> dict:
    return {
        'id': p.id,
        'userId': p.user_id,
        'fullName': p.full_name,
        'email': p.email,
        'phone': p.phone,
        'dateOfBirth': p.date_of_birth.isoformat() if p.date_of_birth else None,
        'gender': p.gender,
        'address': p.address,
        'bloodType': p.blood_type,
        'allergies': list(p.allergies or []),
        'chronicConditions': list(p.chronic_conditions or []),
        'emergencyContactName': p.emergency_contact_name,
        'emergencyContactPhone': p.emergency_contact_phone,
        'createdAt': p.created_at.isoformat() if p.created_at else None,
        'updatedAt': p.updated_at.isoformat() if p.updated_at else None,
    }


def get_patient_for(user, patient_id: int) -> Patient:
    """Load a patient the user may see: staff see everyone, patients only themselves."""
    with backend_errors(BackendReadError, 'patient lookup'):
        patient = Patient.objects.select_related('user').filter(id=patient_id).first()
    if not patient:
        raise NotFound('patient not found')
    if is_staff_role(user):
        return patient
    if patient.user_id and patient.user_id == getattr(user, 'id', None):
        return patient
    raise PermissionDenied('forbidden for this patient')


def list_patients(*, q: Optional[str] = None, page: Optional[int] = None,
                  page_size: Optional[int] = None) -> tuple[list[dict], int]:
    """Newest first.  ``q`` matches name, e-mail or patient id."""
    qs = Patient.objects.all()
    q = (q or '').strip()
    if q:
        cond = Q(full_name__icontains=q) | Q(email__icontains=q)
        if q.isdigit():
            cond |= Q(id=int(q))
        qs = qs.filter(cond)
    with backend_errors(BackendReadError, 'patient list'):
        total = qs.count()
        qs = qs.order_by('-created_at', '-id')
        if page and page_size:
            start = (page - 1) * page_size
            qs = qs[start:start + page_size]
        data = [format_patient(p) for p in qs]
    return data, total


def _validated_password(password: Optional[str]) -> str:
    if not password:
        return secrets.token_urlsafe(12)
    try:
        validate_password(password)
    except ValidationError as e:
        raise DRFValidation({'password': e.messages})
    return password


def create_patient(current_user, fields: dict, *, password: Optional[str] = None):
    """Create a patient together with a patient account.

    Returns the account, the patient and the initial password so staff can
    hand it over.  A password is generated when none is given.
    """
    email = fields['email'].strip().lower()
    if User.objects.filter(username__iexact=email).exists():
        raise DRFValidation({'email': 'An account with this e-mail already exists'})
    password = _validated_password(password)

    with backend_errors(BackendWriteError, 'patient create'), transaction.atomic():
        user = User.objects.create_user(
            username=email, email=email, password=password,
            first_name=fields['full_name'], role=User.ROLE_PATIENT,
        )
        patient = Patient.objects.create(user=user, **{**fields, 'email': email})
        log_action(user=current_user, action='patient_create', object_type='patient', object_id=patient.id)
    invalidate_dashboard()
    logger.info('patient %s created by %s', patient.id, getattr(current_user, 'id', None))
    return user, patient, password


def update_patient(current_user, patient: Patient, fields: dict) -> Patient:
    """Apply ``fields`` to the patient and keep the linked account in step.

    The account's login name is the patient's e-mail, so an e-mail change
    renames the account too.
    """
    if 'email' in fields:
        fields['email'] = email = fields['email'].strip().lower()
        taken = User.objects.filter(Q(username__iexact=email) | Q(email__iexact=email))
        if patient.user_id:
            taken = taken.exclude(pk=patient.user_id)
        if taken.exists():
            raise DRFValidation({'email': 'An account with this e-mail already exists'})

    with backend_errors(BackendWriteError, 'patient update'), transaction.atomic():
        for name, value in fields.items():
            setattr(patient, name, value)
        patient.save()
        if patient.user_id:
            user, changed = patient.user, []
            if 'full_name' in fields and user.first_name != patient.full_name:
                user.first_name = patient.full_name
                changed.append('first_name')
            if 'email' in fields and (user.username != patient.email or user.email != patient.email):
                user.username = user.email = patient.email
                changed += ['username', 'email']
            if changed:
                user.save(update_fields=changed)
        log_action(user=current_user, action='patient_update', object_type='patient', object_id=patient.id,
                   detail={'fields': sorted(fields)})
    invalidate_dashboard()
    return patient


def upsert_own_profile(user, fields: dict) -> tuple[Patient, bool]:
    """Create or merge-update the caller's own patient profile."""
    with backend_errors(BackendReadError, 'profile lookup'):
        patient = Patient.objects.filter(user=user).first()
    if patient:
        fields.pop('email', None)
        return update_patient(user, patient, fields), False
    fields.setdefault('email', user.email)
    fields.setdefault('full_name', user.get_full_name() or user.username)
    with backend_errors(BackendWriteError, 'profile create'), transaction.atomic():
        patient = Patient.objects.create(user=user, **fields)
        log_action(user=user, action='patient_create', object_type='patient', object_id=patient.id)
    invalidate_dashboard()
    return patient, True


def delete_patient(current_user, patient: Patient, file_store=None) -> None:
    """Delete a patient; records, vaccinations and appointments cascade."""
    patient_id = patient.id
    with backend_errors(BackendWriteError, 'patient delete'), transaction.atomic():
        patient.delete()
        log_action(user=current_user, action='patient_delete', object_type='patient', object_id=patient_id)
    invalidate_dashboard()
    if file_store is not None:
        removed = file_store.delete_all(patient_id)
        logger.info('patient %s deleted with %d files', patient_id, removed)
