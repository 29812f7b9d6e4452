"""
Patient management views.

Doctors and administrators list, create, update and delete patients.  A
patient may read and update their own entry and maintain their own
profile through ``/api/patient/profile``.
"""
from __future__ import annotations

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes, throttle_classes
from rest_framework.exceptions import NotFound, PermissionDenied
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from records.models import Patient
from records.permissions import IsPatientRole, IsStaffRole, is_staff_role
from records.serializers.patient import PatientCreateSerializer, PatientListQuerySerializer, PatientSerializer
from records.services import patients as svc
from records.services.clinical import patient_dashboard
from records.services.files import PatientFileStore
from records.throttles import PatientWriteThrottle


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsStaffRole])
@throttle_classes([PatientWriteThrottle])
def patients(request):
    if request.method == 'POST':
        s = PatientCreateSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        _, patient, password = svc.create_patient(request.user, s.to_model_fields(),
                                                  password=s.validated_data.get('password'))
        payload = {'ok': True, 'data': svc.format_patient(patient)}
        if not s.validated_data.get('password'):
            payload['initialPassword'] = password
        return Response(payload, status=status.HTTP_201_CREATED)

    q = PatientListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    page = q.validated_data.get('page') or 1
    page_size = q.validated_data.get('pageSize') or 0
    data, total = svc.list_patients(q=q.validated_data.get('q'), page=page, page_size=page_size)
    return Response({'ok': True, 'data': data, 'total': total, 'page': page, 'pageSize': page_size or total})


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
@throttle_classes([PatientWriteThrottle])
def patient_detail(request, patient_id: int):
    patient = svc.get_patient_for(request.user, patient_id)

    if request.method == 'GET':
        return Response({'ok': True, 'data': svc.format_patient(patient)})

    if request.method == 'DELETE':
        if not is_staff_role(request.user):
            raise PermissionDenied('only staff may delete patients')
        svc.delete_patient(request.user, patient, file_store=PatientFileStore())
        return Response({'ok': True})

    s = PatientSerializer(data=request.data, partial=True)
    s.is_valid(raise_exception=True)
    fields = s.to_model_fields()
    if not is_staff_role(request.user):
        # the e-mail doubles as the login name
        fields.pop('email', None)
    patient = svc.update_patient(request.user, patient, fields)
    return Response({'ok': True, 'data': svc.format_patient(patient)})


@api_view(['GET', 'PUT'])
@permission_classes([IsAuthenticated, IsPatientRole])
@throttle_classes([PatientWriteThrottle])
def own_profile(request):
    """The caller's own profile.  PUT creates it or merges into it."""
    if request.method == 'GET':
        patient = Patient.objects.filter(user=request.user).first()
        if not patient:
            raise NotFound('profile not created yet')
        return Response({'ok': True, 'data': svc.format_patient(patient)})

    s = PatientSerializer(data=request.data, partial=True)
    s.is_valid(raise_exception=True)
    patient, created = svc.upsert_own_profile(request.user, s.to_model_fields())
    return Response({'ok': True, 'created': created, 'data': svc.format_patient(patient)},
                    status=status.HTTP_201_CREATED if created else status.HTTP_200_OK)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsPatientRole])
def own_dashboard(request):
    patient = Patient.objects.filter(user=request.user).first()
    if not patient:
        raise NotFound('profile not created yet')
    return Response({'ok': True, 'data': patient_dashboard(patient)})
