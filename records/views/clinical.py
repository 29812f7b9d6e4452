"""
Medical records, vaccinations and appointments of a patient.

``kind`` in the URL selects the collection.  Staff may write; a patient
may only read their own entries.
"""
from __future__ import annotations

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes, throttle_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from records.permissions import StaffOrReadOnly
from records.serializers.clinical import ChildListQuerySerializer
from records.services import clinical as svc
from records.services.patients import get_patient_for
from records.throttles import PatientWriteThrottle


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, StaffOrReadOnly])
@throttle_classes([PatientWriteThrottle])
def children(request, patient_id: int, kind: str):
    child_kind = svc.get_kind(kind)
    patient = get_patient_for(request.user, patient_id)

    if request.method == 'POST':
        s = child_kind.serializer(data=request.data)
        s.is_valid(raise_exception=True)
        obj = svc.add_child(patient, child_kind, s.to_model_fields())
        return Response({'ok': True, 'data': child_kind.format(obj)}, status=status.HTTP_201_CREATED)

    q = ChildListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    data = svc.list_children(patient, child_kind, q.validated_data.get('limit'))
    return Response({'ok': True, 'data': data})


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, StaffOrReadOnly])
@throttle_classes([PatientWriteThrottle])
def child_detail(request, patient_id: int, kind: str, child_id: int):
    child_kind = svc.get_kind(kind)
    patient = get_patient_for(request.user, patient_id)
    obj = svc.get_child(patient, child_kind, child_id)

    if request.method == 'GET':
        return Response({'ok': True, 'data': child_kind.format(obj)})

    if request.method == 'DELETE':
        svc.delete_child(obj, child_kind)
        return Response({'ok': True})

    s = child_kind.serializer(data=request.data, partial=True)
    s.is_valid(raise_exception=True)
    obj = svc.update_child(obj, child_kind, s.to_model_fields())
    return Response({'ok': True, 'data': child_kind.format(obj)})
