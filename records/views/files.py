"""
Patient documents.  Staff manage any patient's files; a patient may list
and upload their own.
"""
from __future__ import annotations

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import ValidationError
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from records.permissions import IsStaffRole
from records.services.files import DEFAULT_FOLDER, PatientFileStore
from records.services.patients import get_patient_for


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def patient_files(request, patient_id: int):
    patient = get_patient_for(request.user, patient_id)
    store = PatientFileStore()
    folder = request.query_params.get('folder') or DEFAULT_FOLDER

    if request.method == 'GET':
        result = store.list(patient.id, folder)
        return Response(result, status=status.HTTP_200_OK if result['success'] else status.HTTP_400_BAD_REQUEST)

    files = request.FILES.getlist('files') or request.FILES.getlist('file')
    if not files:
        raise ValidationError({'files': 'No file uploaded'})
    result = store.put_many(patient.id, files, folder)
    return Response(result, status=status.HTTP_201_CREATED if result['success'] else status.HTTP_400_BAD_REQUEST)


@api_view(['DELETE'])
@permission_classes([IsAuthenticated, IsStaffRole])
def patient_file_detail(request, patient_id: int, file_name: str):
    patient = get_patient_for(request.user, patient_id)
    folder = request.query_params.get('folder') or DEFAULT_FOLDER
    result = PatientFileStore().delete(patient.id, file_name, folder)
    if result['success']:
        return Response(result)
    code = status.HTTP_404_NOT_FOUND if result['error'] == 'file not found' else status.HTTP_400_BAD_REQUEST
    return Response(result, status=code)
