"""
Doctor dashboard and reminder lists.

Each section carries its own ``status`` (ok, partial or failed) so a slow
or failing backend degrades the page instead of breaking it.
"""
from __future__ import annotations

from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from records.permissions import IsStaffRole
from records.serializers.clinical import HorizonQuerySerializer
from records.services.dashboard import cached_doctor_dashboard
from records.services.reminders import ReminderAggregator


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsStaffRole])
def doctor_dashboard(request):
    """Stats plus upcoming vaccinations and appointments, cached while complete."""
    refresh = request.query_params.get('refresh') in ('1', 'true')
    return Response(cached_doctor_dashboard(refresh=refresh))


def _horizon(request):
    q = HorizonQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    return q.validated_data.get('days')


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsStaffRole])
def upcoming_vaccinations(request):
    result = ReminderAggregator.from_settings().upcoming_vaccinations(_horizon(request))
    return Response(result.as_payload())


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsStaffRole])
def upcoming_appointments(request):
    result = ReminderAggregator.from_settings().upcoming_appointments(_horizon(request))
    return Response(result.as_payload())
