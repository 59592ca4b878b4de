"""
Home screen dashboard endpoint.

Each role gets the summary its home screen shows: doctors see the
review backlog and case statistics, healthcare workers their screening
counts and pending appointment requests, patients their reports and next
appointment.
"""
from __future__ import annotations

from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from core.services.dashboard import dashboard_for


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def dashboard(request):
    return Response({'ok': True, **dashboard_for(request.user)})
