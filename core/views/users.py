"""
Account profile endpoints and provider directories.
"""
from __future__ import annotations

from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from core.serializers.auth import ProfileUpdateSerializer
from core.services import users


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def user_profile(request):
    return Response({'ok': True, 'user': users.format_user(request.user)})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def user_profile_update(request):
    """Update display name, phone number and photo of the signed-in user."""
    s = ProfileUpdateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    data = {}
    if 'name' in vd:
        data['name'] = vd['name']
    if 'phoneNumber' in vd:
        data['phone_number'] = vd['phoneNumber']
    if 'photoURL' in vd:
        data['photo_url'] = vd['photoURL']
    user = users.update_user_data(request.user, data)
    return Response({'ok': True, 'user': users.format_user(user)})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def available_doctors(request):
    return Response({'ok': True, 'data': users.get_available_doctors()})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def available_healthcare_workers(request):
    return Response({'ok': True, 'data': users.get_available_healthcare_workers()})
