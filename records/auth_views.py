"""
Authentication views.

Login hands out both a legacy DRF token and a JWT pair so clients can use
either ``Authorization: Token <key>`` or ``Authorization: Bearer <jwt>``.
Kept apart from ``records.authentication`` to avoid circular imports when
Django REST framework initialises authentication classes.
"""
from __future__ import annotations

import logging

from django.contrib.auth import authenticate
from django.db import transaction
from rest_framework.authtoken.models import Token
from rest_framework.decorators import api_view, permission_classes, throttle_classes
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework_simplejwt.exceptions import InvalidToken, TokenError
from rest_framework_simplejwt.serializers import TokenRefreshSerializer
from rest_framework_simplejwt.token_blacklist.models import BlacklistedToken, OutstandingToken
from rest_framework_simplejwt.tokens import RefreshToken

from records.models import Patient, User
from records.serializers.auth import LoginSerializer, RegisterSerializer
from records.services.audit import log_action
from records.services.patients import upsert_own_profile
from records.throttles import LoginRateThrottle, RegisterRateThrottle

logger = logging.getLogger(__name__)


def _user_payload(user: User) -> dict:
    patient = Patient.objects.filter(user=user).only('id').first()
    return {
        'id': user.id,
        'username': user.username,
        'email': user.email,
        'name': user.get_full_name() or user.username,
        'role': user.role,
        'patientId': patient.id if patient else None,
    }


def _token_payload(user: User) -> dict:
    token_obj, _ = Token.objects.get_or_create(user=user)
    refresh = RefreshToken.for_user(user)
    return {
        'ok': True,
        'token': token_obj.key,
        'jwt_access': str(refresh.access_token),
        'jwt_refresh': str(refresh),
        'role': user.role,
        'user': _user_payload(user),
    }


@api_view(['POST'])
@permission_classes([AllowAny])
@throttle_classes([LoginRateThrottle])
def login_view(request):
    """Username (or e-mail) and password login."""
    s = LoginSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    login = s.validated_data['login']
    password = s.validated_data['password']

    user = authenticate(request, username=login, password=password)
    if not user and '@' in login:
        # accounts created before e-mail usernames
        match = User.objects.filter(email__iexact=login).first()
        if match:
            user = authenticate(request, username=match.username, password=password)
    ip = request.META.get('REMOTE_ADDR')
    if not user:
        log_action(user=None, action='login', object_type='user',
                   detail={'result': 'fail', 'username': login, 'ip': ip})
        logger.info('failed login for %s from %s', login, ip)
        return Response({'ok': False, 'error': {'code': 'invalid_credentials',
                                                'message': 'Invalid username or password'}}, status=400)

    log_action(user=user, action='login', object_type='user', object_id=user.id,
               detail={'result': 'ok', 'ip': ip})
    return Response(_token_payload(user))


@api_view(['POST'])
@permission_classes([AllowAny])
@throttle_classes([RegisterRateThrottle])
def register_view(request):
    """Create an account.  Only administrators may pick a role other than patient."""
    s = RegisterSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    role = vd.get('role') or User.ROLE_PATIENT
    caller = request.user
    if role != User.ROLE_PATIENT and getattr(caller, 'role', None) != User.ROLE_ADMIN:
        role = User.ROLE_PATIENT

    with transaction.atomic():
        user = User.objects.create_user(username=vd['email'], email=vd['email'], password=vd['password'],
                                        first_name=vd['fullName'], role=role)
        if role == User.ROLE_PATIENT:
            upsert_own_profile(user, {'full_name': vd['fullName'], 'email': vd['email']})
        log_action(user=caller if getattr(caller, 'pk', None) else user, action='register',
                   object_type='user', object_id=user.id, detail={'role': role})
    return Response(_token_payload(user), status=201)


@api_view(['POST'])
@permission_classes([AllowAny])
def jwt_refresh_view(request):
    """Return a new access token from a refresh token."""
    s = TokenRefreshSerializer(data=request.data)
    try:
        s.is_valid(raise_exception=True)
    except TokenError as e:
        raise InvalidToken(e.args[0])
    data = dict(s.validated_data)
    data['jwt_access'] = data.pop('access')
    if 'refresh' in data:
        data['jwt_refresh'] = data.pop('refresh')
    return Response({'ok': True, **data})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def jwt_logout_view(request):
    """Blacklist the given refresh token, or every outstanding one of the caller."""
    refresh = request.data.get('refresh')
    count = 0
    if refresh:
        try:
            RefreshToken(refresh).blacklist()
            count = 1
        except TokenError as e:
            raise InvalidToken(e.args[0])
    else:
        for token in OutstandingToken.objects.filter(user=request.user):
            _, created = BlacklistedToken.objects.get_or_create(token=token)
            count += int(created)
    Token.objects.filter(user=request.user).delete()
    log_action(user=request.user, action='logout', object_type='user', object_id=request.user.id)
    return Response({'ok': True, 'blacklisted': count})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def me_view(request):
    return Response({'ok': True, 'user': _user_payload(request.user)})
