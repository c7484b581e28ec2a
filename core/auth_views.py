"""
Authentication views.

Login hands out both a legacy DRF token and a simplejwt pair so API
clients can pick either header scheme.  These views live apart from the
authentication class (see ``core.authentication``) to avoid circular
imports while DRF initialises its settings.
"""
from __future__ import annotations

import logging

from django.contrib.auth import authenticate, get_user_model
from django.contrib.auth.models import update_last_login
from rest_framework.authtoken.models import Token
from rest_framework.decorators import api_view, permission_classes, throttle_classes
from rest_framework.exceptions import AuthenticationFailed
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.throttling import AnonRateThrottle
from rest_framework_simplejwt.exceptions import TokenError, InvalidToken
from rest_framework_simplejwt.serializers import TokenRefreshSerializer
from rest_framework_simplejwt.token_blacklist.models import BlacklistedToken, OutstandingToken
from rest_framework_simplejwt.tokens import RefreshToken

from core.permissions import permissions_for
from core.serializers.auth import LoginSerializer, RefreshSerializer, LogoutSerializer, RegisterSerializer
from core.services.audit import log_action
from core.services.staff import format_staff, register_staff
from core.views.common import ok, validated

User = get_user_model()
logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = 'Invalid email or password'


class LoginRateThrottle(AnonRateThrottle):
    scope = 'login'


def _find_user(identifier: str):
    return (User.objects.filter(email__iexact=identifier).first()
            or User.objects.filter(username=identifier).first())


def _failed_login(request, identifier, reason, user=None):
    logger.warning("Failed login for %s: %s", identifier, reason)
    log_action(user=user, action='LOGIN', entity_type='User', entity_id=getattr(user, 'id', None),
               description=f'Failed login for {identifier}', request=request,
               success=False, error_message=reason)
    raise AuthenticationFailed(INVALID_CREDENTIALS if reason != 'inactive' else 'Account is inactive')


def _profile(user) -> dict:
    data = format_staff(user, detail=True)
    data['hospitalName'] = user.hospital.name if user.hospital_id else None
    data['countyName'] = user.county.name if user.county_id else None
    return data


# ---------------------------------------------------------------------
# Email/password login
# ---------------------------------------------------------------------
@api_view(['POST'])
@permission_classes([AllowAny])
@throttle_classes([LoginRateThrottle])
def login_view(request):
    """
    Accepts ``email`` (or ``username``) and ``password``.  Every attempt
    leaves a LOGIN audit row; failures answer 401 without telling the
    caller which part was wrong.
    """
    vd = validated(LoginSerializer, request.data)
    identifier = vd['identifier']

    candidate = _find_user(identifier)
    if candidate is None:
        _failed_login(request, identifier, 'unknown user')
    if not candidate.is_active:
        _failed_login(request, identifier, 'inactive', candidate)

    user = authenticate(request, username=candidate.get_username(), password=vd['password'])
    if user is None:
        _failed_login(request, identifier, 'bad password', candidate)

    update_last_login(None, user)
    log_action(user=user, action='LOGIN', entity_type='User', entity_id=user.id,
               description=f'{user.full_name} signed in', request=request)

    # legacy token
    token_obj, _ = Token.objects.get_or_create(user=user)
    refresh = RefreshToken.for_user(user)

    return Response({
        'ok': True,
        'token': token_obj.key,
        'jwt_access': str(refresh.access_token),
        'jwt_refresh': str(refresh),
        'role': user.role,
        'permissions': permissions_for(user),
        'user': _profile(user),
    }, status=200)


# ---------------------------------------------------------------------
# JWT: refresh & logout
# ---------------------------------------------------------------------
@api_view(['POST'])
@permission_classes([AllowAny])
def jwt_refresh_view(request):
    """Return a new access token from refresh token."""
    vd = validated(RefreshSerializer, request.data)
    s = TokenRefreshSerializer(data={'refresh': vd['refresh']})
    try:
        s.is_valid(raise_exception=True)
    except TokenError as e:
        raise InvalidToken(e.args[0])
    data = dict(s.validated_data)
    payload = {'ok': True, 'jwt_access': data['access']}
    if 'refresh' in data:
        payload['jwt_refresh'] = data['refresh']
    return Response(payload)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def jwt_logout_view(request):
    """Blacklist the given refresh token (or all of the caller's) and drop the legacy token."""
    vd = validated(LogoutSerializer, request.data)
    refresh = vd.get('refresh')
    count = 0
    if refresh:
        try:
            RefreshToken(refresh).blacklist()
            count = 1
        except TokenError:
            logger.info("Logout with an invalid refresh token for user %s", request.user.id)
    else:
        for token in OutstandingToken.objects.filter(user=request.user):
            _, created = BlacklistedToken.objects.get_or_create(token=token)
            count += int(created)
    Token.objects.filter(user=request.user).delete()
    log_action(user=request.user, action='LOGOUT', entity_type='User', entity_id=request.user.id,
               description=f'{request.user.full_name} signed out', request=request)
    return Response({'ok': True, 'blacklisted': count})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def me_view(request):
    return ok(_profile(request.user))


@api_view(['POST'])
@permission_classes([AllowAny])
@throttle_classes([LoginRateThrottle])
def register_view(request):
    """Request a staff account.  It stays inactive until an administrator approves it."""
    data = validated(RegisterSerializer, request.data)
    user = register_staff(data, request=request)
    return ok({'id': user.id, 'email': user.email, 'role': user.role, 'isActive': user.is_active},
              status=201, message='Registration received; an administrator must activate the account')
