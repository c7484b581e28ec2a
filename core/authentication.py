"""
``Authorization: Token <key>`` authentication for staff accounts.

Kept apart from the views so REST framework can import it while loading
settings without pulling in the URL configuration.
"""
from __future__ import annotations

from rest_framework import authentication, exceptions


class TokenAuthentication(authentication.TokenAuthentication):
    """DRF token auth that loads the caller's hospital and county with the token.

    Every scoped query reads ``user.hospital_id``/``user.county_id`` and the
    role checks read ``user.role``, so the join here saves a query per request.
    """

    keyword = 'Token'

    def authenticate_credentials(self, key):
        model = self.get_model()
        try:
            token = model.objects.select_related('user', 'user__hospital', 'user__county').get(key=key)
        except model.DoesNotExist:
            raise exceptions.AuthenticationFailed('Invalid token.')

        if not token.user.is_active:
            raise exceptions.AuthenticationFailed('Staff account is deactivated.')

        return (token.user, token)
