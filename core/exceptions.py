import logging

from rest_framework import status
from rest_framework.exceptions import APIException
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler

logger = logging.getLogger(__name__)


class Conflict(APIException):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'Conflict with the current state of the resource.'
    default_code = 'conflict'


class InvalidTransition(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Status transition not allowed.'
    default_code = 'invalid_transition'


class CodedError(APIException):
    """400 error carrying an explicit machine readable code."""
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message, code, status_code=None):
        super().__init__(detail=message, code=code)
        if status_code is not None:
            self.status_code = status_code


def _error_code(exc, resp) -> str:
    codes = getattr(exc, 'get_codes', None)
    if callable(codes):
        c = codes()
        if isinstance(c, str):
            return c
    if resp.status_code == 400:
        return 'validation_error'
    return 'api_error'


def api_exception_handler(exc, context):
    resp = drf_exception_handler(exc, context)
    if resp is None:
        view = context.get('view')
        logger.exception("Unhandled error in %s", getattr(view, '__name__', view.__class__.__name__ if view else '?'))
        return Response({'ok': False, 'error': {'code': 'server_error', 'message': str(exc)}}, status=500)
    # normalize response
    detail = None
    if isinstance(resp.data, dict):
        detail = resp.data.get('detail') or resp.data
    else:
        detail = resp.data
    return Response({'ok': False, 'error': {'code': _error_code(exc, resp), 'message': detail}}, status=resp.status_code)
