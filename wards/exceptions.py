"""
Error taxonomy for the ward services and the unified API error envelope.

Service errors are DRF ``APIException`` subclasses so that services can
raise them directly and DRF renders the right status code.  Every error
leaving the API has the shape
``{"ok": false, "error": {"code": ..., "message": ...}}``.
"""
import logging

from rest_framework import exceptions, status
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler

logger = logging.getLogger(__name__)


class ServiceError(exceptions.APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Request could not be processed.'
    default_code = 'service_error'


class ValidationError(ServiceError):
    """Malformed or missing input; ``detail`` may be a field -> message dict."""
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Invalid input.'
    default_code = 'validation_error'


class AuthorizationError(ServiceError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = 'Access denied. Admin, doctor, or staff role required.'
    default_code = 'forbidden'


class NotFoundError(ServiceError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = 'Not found.'
    default_code = 'not_found'


class ConflictError(ServiceError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'The request conflicts with the current state.'
    default_code = 'conflict'


class BedNoLongerAvailable(ConflictError):
    default_detail = 'Bed is no longer available, please pick another.'
    default_code = 'bed_no_longer_available'


_DRF_CODES = {
    exceptions.ValidationError: 'validation_error',
    exceptions.NotAuthenticated: 'not_authenticated',
    exceptions.AuthenticationFailed: 'authentication_failed',
    exceptions.PermissionDenied: 'forbidden',
    exceptions.NotFound: 'not_found',
    exceptions.MethodNotAllowed: 'method_not_allowed',
    exceptions.Throttled: 'throttled',
}


def _error_code(exc) -> str:
    if isinstance(exc, ServiceError):
        return exc.default_code
    for klass, code in _DRF_CODES.items():
        if isinstance(exc, klass):
            return code
    return 'api_error'


def api_exception_handler(exc, context):
    resp = drf_exception_handler(exc, context)
    if resp is None:
        logger.exception('Unhandled error in %s', context.get('view'))
        return Response(
            {'ok': False, 'error': {'code': 'server_error', 'message': 'Internal server error.'}},
            status=500,
        )
    if isinstance(resp.data, dict):
        message = resp.data.get('detail') or resp.data
    elif isinstance(resp.data, list) and len(resp.data) == 1:
        message = resp.data[0]
    else:
        message = resp.data
    code = _error_code(exc)
    if isinstance(exc, ServiceError):
        logger.warning('%s: %s', code, message)
    # keep WWW-Authenticate / Retry-After set by DRF
    headers = {k: resp[k] for k in ('WWW-Authenticate', 'Retry-After') if resp.has_header(k)}
    return Response({'ok': False, 'error': {'code': code, 'message': message}}, status=resp.status_code, headers=headers)
