import logging
from contextlib import contextmanager

from django.db import DatabaseError
from django.http import Http404
from rest_framework import exceptions, status
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler

logger = logging.getLogger(__name__)


class BackendReadError(exceptions.APIException):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = 'The record store could not be read.'
    default_code = 'backend_read_error'


class BackendWriteError(exceptions.APIException):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = 'The record store could not be written.'
    default_code = 'backend_write_error'


@contextmanager
def backend_errors(exc_class, operation: str):
    """Translate ``DatabaseError`` raised inside the block into ``exc_class``."""
    try:
        yield
    except DatabaseError as e:
        logger.error('%s failed: %s', operation, e)
        raise exc_class() from e


def _error_code(exc) -> str:
    if isinstance(exc, exceptions.ValidationError):
        return 'validation_error'
    if isinstance(exc, (exceptions.NotFound, Http404)):
        return 'not_found'
    if isinstance(exc, exceptions.APIException):
        return exc.default_code
    return 'api_error'


def api_exception_handler(exc, context):
    resp = drf_exception_handler(exc, context)
    if resp is None:
        logger.exception('Unhandled error in %s', context.get('view'), exc_info=exc)
        return Response({'ok': False, 'error': {'code': 'server_error', 'message': str(exc)}}, status=500)
    # normalize response
    if isinstance(resp.data, dict):
        detail = resp.data.get('detail') or resp.data
    else:
        detail = resp.data
    return Response(
        {'ok': False, 'error': {'code': _error_code(exc), 'message': detail}},
        status=resp.status_code,
        headers={k: resp[k] for k in ('WWW-Authenticate', 'Retry-After') if resp.has_header(k)},
    )
