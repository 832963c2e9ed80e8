import logging

from rest_framework import status
from rest_framework.exceptions import APIException
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class MarketplaceError(APIException):
    """Base class for errors raised by marketplace services."""
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Request could not be processed.'
    default_code = 'error'


class ValidationFailed(MarketplaceError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Invalid input.'
    default_code = 'validation_failed'


class NotAuthorized(MarketplaceError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = 'Unauthorized'
    default_code = 'not_authorized'


class NotFound(MarketplaceError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = 'Not found.'
    default_code = 'not_found'


class ConflictError(MarketplaceError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'Resource already exists.'
    default_code = 'conflict'


class InvalidStateError(MarketplaceError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'Operation not allowed in the current state.'
    default_code = 'invalid_state'


class ExternalServiceError(MarketplaceError):
    status_code = status.HTTP_502_BAD_GATEWAY
    default_detail = 'Upstream service failed.'
    default_code = 'external_error'


def _first_message(detail):
    if isinstance(detail, list) and detail:
        return _first_message(detail[0])
    if isinstance(detail, dict) and detail:
        key, value = next(iter(detail.items()))
        message = _first_message(value)
        return message if key == 'non_field_errors' else f"{key}: {message}"
    return str(detail)


def envelope_exception_handler(exc, context):
    """
    Render every handled exception as {"success": false, "error": {...}}.
    Unhandled exceptions fall through to Django (500).
    """
    response = exception_handler(exc, context)
    if response is None:
        return None

    view = context.get('view')
    logger.warning(
        "Request failed in %s: %s",
        view.__class__.__name__ if view else 'unknown view',
        exc,
    )

    detail = response.data
    top = detail.get('detail') if isinstance(detail, dict) else None
    error = {
        'message': _first_message(top if top is not None else detail),
        'code': getattr(top, 'code', None) or getattr(exc, 'default_code', 'error'),
    }
    if isinstance(detail, (dict, list)) and not (isinstance(detail, dict) and set(detail) == {'detail'}):
        error['details'] = detail

    response.data = {'success': False, 'error': error}
    return response


def success(data, **extra):
    payload = {'success': True, 'data': data}
    payload.update(extra)
    return payload
