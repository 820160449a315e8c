# apps/core/responses.py

import json
import logging
from datetime import date
from functools import wraps

from django.core.exceptions import ObjectDoesNotExist, PermissionDenied, ValidationError
from django.http import JsonResponse

logger = logging.getLogger(__name__)


def json_body(request):
    """Decoded JSON payload of the request (empty dict for an empty body)"""
    if not request.body:
        return {}
    try:
        data = json.loads(request.body)
    except json.JSONDecodeError:
        raise ValidationError("Invalid JSON body")
    if not isinstance(data, dict):
        raise ValidationError("JSON body must be an object")
    return data


def parse_date(value, field='date'):
    if value in (None, ''):
        return None
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid {field}: {value!r}")


def parse_ids(values, field='ids'):
    if not isinstance(values, list) or not values:
        raise ValidationError(f"'{field}' must be a non-empty list")
    try:
        return [int(value) for value in values]
    except (TypeError, ValueError):
        raise ValidationError(f"'{field}' must only contain integer ids")


def error_response(message, status=400):
    return JsonResponse({'success': False, 'error': message}, status=status)


def json_errors(view_func):
    """
    Translates domain exceptions of JSON views into error responses

    ValidationError -> 400, PermissionDenied -> 403, missing rows -> 404
    """

    @wraps(view_func)
    def wrapped_view(request, *args, **kwargs):
        try:
            return view_func(request, *args, **kwargs)
        except ValidationError as e:
            return error_response('; '.join(e.messages), status=400)
        except PermissionDenied as e:
            logger.warning(f"⛔ {request.user} denied on {request.path}: {e}")
            return error_response(str(e) or 'Permission denied', status=403)
        except ObjectDoesNotExist as e:
            return error_response(str(e) or 'Not found', status=404)

    return wrapped_view
