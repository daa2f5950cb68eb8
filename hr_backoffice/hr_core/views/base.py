"""
JSON plumbing shared by every endpoint.

Views are plain functions of (body, company_id, user_id); `api_view` reads
the request, resolves the tenant, maps service errors to HTTP statuses and
wraps the result in the {success, message, data, pagination} envelope.
"""
import json
import logging
from functools import wraps

from django.core.exceptions import ValidationError
from django.core.serializers.json import DjangoJSONEncoder
from django.db import IntegrityError
from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from ..exceptions import InvalidInput, ServiceError
from ..services.common import parse_int

logger = logging.getLogger(__name__)


def respond(success, *, message=None, data=None, pagination=None, status=200):
    body = {"success": success}
    if message:
        body["message"] = message
    if data is not None:
        body["data"] = data
    if pagination is not None:
        body["pagination"] = pagination
    # Decimals and dates serialize as strings ("12.50", "2024-06-01")
    return JsonResponse(body, status=status, encoder=DjangoJSONEncoder)


def _read_body(request):
    if not request.body:
        return {}
    try:
        body = json.loads(request.body)
    except (ValueError, UnicodeDecodeError):
        raise InvalidInput("Request body must be valid JSON")
    if not isinstance(body, dict):
        raise InvalidInput("Request body must be a JSON object")
    return body


def api_view(message=None, status=200):
    def decorator(func):
        @csrf_exempt
        @require_POST
        @wraps(func)
        def wrapper(request, *args, **kwargs):
            try:
                body = _read_body(request)
                # Tenant headers (set by CurrentCompanyMiddleware) win over the body
                company_id = parse_int(
                    getattr(request, "company_id", None) or body.get("company_id"),
                    "company_id",
                    required=True,
                )
                user_id = parse_int(getattr(request, "user_id", None) or body.get("user_id"), "user_id")
                result = func(body, company_id, user_id, *args, **kwargs)
            except ServiceError as exc:
                return respond(False, message=exc.message, data=exc.details, status=exc.status_code)
            except ValidationError as exc:
                return respond(False, message="; ".join(exc.messages), status=400)
            except IntegrityError as exc:
                # a partial unique index caught a concurrent writer
                logger.warning("Integrity error in %s: %s", func.__name__, exc)
                return respond(False, message="Request conflicts with existing data", status=409)
            except Exception as exc:
                logger.exception("Unhandled error in %s", func.__name__)
                return respond(False, message=str(exc), status=500)

            if isinstance(result, tuple):
                data, pagination = result
            else:
                data, pagination = result, None
            return respond(True, message=message, data=data, pagination=pagination, status=status)

        return wrapper

    return decorator
