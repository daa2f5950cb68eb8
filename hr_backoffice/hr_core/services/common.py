"""
Small helpers shared by every service: input coercion, pagination,
row serialization and the company-row lock.
"""
import datetime
import math
from decimal import Decimal, InvalidOperation

from django.conf import settings
from django.utils.dateparse import parse_date as _parse_date
from django.utils.dateparse import parse_datetime

from ..exceptions import InvalidInput, RecordNotFound
from ..models import Company

TRUE_VALUES = {"1", "true", "yes", "on"}
FALSE_VALUES = {"0", "false", "no", "off"}


# ---------- Input coercion ----------
def clean_str(value):
    if value is None:
        return ""
    return str(value).strip()


def parse_bool(value, default=None):
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    text = str(value).strip().lower()
    if text in TRUE_VALUES:
        return True
    if text in FALSE_VALUES:
        return False
    return default


def parse_int(value, field, *, required=False):
    if value is None or value == "":
        if required:
            raise InvalidInput(f"{field} is required")
        return None
    if isinstance(value, bool):
        raise InvalidInput(f"{field} must be an integer")
    try:
        number = int(value)
    except (TypeError, ValueError, OverflowError):
        raise InvalidInput(f"{field} must be an integer")
    # int() truncates 1.7 to 1
    if isinstance(value, (float, Decimal)) and value != number:
        raise InvalidInput(f"{field} must be an integer")
    return number


def parse_decimal(value, field, *, required=False):
    if value is None or value == "":
        if required:
            raise InvalidInput(f"{field} is required")
        return None
    if isinstance(value, bool):
        raise InvalidInput(f"{field} must be a number")
    try:
        # str() first so floats keep their printed digits (0.1 -> Decimal("0.1"))
        number = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise InvalidInput(f"{field} must be a number")
    if not number.is_finite():
        raise InvalidInput(f"{field} must be a number")
    return number


def parse_date(value, field, *, required=False):
    """Accept a date, a datetime or an ISO string ('2024-06-01', '2024-06-01T10:00:00Z')."""
    if value is None or value == "":
        if required:
            raise InvalidInput(f"{field} is required")
        return None
    if isinstance(value, datetime.datetime):
        return value.date()
    if isinstance(value, datetime.date):
        return value
    text = str(value).strip()
    try:
        parsed = _parse_date(text)
        if parsed is None:
            moment = parse_datetime(text)
            parsed = moment.date() if moment else None
    except ValueError:
        parsed = None
    if parsed is None:
        raise InvalidInput(f"{field} must be a valid date (YYYY-MM-DD)")
    return parsed


def parse_id_list(values, field):
    if values is None:
        return []
    if not isinstance(values, (list, tuple)):
        raise InvalidInput(f"{field} must be a list")
    return [parse_int(v, field, required=True) for v in values]


# ---------- Pagination ----------
def page_params(filters):
    limit = parse_int(filters.get("limit"), "limit") or settings.API_DEFAULT_PAGE_SIZE
    offset = parse_int(filters.get("offset"), "offset") or 0
    if limit < 1:
        raise InvalidInput("limit must be greater than 0")
    if offset < 0:
        raise InvalidInput("offset cannot be negative")
    return min(limit, settings.API_MAX_PAGE_SIZE), offset


def paginate(queryset, limit, offset):
    """Slice a queryset; return (rows, pagination block)."""
    total = queryset.count()
    rows = list(queryset[offset:offset + limit])
    return rows, {
        "total": total,
        "limit": limit,
        "offset": offset,
        "total_pages": math.ceil(total / limit) if limit else 0,
        "current_page": (offset // limit) + 1 if limit else 1,
    }


# ---------- Serialization ----------
def to_dict(instance, exclude=()):
    """Concrete columns keyed by attname (FKs come out as `<name>_id`)."""
    data = {}
    for field in instance._meta.concrete_fields:
        if field.attname in exclude or field.name in exclude:
            continue
        data[field.attname] = getattr(instance, field.attname)
    return data


def assign_fields(instance, data, fields):
    """
    Copy the keys of `data` that are in `fields` onto the instance.
    Empty strings on nullable non-text columns become NULL; type coercion is
    left to full_clean() on save.
    """
    changes = {}
    for name in fields:
        if name not in data:
            continue
        value = data[name]
        field = instance._meta.get_field(name)  # attnames ("parent_id") resolve too
        if isinstance(value, str) and field.get_internal_type() not in ("CharField", "TextField", "EmailField", "URLField", "SlugField"):
            value = value.strip()
            if value == "" and field.null:
                value = None
        old = getattr(instance, name, None)
        if old != value:
            changes[name] = {"old": _jsonable(old), "new": _jsonable(value)}
        setattr(instance, name, value)
    return changes


def _jsonable(value):
    if isinstance(value, (Decimal, datetime.date, datetime.datetime)):
        return str(value)
    return value


# ---------- Locks ----------
def lock_company(company_id):
    """
    Take a row lock on the tenant. Writes that protect a company-wide
    invariant (single base currency, sequential codes) serialize here.
    """
    company_id = parse_int(company_id, "company_id", required=True)
    try:
        return Company.objects.select_for_update().get(pk=company_id)
    except Company.DoesNotExist:
        raise RecordNotFound("Company not found")


def get_company(company_id):
    company_id = parse_int(company_id, "company_id", required=True)
    try:
        return Company.objects.get(pk=company_id)
    except Company.DoesNotExist:
        raise RecordNotFound("Company not found")
