import logging
from decimal import Decimal

from django.db import transaction

from ..exceptions import InvalidInput
from ..models import CurrencyPolicy
from .audit_helper import log_action
from .common import (assign_fields, get_company, lock_company, parse_bool,
                     parse_decimal, parse_int, to_dict)
from .currency import _brief, get_base_currency, get_default_expense_currency

logger = logging.getLogger(__name__)

BOOLEAN_FIELDS = [
    "allow_multi_currency_expenses",
    "auto_convert_to_base",
    "allow_manual_rate_override",
    "require_rate_justification",
    "use_expense_date_rate",
    "fallback_to_nearest_rate",
    "show_original_amount",
    "show_conversion_rate",
]
POLICY_FIELDS = BOOLEAN_FIELDS + [
    "conversion_timing",
    "rate_tolerance_percentage",
    "rounding_method",
    "rounding_precision",
    "max_rate_age_days",
]
CONVERSION_TIMINGS = [value for value, _ in CurrencyPolicy.CONVERSION_TIMING_CHOICES]
ROUNDING_METHODS = [value for value, _ in CurrencyPolicy.ROUNDING_METHOD_CHOICES]


def policy_defaults():
    """Field defaults of CurrencyPolicy: the policy of a company that never saved one."""
    return {name: CurrencyPolicy._meta.get_field(name).get_default() for name in POLICY_FIELDS}


def get_policy_values(company_id):
    """Effective policy values (stored row, else defaults). Never writes."""
    policy = CurrencyPolicy.objects.filter(company_id=company_id).first()
    if policy is None:
        return policy_defaults()
    return {name: getattr(policy, name) for name in POLICY_FIELDS}


def get_currency_policy(company_id):
    company = get_company(company_id)
    policy = CurrencyPolicy.objects.filter(company=company).first()
    if policy is None:
        data = {"id": None, "company_id": company.pk, **policy_defaults()}
    else:
        data = to_dict(policy)
    data["is_default"] = policy is None
    data["base_currency"] = _brief(get_base_currency(company.pk))
    data["default_expense_currency"] = _brief(get_default_expense_currency(company.pk))
    return data


def _clean_payload(data):
    cleaned = {}
    for name in BOOLEAN_FIELDS:
        if name in data and data[name] is not None:
            value = parse_bool(data[name])
            if value is None:
                raise InvalidInput(f"{name} must be a boolean")
            cleaned[name] = value

    if data.get("conversion_timing") not in (None, ""):
        if data["conversion_timing"] not in CONVERSION_TIMINGS:
            raise InvalidInput(f"Conversion timing must be one of: {', '.join(CONVERSION_TIMINGS)}")
        cleaned["conversion_timing"] = data["conversion_timing"]

    if data.get("rounding_method") not in (None, ""):
        if data["rounding_method"] not in ROUNDING_METHODS:
            raise InvalidInput(f"Rounding method must be one of: {', '.join(ROUNDING_METHODS)}")
        cleaned["rounding_method"] = data["rounding_method"]

    if data.get("rounding_precision") not in (None, ""):
        precision = parse_int(data["rounding_precision"], "rounding_precision")
        if not 0 <= precision <= 8:
            raise InvalidInput("Rounding precision must be between 0 and 8")
        cleaned["rounding_precision"] = precision

    if data.get("rate_tolerance_percentage") not in (None, ""):
        tolerance = parse_decimal(data["rate_tolerance_percentage"], "rate_tolerance_percentage")
        if not Decimal("0") <= tolerance <= Decimal("100"):
            raise InvalidInput("Rate tolerance percentage must be between 0 and 100")
        cleaned["rate_tolerance_percentage"] = tolerance.quantize(Decimal("0.01"))

    if data.get("max_rate_age_days") not in (None, ""):
        days = parse_int(data["max_rate_age_days"], "max_rate_age_days")
        if days < 0:
            raise InvalidInput("Max rate age days cannot be negative")
        cleaned["max_rate_age_days"] = days

    return cleaned


def update_currency_policy(data, company_id, user_id=None):
    """Partial update; the row is created on first write."""
    cleaned = _clean_payload(data)

    with transaction.atomic():
        company = lock_company(company_id)
        policy = CurrencyPolicy.objects.select_for_update().filter(company=company).first()
        created = policy is None
        if created:
            policy = CurrencyPolicy(company=company, created_by=user_id)

        changes = assign_fields(policy, cleaned, cleaned.keys())
        policy.updated_by = user_id
        policy.save()
        log_action(
            action="create" if created else "update",
            instance=policy,
            user_id=user_id,
            changes=changes,
        )

    logger.info("Currency policy %s for company=%s", "created" if created else "updated", company.pk)
    return get_currency_policy(company.pk)
