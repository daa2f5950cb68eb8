"""
Currency master lifecycle: create / restore, update, soft delete, base and
default flags, usage checks and dropdown data.
"""
import logging
import re
from decimal import Decimal

from django.db import transaction
from django.db.models import Count, Q
from django.utils import timezone

from ..exceptions import ConflictError, InvalidInput, RecordNotFound
from ..models import Currency, CurrencyPolicy, ExchangeRate
from .audit_helper import log_action
from .common import (assign_fields, clean_str, lock_company, page_params,
                     paginate, parse_bool, parse_int, to_dict)
from .exchange_rate import deactivate_rate, rate_to_dict, resolve_rate

logger = logging.getLogger(__name__)

CODE_PATTERN = re.compile(r"^[A-Z]{3}$")
SORTABLE_FIELDS = {"code", "name", "is_base_currency", "created_at"}
SYMBOL_POSITIONS = [value for value, _ in Currency.SYMBOL_POSITION_CHOICES]

# Values a restored (previously deleted) currency falls back to
CURRENCY_DEFAULTS = {
    "symbol_position": "Before",
    "decimal_places": 2,
    "decimal_separator": ".",
    "thousands_separator": ",",
    "is_base_currency": False,
    "is_default_expense_currency": False,
    "country_id": None,
    "is_active": True,
}


def currency_to_dict(currency):
    return to_dict(currency, exclude=("deleted_at", "deleted_by"))


def _brief(currency):
    if currency is None:
        return None
    return {"id": currency.pk, "code": currency.code, "name": currency.name, "symbol": currency.symbol}


def get_base_currency(company_id):
    return Currency.objects.for_company(company_id).alive().filter(is_base_currency=True).first()


def get_default_expense_currency(company_id):
    return Currency.objects.for_company(company_id).alive().filter(is_default_expense_currency=True).first()


def _get_currency(company, currency_id, *, lock=False):
    currency_id = parse_int(currency_id, "currency_id", required=True)
    qs = Currency.objects.select_for_update() if lock else Currency.objects.all()
    try:
        return qs.for_company(company).alive().get(pk=currency_id)
    except Currency.DoesNotExist:
        raise RecordNotFound("Currency not found")


# ---------- Validation ----------
def _clean_payload(data, *, partial):
    """Normalize the writable currency fields present in `data`."""
    cleaned = {}

    if not partial or "code" in data:
        code = clean_str(data.get("code")).upper()
        if not code:
            raise InvalidInput("Currency code is required")
        if not CODE_PATTERN.match(code):
            raise InvalidInput("Currency code must be 3 uppercase letters (ISO 4217)")
        cleaned["code"] = code

    for field, label in (("name", "Currency name"), ("symbol", "Currency symbol")):
        if not partial or field in data:
            value = clean_str(data.get(field))
            if not value:
                raise InvalidInput(f"{label} is required")
            cleaned[field] = value

    if data.get("symbol_position") not in (None, ""):
        position = clean_str(data["symbol_position"])
        if position not in SYMBOL_POSITIONS:
            raise InvalidInput("Symbol position must be Before or After")
        cleaned["symbol_position"] = position

    if data.get("decimal_places") not in (None, ""):
        places = parse_int(data["decimal_places"], "decimal_places")
        if not 0 <= places <= 4:
            raise InvalidInput("Decimal places must be between 0 and 4")
        cleaned["decimal_places"] = places

    # Separators are taken verbatim (a space is a valid thousands separator)
    if data.get("decimal_separator") not in (None, ""):
        separator = str(data["decimal_separator"])
        if len(separator) != 1:
            raise InvalidInput("Decimal separator must be a single character")
        cleaned["decimal_separator"] = separator
    if "thousands_separator" in data and data["thousands_separator"] is not None:
        separator = str(data["thousands_separator"])
        if len(separator) > 1:
            raise InvalidInput("Thousands separator must be a single character")
        cleaned["thousands_separator"] = separator

    for flag in ("is_base_currency", "is_default_expense_currency", "is_active"):
        if flag in data and data[flag] is not None:
            value = parse_bool(data[flag])
            if value is None:
                raise InvalidInput(f"{flag} must be a boolean")
            cleaned[flag] = value

    if "country_id" in data:
        cleaned["country_id"] = parse_int(data["country_id"], "country_id")

    return cleaned


def _clear_flag(company, flag, *, keep_pk=None, user_id=None):
    """Unset `flag` on every other live currency of the company."""
    return (
        Currency.objects.for_company(company)
        .alive()
        .filter(**{flag: True})
        .exclude(pk=keep_pk)
        .update(**{flag: False, "updated_by": user_id, "updated_at": timezone.now()})
    )


# ---------- Create ----------
def create_currency(data, company_id, user_id=None):
    """
    Create a currency, or restore a soft-deleted one with the same code.
    Setting the base/default flag moves it away from whichever currency
    held it.
    """
    cleaned = _clean_payload(data, partial=False)
    code = cleaned["code"]

    with transaction.atomic():
        # Serializes writers of the single-base / single-default invariants
        company = lock_company(company_id)

        if Currency.objects.for_company(company).alive().filter(code=code).exists():
            raise ConflictError("A currency with this code already exists")

        currency = (
            Currency.objects.select_for_update()
            .for_company(company)
            .dead()
            .filter(code=code)
            .order_by("-deleted_at")
            .first()
        )
        restored = currency is not None
        if restored:
            # Reuse the row: start from defaults, then apply the payload
            for field, value in CURRENCY_DEFAULTS.items():
                setattr(currency, field, value)
            currency.deleted_at = None
            currency.deleted_by = None
        else:
            currency = Currency(company=company, created_by=user_id)

        if cleaned.get("is_base_currency"):
            _clear_flag(company, "is_base_currency", keep_pk=currency.pk, user_id=user_id)
        if cleaned.get("is_default_expense_currency"):
            _clear_flag(company, "is_default_expense_currency", keep_pk=currency.pk, user_id=user_id)

        assign_fields(currency, cleaned, cleaned.keys())
        currency.updated_by = user_id
        currency.save()

        log_action(
            action="restore" if restored else "create",
            instance=currency,
            user_id=user_id,
            changes={"data": currency_to_dict(currency)},
        )

    logger.info(
        "Currency %s %s (company=%s, id=%s)",
        currency.code, "restored" if restored else "created", company.pk, currency.pk,
    )
    return currency_to_dict(currency)


# ---------- Read ----------
def list_currencies(filters, company_id):
    """Filtered, sorted, paginated currencies. Returns (rows, pagination)."""
    qs = Currency.objects.for_company(company_id).alive()

    is_active = parse_bool(filters.get("is_active"))
    if is_active is not None:
        qs = qs.filter(is_active=is_active)

    search = clean_str(filters.get("search"))
    if search:
        qs = qs.filter(Q(code__icontains=search) | Q(name__icontains=search))

    sort_by = clean_str(filters.get("sort_by")) or "code"
    if sort_by not in SORTABLE_FIELDS:
        sort_by = "code"
    if clean_str(filters.get("sort_order")).lower() == "desc":
        sort_by = f"-{sort_by}"

    # open, active versions quoted from this currency
    qs = qs.annotate(
        exchange_rates_count=Count(
            "rates_from",
            filter=Q(rates_from__is_active=True, rates_from__effective_to__isnull=True),
        )
    ).order_by(sort_by, "id")

    limit, offset = page_params(filters)
    rows, pagination = paginate(qs, limit, offset)

    base = get_base_currency(company_id)
    today = timezone.localdate()
    results = []
    for currency in rows:
        item = currency_to_dict(currency)
        item["exchange_rates_count"] = currency.exchange_rates_count
        if base is None:
            item["latest_rate_to_base"] = None
        elif currency.pk == base.pk:
            item["latest_rate_to_base"] = Decimal("1")
        else:
            rate = resolve_rate(company_id, currency.pk, base.pk, today)
            item["latest_rate_to_base"] = rate.exchange_rate if rate else None
        results.append(item)
    return results, pagination


def get_currency_details(currency_id, company_id):
    currency = _get_currency(company_id, currency_id)
    base = get_base_currency(company_id)

    current_rate = None
    if base is not None and base.pk != currency.pk:
        rate = resolve_rate(company_id, currency.pk, base.pk, timezone.localdate())
        current_rate = rate_to_dict(rate) if rate else None

    recent = (
        ExchangeRate.objects.for_company(company_id)
        .filter(Q(from_currency=currency) | Q(to_currency=currency))
        .select_related("from_currency", "to_currency")
        .order_by("-effective_from", "-id")[:10]
    )

    data = currency_to_dict(currency)
    data["base_currency"] = _brief(base)
    data["current_rate_to_base"] = current_rate
    data["recent_exchange_rates"] = [rate_to_dict(r) for r in recent]
    return data


# ---------- Update ----------
def update_currency(data, company_id, user_id=None):
    cleaned = _clean_payload(data, partial=True)

    with transaction.atomic():
        company = lock_company(company_id)
        currency = _get_currency(company, data.get("currency_id"), lock=True)

        if "code" in cleaned and cleaned["code"] != currency.code:
            clash = (
                Currency.objects.for_company(company).alive()
                .filter(code=cleaned["code"]).exclude(pk=currency.pk).exists()
            )
            if clash:
                raise ConflictError("A currency with this code already exists")

        if cleaned.get("is_base_currency") and not currency.is_base_currency:
            if not cleaned.get("is_active", currency.is_active):
                raise InvalidInput("Inactive currency cannot be set as base currency")
            _clear_flag(company, "is_base_currency", keep_pk=currency.pk, user_id=user_id)

        if cleaned.get("is_default_expense_currency") and not currency.is_default_expense_currency:
            _clear_flag(company, "is_default_expense_currency", keep_pk=currency.pk, user_id=user_id)

        changes = assign_fields(currency, cleaned, cleaned.keys())
        currency.updated_by = user_id
        currency.save()
        log_action(action="update", instance=currency, user_id=user_id, changes=changes)

    logger.info("Currency %s updated (company=%s, fields=%s)", currency.pk, company.pk, sorted(changes))
    return currency_to_dict(currency)


def _move_flag(currency_id, company_id, user_id, flag, label):
    with transaction.atomic():
        company = lock_company(company_id)
        currency = _get_currency(company, currency_id, lock=True)
        if not currency.is_active:
            raise InvalidInput(f"Inactive currency cannot be set as {label}")
        if getattr(currency, flag):
            return currency_to_dict(currency)

        previous = Currency.objects.for_company(company).alive().filter(**{flag: True}).first()
        _clear_flag(company, flag, keep_pk=currency.pk, user_id=user_id)
        setattr(currency, flag, True)
        currency.updated_by = user_id
        currency.save()
        log_action(
            action="update",
            instance=currency,
            user_id=user_id,
            changes={flag: {"old": previous.pk if previous else None, "new": currency.pk}},
        )

    logger.info("Currency %s set as %s (company=%s)", currency.code, label, company.pk)
    return currency_to_dict(currency)


def set_base_currency(currency_id, company_id, user_id=None):
    return _move_flag(currency_id, company_id, user_id, "is_base_currency", "base currency")


def set_default_expense_currency(currency_id, company_id, user_id=None):
    return _move_flag(
        currency_id, company_id, user_id, "is_default_expense_currency", "default expense currency"
    )


# ---------- Delete ----------
def delete_currency(currency_id, company_id, user_id=None):
    """
    Soft delete. The base currency cannot be deleted; every active rate on
    either side of the pair is deactivated with a history row.
    """
    with transaction.atomic():
        company = lock_company(company_id)
        currency = _get_currency(company, currency_id, lock=True)

        if currency.is_base_currency:
            logger.warning("Refused to delete base currency %s (company=%s)", currency.code, company.pk)
            raise ConflictError("Cannot delete base currency. Please set another currency as base first.")

        rates = (
            ExchangeRate.objects.select_for_update()
            .for_company(company)
            .filter(is_active=True)
            .filter(Q(from_currency=currency) | Q(to_currency=currency))
        )
        deactivated = 0
        for rate in rates:
            deactivate_rate(rate, user_id=user_id, reason="Currency deleted")
            deactivated += 1

        currency.is_default_expense_currency = False
        currency.soft_delete(user_id, extra_fields=["is_default_expense_currency"])
        log_action(
            action="delete",
            instance=currency,
            user_id=user_id,
            changes={"deactivated_rates": deactivated},
        )

    logger.info(
        "Currency %s deleted (company=%s, deactivated_rates=%d)", currency.code, company.pk, deactivated
    )
    return {"id": currency.pk, "code": currency.code, "deactivated_rates": deactivated}


# ---------- Usage / dropdown ----------
def check_usage(currency_id, company_id):
    currency = _get_currency(company_id, currency_id)

    usages = []
    if currency.is_base_currency:
        usages.append({"type": "base_currency", "count": 1, "description": "Company base currency"})
    if currency.is_default_expense_currency:
        usages.append({
            "type": "default_expense_currency", "count": 1,
            "description": "Default currency for new expenses",
        })
    rates = ExchangeRate.objects.for_company(company_id).filter(is_active=True)
    rates_from = rates.filter(from_currency=currency).count()
    if rates_from:
        usages.append({
            "type": "exchange_rates_from", "count": rates_from,
            "description": f"Source currency of {rates_from} active exchange rate(s)",
        })
    rates_to = rates.filter(to_currency=currency).count()
    if rates_to:
        usages.append({
            "type": "exchange_rates_to", "count": rates_to,
            "description": f"Target currency of {rates_to} active exchange rate(s)",
        })

    total = sum(u["count"] for u in usages)
    is_in_use = total > 0
    can_delete = not currency.is_base_currency and not is_in_use

    if currency.is_base_currency:
        message = "Cannot delete base currency. Please set another currency as base first."
    elif is_in_use:
        message = f"Currency is in use ({total} reference(s)). Deleting it will deactivate related exchange rates."
    else:
        message = "Currency can be safely deleted"

    return {
        "currency_id": currency.pk,
        "code": currency.code,
        "is_in_use": is_in_use,
        "total_usage_count": total,
        "usages": usages,
        "can_delete": can_delete,
        "message": message,
    }


def _choices(pairs):
    return [{"value": value, "label": label} for value, label in pairs]


def get_dropdown_data(filters, company_id):
    qs = Currency.objects.for_company(company_id).alive()
    if not parse_bool(filters.get("include_inactive"), False):
        qs = qs.filter(is_active=True)

    currencies = [
        {
            "id": c.pk,
            "code": c.code,
            "name": c.name,
            "symbol": c.symbol,
            "decimal_places": c.decimal_places,
            "is_base_currency": c.is_base_currency,
            "is_default_expense_currency": c.is_default_expense_currency,
            "is_active": c.is_active,
        }
        for c in qs.order_by("-is_base_currency", "code")
    ]
    return {
        "currencies": currencies,
        "symbol_positions": _choices(Currency.SYMBOL_POSITION_CHOICES),
        "rounding_methods": _choices(CurrencyPolicy.ROUNDING_METHOD_CHOICES),
        "conversion_timings": _choices(CurrencyPolicy.CONVERSION_TIMING_CHOICES),
        "rate_sources": _choices(ExchangeRate.RATE_SOURCE_CHOICES),
    }
