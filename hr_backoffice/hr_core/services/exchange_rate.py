"""
Temporal exchange-rate versioning.

A pair (from -> to) has a chain of versions, each valid on
[effective_from, effective_to]. Writing a new version closes the open one
the day before the new version starts. Every change leaves an
ExchangeRateHistory row.
"""
import datetime
import logging
from decimal import ROUND_HALF_UP, Decimal

from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from ..exceptions import InvalidInput, RecordNotFound
from ..models import Currency, ExchangeRate, ExchangeRateHistory
from .common import (clean_str, lock_company, page_params, paginate,
                     parse_bool, parse_date, parse_decimal, parse_int, to_dict)

logger = logging.getLogger(__name__)

# Stored precision of ExchangeRate.exchange_rate
RATE_QUANTUM = Decimal("0.00000001")
# 18 digits with 8 places leaves 10 before the point
MAX_RATE = Decimal("1e10")
RATE_SOURCES = [value for value, _ in ExchangeRate.RATE_SOURCE_CHOICES]


# ---------- Serialization ----------
def rate_to_dict(rate):
    data = to_dict(rate)
    # codes are handy for the UI; only read them when already joined
    if ExchangeRate.from_currency.is_cached(rate):
        data["from_currency_code"] = rate.from_currency.code
    if ExchangeRate.to_currency.is_cached(rate):
        data["to_currency_code"] = rate.to_currency.code
    return data


def history_to_dict(entry):
    return to_dict(entry)


# ---------- Lookups ----------
def resolve_rate(company_id, from_currency_id, to_currency_id, on_date):
    """
    The version of from -> to whose window contains on_date.
    When windows overlap the most recent effective_from wins.
    """
    return (
        ExchangeRate.objects.for_company(company_id)
        .filter(
            from_currency_id=from_currency_id,
            to_currency_id=to_currency_id,
            is_active=True,
            effective_from__lte=on_date,
        )
        .filter(Q(effective_to__isnull=True) | Q(effective_to__gte=on_date))
        .order_by("-effective_from", "-id")
        .first()
    )


def _active_currency(company, currency_id, label):
    try:
        return Currency.objects.for_company(company).alive().get(pk=currency_id, is_active=True)
    except Currency.DoesNotExist:
        raise RecordNotFound(f"{label} currency not found or inactive")


# ---------- History ----------
def write_history(rate, action, *, user_id=None, reason="", before=None):
    """
    Append one history row. `before` is the (rate, effective_from, effective_to)
    triple the row had prior to the change; None for a fresh row.
    """
    old_rate, old_from, old_to = before if before else (None, None, None)
    deactivated = action == "Deactivate"
    return ExchangeRateHistory.objects.create(
        company_id=rate.company_id,
        exchange_rate=rate,
        action=action,
        old_rate=old_rate,
        new_rate=None if deactivated else rate.exchange_rate,
        old_effective_from=old_from,
        new_effective_from=None if deactivated else rate.effective_from,
        old_effective_to=old_to,
        new_effective_to=None if deactivated else rate.effective_to,
        change_reason=reason or "",
        changed_by=user_id,
    )


def deactivate_rate(rate, *, user_id=None, reason="Rate deleted"):
    before = (rate.exchange_rate, rate.effective_from, rate.effective_to)
    rate.is_active = False
    rate.updated_by = user_id
    rate.save(update_fields=["is_active", "updated_by", "updated_at"])
    write_history(rate, "Deactivate", user_id=user_id, reason=reason, before=before)
    return rate


# ---------- Write path ----------
def _clean_rate_value(value):
    rate = parse_decimal(value, "exchange_rate")
    if rate is None or rate <= 0:
        raise InvalidInput("Exchange rate must be greater than 0")
    if rate >= MAX_RATE:
        raise InvalidInput("Exchange rate is too large")
    rate = rate.quantize(RATE_QUANTUM, rounding=ROUND_HALF_UP)
    if rate <= 0:
        raise InvalidInput("Exchange rate must be greater than 0")
    return rate


def _clean_pair(item):
    from_id = parse_int(item.get("from_currency_id"), "from_currency_id")
    to_id = parse_int(item.get("to_currency_id"), "to_currency_id")
    if not from_id or not to_id:
        raise InvalidInput("Both from_currency_id and to_currency_id are required")
    if from_id == to_id:
        raise InvalidInput("From and To currencies must be different")
    return from_id, to_id


def _clean_source(value):
    source = clean_str(value) or "Manual"
    if source not in RATE_SOURCES:
        raise InvalidInput(f"Rate source must be one of: {', '.join(RATE_SOURCES)}")
    return source


def _close_open_rate(company, from_id, to_id, new_effective_from, user_id):
    """Close the open version of the pair the day before new_effective_from."""
    open_rate = (
        ExchangeRate.objects.select_for_update()
        .for_company(company)
        .filter(
            from_currency_id=from_id,
            to_currency_id=to_id,
            is_active=True,
            effective_to__isnull=True,
        )
        .first()
    )
    if open_rate is None:
        return None

    # Closing it on or before its own start would leave an inverted window
    if new_effective_from <= open_rate.effective_from:
        raise InvalidInput(
            f"Effective from date must be after {open_rate.effective_from.isoformat()}, "
            "the start of the current rate"
        )

    before = (open_rate.exchange_rate, open_rate.effective_from, open_rate.effective_to)
    open_rate.effective_to = new_effective_from - datetime.timedelta(days=1)
    open_rate.updated_by = user_id
    open_rate.save(update_fields=["effective_to", "updated_by", "updated_at"])
    write_history(
        open_rate, "Update", user_id=user_id,
        reason="Auto-closed due to new rate", before=before,
    )
    return open_rate


def _create_version(company, *, from_currency, to_currency, rate, effective_from,
                    effective_to=None, rate_source="Manual", source_reference="",
                    user_id=None, reason=""):
    new_rate = ExchangeRate(
        company=company,
        from_currency=from_currency,
        to_currency=to_currency,
        exchange_rate=rate,
        effective_from=effective_from,
        effective_to=effective_to,
        rate_source=rate_source,
        source_reference=source_reference,
        created_by=user_id,
        updated_by=user_id,
    )
    new_rate.save()
    write_history(new_rate, "Create", user_id=user_id, reason=reason or "New rate created")
    return new_rate


def upsert_exchange_rate(data, company_id, user_id=None):
    """
    Add a new version of a pair's rate. The currently open version (if any)
    is closed at effective_from - 1 day. All writes share one transaction.
    """
    from_id, to_id = _clean_pair(data)
    rate = _clean_rate_value(data.get("exchange_rate"))
    effective_from = parse_date(data.get("effective_from"), "effective_from")
    if effective_from is None:
        raise InvalidInput("Effective from date is required")
    effective_to = parse_date(data.get("effective_to"), "effective_to")
    if effective_to and effective_to < effective_from:
        raise InvalidInput("Effective to date cannot be before effective from date")
    rate_source = _clean_source(data.get("rate_source"))

    with transaction.atomic():
        company = lock_company(company_id)
        from_currency = _active_currency(company, from_id, "From")
        to_currency = _active_currency(company, to_id, "To")

        closed = _close_open_rate(company, from_id, to_id, effective_from, user_id)
        new_rate = _create_version(
            company,
            from_currency=from_currency,
            to_currency=to_currency,
            rate=rate,
            effective_from=effective_from,
            effective_to=effective_to,
            rate_source=rate_source,
            source_reference=clean_str(data.get("source_reference")),
            user_id=user_id,
            reason=clean_str(data.get("change_reason")),
        )

    logger.info(
        "Exchange rate %s->%s set to %s from %s (company=%s, closed=%s)",
        from_currency.code, to_currency.code, rate, effective_from,
        company.pk, closed.pk if closed else None,
    )
    return {
        "exchange_rate": rate_to_dict(new_rate),
        "closed_rate": rate_to_dict(closed) if closed else None,
    }


def bulk_update_rates(data, company_id, user_id=None):
    """
    Apply many pair rates sharing one effective_from.
    Each item runs in its own savepoint: an invalid item is reported in
    `skipped` with its reason and leaves no rows behind.
    """
    items = data.get("rates")
    if not isinstance(items, list) or not items:
        raise InvalidInput("No rates provided for update")
    effective_from = parse_date(data.get("effective_from"), "effective_from")
    if effective_from is None:
        raise InvalidInput("Effective from date is required")
    rate_source = _clean_source(data.get("rate_source"))
    source_reference = clean_str(data.get("source_reference"))
    reason = clean_str(data.get("change_reason")) or "Bulk rate update"

    updated, skipped = [], []
    with transaction.atomic():
        company = lock_company(company_id)
        for index, item in enumerate(items):
            if not isinstance(item, dict):
                skipped.append({"index": index, "reason": "Invalid rate entry"})
                continue
            try:
                with transaction.atomic():
                    from_id, to_id = _clean_pair(item)
                    rate = _clean_rate_value(item.get("exchange_rate"))
                    from_currency = _active_currency(company, from_id, "From")
                    to_currency = _active_currency(company, to_id, "To")
                    _close_open_rate(company, from_id, to_id, effective_from, user_id)
                    new_rate = _create_version(
                        company,
                        from_currency=from_currency,
                        to_currency=to_currency,
                        rate=rate,
                        effective_from=effective_from,
                        rate_source=rate_source,
                        source_reference=source_reference,
                        user_id=user_id,
                        reason=reason,
                    )
            except (InvalidInput, RecordNotFound) as exc:
                skipped.append(_skip(index, item, exc.message))
                continue
            except ValidationError as exc:
                skipped.append(_skip(index, item, "; ".join(exc.messages)))
                continue
            updated.append(rate_to_dict(new_rate))

    logger.info(
        "Bulk rate update for company=%s: %d updated, %d skipped",
        company.pk, len(updated), len(skipped),
    )
    return {
        "updated": updated,
        "skipped": skipped,
        "updated_count": len(updated),
        "skipped_count": len(skipped),
    }


def _skip(index, item, reason):
    return {
        "index": index,
        "from_currency_id": item.get("from_currency_id"),
        "to_currency_id": item.get("to_currency_id"),
        "reason": reason,
    }


def delete_exchange_rate(rate_id, company_id, user_id=None, reason=None):
    rate_id = parse_int(rate_id, "exchange_rate_id", required=True)
    with transaction.atomic():
        try:
            rate = ExchangeRate.objects.select_for_update().for_company(company_id).get(pk=rate_id)
        except ExchangeRate.DoesNotExist:
            raise RecordNotFound("Exchange rate not found")
        if not rate.is_active:
            raise InvalidInput("Exchange rate is already inactive")
        deactivate_rate(rate, user_id=user_id, reason=clean_str(reason) or "Rate deleted")

    logger.info("Exchange rate %s deactivated (company=%s)", rate.pk, rate.company_id)
    return rate_to_dict(rate)


# ---------- Read path ----------
def get_exchange_rates(filters, company_id):
    """
    Paginated rate versions, plus the current rate of a pair (window
    containing effective_date, default today) and optionally its full chain.
    Returns (data, pagination).
    """
    from_id = parse_int(filters.get("from_currency_id"), "from_currency_id")
    to_id = parse_int(filters.get("to_currency_id"), "to_currency_id")
    effective_date = parse_date(filters.get("effective_date"), "effective_date") or timezone.localdate()
    include_history = parse_bool(filters.get("include_history"), False)
    include_inactive = parse_bool(filters.get("include_inactive"), False)
    limit, offset = page_params(filters)

    qs = ExchangeRate.objects.for_company(company_id).select_related("from_currency", "to_currency")
    if from_id:
        qs = qs.filter(from_currency_id=from_id)
    if to_id:
        qs = qs.filter(to_currency_id=to_id)
    if not include_inactive:
        qs = qs.filter(is_active=True)
    rows, pagination = paginate(qs.order_by("-effective_from", "-id"), limit, offset)

    current_rate = None
    history = None
    if from_id and to_id:
        current = resolve_rate(company_id, from_id, to_id, effective_date)
        current_rate = rate_to_dict(current) if current else None
        if include_history:
            chain = (
                ExchangeRate.objects.for_company(company_id)
                .filter(from_currency_id=from_id, to_currency_id=to_id)
                .select_related("from_currency", "to_currency")
                .order_by("-effective_from", "-id")
            )
            history = [rate_to_dict(r) for r in chain]

    data = {
        "rates": [rate_to_dict(r) for r in rows],
        "current_rate": current_rate,
        "history": history,
    }
    return data, pagination


def get_exchange_rate_history(filters, company_id):
    """History rows, newest first. Returns (rows, pagination)."""
    qs = ExchangeRateHistory.objects.for_company(company_id)

    rate_id = parse_int(filters.get("exchange_rate_id"), "exchange_rate_id")
    if rate_id:
        qs = qs.filter(exchange_rate_id=rate_id)
    from_id = parse_int(filters.get("from_currency_id"), "from_currency_id")
    if from_id:
        qs = qs.filter(exchange_rate__from_currency_id=from_id)
    to_id = parse_int(filters.get("to_currency_id"), "to_currency_id")
    if to_id:
        qs = qs.filter(exchange_rate__to_currency_id=to_id)
    from_date = parse_date(filters.get("from_date"), "from_date")
    if from_date:
        qs = qs.filter(changed_at__date__gte=from_date)
    to_date = parse_date(filters.get("to_date"), "to_date")
    if to_date:
        qs = qs.filter(changed_at__date__lte=to_date)

    limit, offset = page_params(filters)
    rows, pagination = paginate(qs.order_by("-changed_at", "-id"), limit, offset)
    return [history_to_dict(h) for h in rows], pagination
