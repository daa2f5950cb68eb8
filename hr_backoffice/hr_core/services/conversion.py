"""
Amount conversion between two currencies of a company, using the rate
version valid on the conversion date and the company's rounding policy.
"""
import logging
from decimal import (ROUND_CEILING, ROUND_DOWN, ROUND_FLOOR, ROUND_HALF_UP,
                     Decimal, InvalidOperation)

from django.utils import timezone

from ..exceptions import InvalidInput, RecordNotFound
from ..models import Currency
from .common import parse_date, parse_decimal, parse_int
from .currency_policy import get_policy_values
from .exchange_rate import resolve_rate

logger = logging.getLogger(__name__)

# Policy rounding method -> decimal rounding mode
ROUNDING_MODES = {
    "Round": ROUND_HALF_UP,     # half away from zero
    "Floor": ROUND_FLOOR,       # toward -inf
    "Ceiling": ROUND_CEILING,   # toward +inf
    "Truncate": ROUND_DOWN,     # toward zero
}


def apply_rounding(amount, method="Round", precision=2):
    """Round a Decimal to `precision` places with the policy's method."""
    try:
        mode = ROUNDING_MODES[method]
    except KeyError:
        raise InvalidInput(f"Unknown rounding method: {method}")
    quantum = Decimal(1).scaleb(-int(precision))
    try:
        return amount.quantize(quantum, rounding=mode)
    except InvalidOperation:
        # result has more digits than the decimal context holds
        raise InvalidInput("Amount is too large to convert")


def _currency(company_id, currency_id, label):
    try:
        return Currency.objects.for_company(company_id).alive().get(pk=currency_id)
    except Currency.DoesNotExist:
        raise RecordNotFound(f"{label} currency not found")


def convert_amount(data, company_id):
    amount = parse_decimal(data.get("amount"), "amount")
    if amount is None or amount <= 0:
        raise InvalidInput("Amount must be greater than 0")
    from_id = parse_int(data.get("from_currency_id"), "from_currency_id")
    to_id = parse_int(data.get("to_currency_id"), "to_currency_id")
    if not from_id or not to_id:
        raise InvalidInput("Both from_currency_id and to_currency_id are required")
    conversion_date = parse_date(data.get("conversion_date"), "conversion_date") or timezone.localdate()

    from_currency = _currency(company_id, from_id, "From")
    to_currency = _currency(company_id, to_id, "To")
    policy = get_policy_values(company_id)

    result = {
        "original_amount": amount,
        "from_currency": {"id": from_currency.pk, "code": from_currency.code},
        "to_currency": {"id": to_currency.pk, "code": to_currency.code},
        "conversion_date": conversion_date,
        "rounding_method": policy["rounding_method"],
        "rounding_precision": policy["rounding_precision"],
    }

    if from_id == to_id:
        result.update({
            "converted_amount": amount,
            "exchange_rate": Decimal("1"),
            "rate_source": "Same Currency",
            "exchange_rate_id": None,
        })
        return result

    rate = resolve_rate(company_id, from_id, to_id, conversion_date)
    if rate is None:
        logger.warning(
            "No rate for %s->%s on %s (company=%s)",
            from_currency.code, to_currency.code, conversion_date, company_id,
        )
        raise RecordNotFound(
            f"No exchange rate found for {from_currency.code} to {to_currency.code} "
            f"on {conversion_date.isoformat()}"
        )

    converted = apply_rounding(
        amount * rate.exchange_rate, policy["rounding_method"], policy["rounding_precision"]
    )
    result.update({
        "converted_amount": converted,
        "exchange_rate": rate.exchange_rate,
        "rate_source": rate.rate_source,
        "exchange_rate_id": rate.pk,
        "rate_effective_from": rate.effective_from,
    })
    return result
