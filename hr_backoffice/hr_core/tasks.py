import datetime
import logging

from celery import shared_task
from django.utils import timezone

logger = logging.getLogger(__name__)


@shared_task  # register this function as a Celery task
def apply_bulk_rate_update(company_id, payload, user_id=None):
    """
    Run a rate feed (API or bank file) through the same bulk path the API
    uses. Returns the counts and the skipped items so the caller can alert.
    """
    # import services lazily to avoid circular imports at module import time
    from .services.exchange_rate import bulk_update_rates

    result = bulk_update_rates(payload, company_id, user_id)
    if result["skipped"]:
        logger.warning(
            "Rate feed for company=%s skipped %d item(s): %s",
            company_id, result["skipped_count"], result["skipped"],
        )
    return {
        "updated_count": result["updated_count"],
        "skipped_count": result["skipped_count"],
        "skipped": result["skipped"],
    }


@shared_task
def report_stale_rates(company_id):
    """
    Open rates older than the policy's max_rate_age_days.
    Returns their ids; each one is logged as a warning.
    """
    from .models import ExchangeRate
    from .services.currency_policy import get_policy_values

    max_age = get_policy_values(company_id)["max_rate_age_days"]
    cutoff = timezone.localdate() - datetime.timedelta(days=max_age)
    stale = (
        ExchangeRate.objects.for_company(company_id)
        .filter(is_active=True, effective_to__isnull=True, effective_from__lt=cutoff)
        .select_related("from_currency", "to_currency")
        .order_by("effective_from")
    )
    ids = []
    for rate in stale:
        logger.warning(
            "Stale rate %s->%s (id=%s) effective since %s (company=%s)",
            rate.from_currency.code, rate.to_currency.code, rate.pk, rate.effective_from, company_id,
        )
        ids.append(rate.pk)
    return ids
