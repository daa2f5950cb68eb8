from django.contrib import admin, messages
from django.core.exceptions import ValidationError
from django.db import transaction

from hr_core.models import ExchangeRate
from hr_core.services.exchange_rate import deactivate_rate

# ---------- Admin actions ----------


@admin.action(description="Deactivate selected exchange rates")
def deactivate_exchange_rates(modeladmin, request, queryset):
    """
    Deactivate each selected active rate in its own transaction, writing the
    usual Deactivate history row. Failures are reported per rate.
    """
    done = 0
    for rate in queryset.filter(is_active=True):
        try:
            with transaction.atomic():
                locked = ExchangeRate.objects.select_for_update().get(pk=rate.pk)
                deactivate_rate(locked, user_id=request.user.pk, reason="Deactivated from admin")
            done += 1
        except ValidationError as exc:
            modeladmin.message_user(
                request, f"Rate {rate.pk}: {'; '.join(exc.messages)}", level=messages.ERROR
            )
    if done:
        modeladmin.message_user(request, f"{done} exchange rate(s) deactivated.", level=messages.SUCCESS)
