from django.core.exceptions import ValidationError
from django.db.models.signals import pre_delete, pre_save
from django.dispatch import receiver

from .models import ExchangeRate, ExchangeRateHistory

""" Exchange rate history is append-only: rows are written once, never changed."""


# pre_save auto-fires just before Django saves a model instance
@receiver(pre_save, sender=ExchangeRateHistory)
def prevent_update_rate_history(sender, instance, **kwargs):
    # An existing primary key means this is an UPDATE of a stored row
    if instance.pk and sender.objects.filter(pk=instance.pk).exists():
        raise ValidationError("Exchange rate history is append-only.")


@receiver(pre_delete, sender=ExchangeRateHistory)
def prevent_delete_rate_history(sender, instance, **kwargs):
    raise ValidationError("Exchange rate history cannot be deleted.")


"""Rates are versioned and deactivated, never removed."""


@receiver(pre_delete, sender=ExchangeRate)
def prevent_delete_exchange_rate(sender, instance, **kwargs):
    raise ValidationError("Exchange rates cannot be deleted; deactivate them instead.")
