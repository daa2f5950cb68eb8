from decimal import Decimal

from django.core.exceptions import ValidationError
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models

from ..managers import TenantManager
from .base import SoftDeleteRecord, TenantRecord


# ---------- Currency ----------
class Currency(SoftDeleteRecord):
    """
    Company-scoped currency master. At most one live row per company may be the
    base (reporting) currency and one the default expense currency.
    """
    SYMBOL_POSITION_CHOICES = [
        ("Before", "Before"),
        ("After", "After"),
    ]

    # ISO 4217 style code, always stored upper-case ('USD', 'INR')
    code = models.CharField(max_length=3)
    # Human-readable name of the currency
    name = models.CharField(max_length=100)  # 'US Dollar'
    symbol = models.CharField(max_length=10)  # '$'
    symbol_position = models.CharField(
        max_length=10, choices=SYMBOL_POSITION_CHOICES, default="Before"
    )
    # Avoid mistakes like storing 12.345 for JPY (which has no sub-units)
    decimal_places = models.PositiveSmallIntegerField(
        default=2, validators=[MaxValueValidator(4)]
    )
    decimal_separator = models.CharField(max_length=1, default=".")
    thousands_separator = models.CharField(max_length=1, default=",", blank=True)

    is_base_currency = models.BooleanField(default=False)
    is_default_expense_currency = models.BooleanField(default=False)
    country_id = models.BigIntegerField(null=True, blank=True)

    class Meta:
        # Make admin display plural as “currencies” instead of default “currencys”
        verbose_name_plural = "currencies"
        ordering = ["code"]
        constraints = [
            models.UniqueConstraint(
                fields=["company", "code"],
                condition=models.Q(deleted_at__isnull=True),
                name="uq_currency_company_code",
                violation_error_message="A currency with this code already exists",
            ),
            # One base currency per company
            models.UniqueConstraint(
                fields=["company"],
                condition=models.Q(is_base_currency=True, deleted_at__isnull=True),
                name="uq_currency_single_base",
                violation_error_message="Company already has a base currency",
            ),
            # One default expense currency per company
            models.UniqueConstraint(
                fields=["company"],
                condition=models.Q(is_default_expense_currency=True, deleted_at__isnull=True),
                name="uq_currency_single_default",
                violation_error_message="Company already has a default expense currency",
            ),
        ]

    def __str__(self):
        # Define how this model prints in Django admin
        return f"{self.code} ({self.symbol or ''})"

    def clean(self):
        if self.code:
            self.code = self.code.strip().upper()
        if self.code and (len(self.code) != 3 or not self.code.isalpha() or not self.code.isascii()):
            raise ValidationError({"code": "Currency code must be 3 uppercase letters"})

    def save(self, *args, **kwargs):
        self.full_clean()  # run validations before saving
        return super().save(*args, **kwargs)


# ---------- Exchange rate ----------
class ExchangeRate(TenantRecord):
    """
    One version of the from -> to conversion factor, valid on
    [effective_from, effective_to]; effective_to NULL means open-ended.
    """
    RATE_SOURCE_CHOICES = [
        ("Manual", "Manual"),
        ("API", "API"),
        ("Bank", "Bank"),
    ]

    from_currency = models.ForeignKey(
        Currency, on_delete=models.PROTECT, related_name="rates_from"
    )
    to_currency = models.ForeignKey(
        Currency, on_delete=models.PROTECT, related_name="rates_to"
    )
    # 1 unit of from_currency = exchange_rate units of to_currency
    exchange_rate = models.DecimalField(max_digits=18, decimal_places=8)
    effective_from = models.DateField()
    effective_to = models.DateField(null=True, blank=True)
    rate_source = models.CharField(
        max_length=10, choices=RATE_SOURCE_CHOICES, default="Manual"
    )
    source_reference = models.CharField(max_length=255, blank=True)
    is_active = models.BooleanField(default=True)

    class Meta:
        ordering = ["-effective_from", "-id"]
        constraints = [
            models.CheckConstraint(
                condition=~models.Q(from_currency=models.F("to_currency")),
                name="ck_exchange_rate_distinct_pair",
                violation_error_message="From and To currencies must be different",
            ),
            models.CheckConstraint(
                condition=models.Q(exchange_rate__gt=0),
                name="ck_exchange_rate_positive",
                violation_error_message="Exchange rate must be greater than 0",
            ),
            # At most one open-ended active version per pair
            models.UniqueConstraint(
                fields=["company", "from_currency", "to_currency"],
                condition=models.Q(effective_to__isnull=True, is_active=True),
                name="uq_exchange_rate_open_window",
                violation_error_message="An open exchange rate already exists for this pair",
            ),
        ]
        indexes = [
            models.Index(
                fields=["company", "from_currency", "to_currency", "effective_from"],
                name="ix_rate_pair_effective",
            ),
        ]

    def __str__(self):
        return f"{self.from_currency_id}->{self.to_currency_id} {self.exchange_rate} from {self.effective_from}"

    def covers(self, on_date):
        """True when on_date falls inside this version's window."""
        if self.effective_from > on_date:
            return False
        return self.effective_to is None or self.effective_to >= on_date

    def clean(self):
        if self.effective_to and self.effective_from and self.effective_to < self.effective_from:
            raise ValidationError("Effective to date cannot be before effective from date")
        if self.exchange_rate is not None and self.exchange_rate <= Decimal("0"):
            raise ValidationError("Exchange rate must be greater than 0")

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)


# ---------- Exchange rate history (append-only) ----------
class ExchangeRateHistory(models.Model):
    """Audit trail of every change made to an ExchangeRate row."""
    ACTION_CHOICES = [
        ("Create", "Create"),
        ("Update", "Update"),
        ("Deactivate", "Deactivate"),
    ]

    company = models.ForeignKey("hr_core.Company", on_delete=models.CASCADE)
    exchange_rate = models.ForeignKey(
        ExchangeRate, on_delete=models.PROTECT, related_name="history"
    )
    action = models.CharField(max_length=12, choices=ACTION_CHOICES)
    old_rate = models.DecimalField(max_digits=18, decimal_places=8, null=True, blank=True)
    new_rate = models.DecimalField(max_digits=18, decimal_places=8, null=True, blank=True)
    old_effective_from = models.DateField(null=True, blank=True)
    new_effective_from = models.DateField(null=True, blank=True)
    old_effective_to = models.DateField(null=True, blank=True)
    new_effective_to = models.DateField(null=True, blank=True)
    change_reason = models.TextField(blank=True)
    changed_by = models.BigIntegerField(null=True, blank=True)
    changed_at = models.DateTimeField(auto_now_add=True)

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        verbose_name_plural = "exchange rate history"
        ordering = ["-changed_at", "-id"]
        indexes = [
            models.Index(fields=["company", "exchange_rate"], name="ix_rate_history_rate"),
            models.Index(fields=["company", "changed_at"], name="ix_rate_history_changed"),
        ]

    def __str__(self):
        return f"[{self.changed_at:%Y-%m-%d %H:%M}] {self.action} rate({self.exchange_rate_id})"


# ---------- Currency policy ----------
class CurrencyPolicy(models.Model):
    """
    Per-company conversion rules. When a company has no row the field
    defaults below are the effective policy.
    """
    CONVERSION_TIMING_CHOICES = [
        ("Submission", "Submission"),
        ("Approval", "Approval"),
        ("Payment", "Payment"),
    ]
    ROUNDING_METHOD_CHOICES = [
        ("Round", "Round"),
        ("Floor", "Floor"),
        ("Ceiling", "Ceiling"),
        ("Truncate", "Truncate"),
    ]

    company = models.OneToOneField(
        "hr_core.Company", on_delete=models.CASCADE, related_name="currency_policy"
    )
    allow_multi_currency_expenses = models.BooleanField(default=True)
    auto_convert_to_base = models.BooleanField(default=True)
    conversion_timing = models.CharField(
        max_length=12, choices=CONVERSION_TIMING_CHOICES, default="Submission"
    )
    # Allowed deviation of a manually entered rate from the stored one
    rate_tolerance_percentage = models.DecimalField(
        max_digits=5, decimal_places=2, default=Decimal("5.00"),
        validators=[MinValueValidator(Decimal("0")), MaxValueValidator(Decimal("100"))],
    )
    allow_manual_rate_override = models.BooleanField(default=False)
    require_rate_justification = models.BooleanField(default=True)
    rounding_method = models.CharField(
        max_length=10, choices=ROUNDING_METHOD_CHOICES, default="Round"
    )
    rounding_precision = models.PositiveSmallIntegerField(
        default=2, validators=[MaxValueValidator(8)]
    )
    use_expense_date_rate = models.BooleanField(default=True)
    fallback_to_nearest_rate = models.BooleanField(default=True)
    max_rate_age_days = models.PositiveIntegerField(default=7)
    show_original_amount = models.BooleanField(default=True)
    show_conversion_rate = models.BooleanField(default=True)

    created_by = models.BigIntegerField(null=True, blank=True)
    updated_by = models.BigIntegerField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        verbose_name_plural = "currency policies"

    def __str__(self):
        return f"Currency policy ({self.company_id})"

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)
