from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models

from .base import SoftDeleteRecord


def default_duplicate_check_fields():
    return ["amount", "date"]


# ---------- Expense category ----------
class ExpenseCategory(SoftDeleteRecord):
    """Claimable expense head (Travel, Meals, Fuel...), optionally nested."""
    EXPENSE_TYPE_CHOICES = [
        ("Amount", "Amount"),
        ("Mileage", "Mileage"),
        ("Per_Diem", "Per Diem"),
        ("Time_Based", "Time Based"),
    ]
    RECEIPT_REQUIRED_CHOICES = [
        ("Always", "Always"),
        ("Above_Limit", "Above Limit"),
        ("Never", "Never"),
    ]

    code = models.CharField(max_length=50)
    name = models.CharField(max_length=100)
    description = models.TextField(blank=True)
    icon = models.CharField(max_length=100, blank=True)
    parent = models.ForeignKey(
        "self", null=True, blank=True, on_delete=models.PROTECT, related_name="sub_categories"
    )
    expense_type = models.CharField(
        max_length=12, choices=EXPENSE_TYPE_CHOICES, default="Amount"
    )

    # Type specific rates
    mileage_rate_per_km = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    mileage_vehicle_type = models.CharField(max_length=50, blank=True)
    per_diem_rate = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    per_diem_half_day_rate = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    hourly_rate = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    min_hours = models.DecimalField(max_digits=5, decimal_places=2, null=True, blank=True)
    max_hours_per_day = models.DecimalField(max_digits=5, decimal_places=2, null=True, blank=True)

    # Receipts and tax
    receipt_required = models.CharField(
        max_length=12, choices=RECEIPT_REQUIRED_CHOICES, default="Above_Limit"
    )
    receipt_required_above = models.DecimalField(
        max_digits=10, decimal_places=2, null=True, blank=True, default=Decimal("500.00")
    )
    is_taxable = models.BooleanField(default=False)
    tax_percentage = models.DecimalField(max_digits=5, decimal_places=2, null=True, blank=True)
    gst_applicable = models.BooleanField(default=False)
    hsn_code = models.CharField(max_length=20, blank=True)

    display_order = models.IntegerField(default=0)

    class Meta:
        verbose_name_plural = "expense categories"
        ordering = ["display_order", "name"]
        constraints = [
            models.UniqueConstraint(
                fields=["company", "code"],
                condition=models.Q(deleted_at__isnull=True),
                name="uq_expense_category_company_code",
                violation_error_message="Category code already exists",
            ),
        ]

    def __str__(self):
        return f"{self.code} - {self.name}"

    def clean(self):
        # A category cannot be its own parent
        if self.pk and self.parent_id == self.pk:
            raise ValidationError("Category cannot be its own parent")
        if self.parent_id and self.parent.company_id != self.company_id:
            raise ValidationError("Parent category must belong to the same company")

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)


# ---------- Child collections ----------
class CategoryLimit(models.Model):
    LIMIT_TYPE_CHOICES = [
        ("Global", "Global"),
        ("Location_Based", "Location Based"),
        ("Grade_Based", "Grade Based"),
        ("Department_Based", "Department Based"),
    ]

    category = models.ForeignKey(ExpenseCategory, on_delete=models.CASCADE, related_name="limits")
    limit_type = models.CharField(max_length=20, choices=LIMIT_TYPE_CHOICES, default="Global")
    location_group = models.ForeignKey(
        "hr_core.LocationGroup", null=True, blank=True, on_delete=models.PROTECT,
        related_name="category_limits",
    )
    grade = models.ForeignKey(
        "hr_core.Grade", null=True, blank=True, on_delete=models.PROTECT,
        related_name="category_limits",
    )
    department_id = models.BigIntegerField(null=True, blank=True)

    limit_per_transaction = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    limit_per_day = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    limit_per_week = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    limit_per_month = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    limit_per_quarter = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    limit_per_year = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    max_transactions_per_day = models.PositiveIntegerField(null=True, blank=True)
    max_transactions_per_month = models.PositiveIntegerField(null=True, blank=True)
    max_km_per_day = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    max_km_per_month = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)

    allow_limit_override = models.BooleanField(default=False)
    override_approval_required = models.BooleanField(default=True)
    effective_from = models.DateField(null=True, blank=True)
    effective_to = models.DateField(null=True, blank=True)
    is_active = models.BooleanField(default=True)

    created_by = models.BigIntegerField(null=True, blank=True)
    updated_by = models.BigIntegerField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["id"]

    def __str__(self):
        return f"{self.limit_type} limit ({self.category_id})"

    def clean(self):
        if self.limit_type == "Location_Based" and not self.location_group_id:
            raise ValidationError("Location group is required for location based limits")
        if self.limit_type == "Grade_Based" and not self.grade_id:
            raise ValidationError("Grade is required for grade based limits")
        if self.limit_type == "Department_Based" and not self.department_id:
            raise ValidationError("Department is required for department based limits")
        if self.effective_from and self.effective_to and self.effective_to < self.effective_from:
            raise ValidationError("Effective to date cannot be before effective from date")

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)


class CategoryCustomField(models.Model):
    FIELD_TYPE_CHOICES = [
        ("Text", "Text"),
        ("Number", "Number"),
        ("Date", "Date"),
        ("DateTime", "DateTime"),
        ("Dropdown", "Dropdown"),
        ("MultiSelect", "MultiSelect"),
        ("File", "File"),
        ("Checkbox", "Checkbox"),
        ("TextArea", "TextArea"),
    ]

    category = models.ForeignKey(ExpenseCategory, on_delete=models.CASCADE, related_name="custom_fields")
    field_name = models.CharField(max_length=100)
    field_label = models.CharField(max_length=100)
    field_type = models.CharField(max_length=12, choices=FIELD_TYPE_CHOICES)
    field_placeholder = models.CharField(max_length=200, blank=True)
    field_description = models.TextField(blank=True)
    is_required = models.BooleanField(default=False)
    min_length = models.PositiveIntegerField(null=True, blank=True)
    max_length = models.PositiveIntegerField(null=True, blank=True)
    min_value = models.DecimalField(max_digits=15, decimal_places=2, null=True, blank=True)
    max_value = models.DecimalField(max_digits=15, decimal_places=2, null=True, blank=True)
    regex_pattern = models.CharField(max_length=500, blank=True)
    dropdown_options = models.JSONField(null=True, blank=True)
    allowed_file_types = models.CharField(max_length=255, blank=True)
    max_file_size_mb = models.PositiveIntegerField(null=True, blank=True, default=5)
    display_order = models.IntegerField(default=0)
    show_in_list = models.BooleanField(default=False)
    is_active = models.BooleanField(default=True)

    created_by = models.BigIntegerField(null=True, blank=True)
    updated_by = models.BigIntegerField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["display_order", "id"]
        constraints = [
            models.UniqueConstraint(
                fields=["category", "field_name"],
                name="uq_category_custom_field_name",
            ),
        ]

    def __str__(self):
        return f"{self.field_label} ({self.field_type})"

    def clean(self):
        if self.field_type in ("Dropdown", "MultiSelect") and not self.dropdown_options:
            raise ValidationError(f"Dropdown options are required for field '{self.field_name}'")
        if self.min_length is not None and self.max_length is not None and self.min_length > self.max_length:
            raise ValidationError("Minimum length cannot exceed maximum length")
        if self.min_value is not None and self.max_value is not None and self.min_value > self.max_value:
            raise ValidationError("Minimum value cannot exceed maximum value")

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)


class CategoryFilingRule(models.Model):
    CLAIMS_PERIOD_CHOICES = [
        ("Day", "Day"),
        ("Week", "Week"),
        ("Month", "Month"),
        ("Quarter", "Quarter"),
        ("Year", "Year"),
    ]

    category = models.OneToOneField(ExpenseCategory, on_delete=models.CASCADE, related_name="filing_rule")

    # When an expense may be filed relative to its date
    allow_past_date_filing = models.BooleanField(default=True)
    max_past_days = models.PositiveIntegerField(null=True, blank=True, default=30)
    allow_future_date_filing = models.BooleanField(default=False)
    max_future_days = models.PositiveIntegerField(null=True, blank=True, default=0)
    filing_window_start_day = models.PositiveSmallIntegerField(null=True, blank=True)
    filing_window_end_day = models.PositiveSmallIntegerField(null=True, blank=True)

    # Frequency caps
    min_gap_between_claims_days = models.PositiveIntegerField(null=True, blank=True)
    max_claims_per_period = models.PositiveIntegerField(null=True, blank=True)
    claims_period = models.CharField(max_length=10, choices=CLAIMS_PERIOD_CHOICES, blank=True)

    # Required metadata on a claim
    require_project_code = models.BooleanField(default=False)
    require_cost_center = models.BooleanField(default=False)
    require_client_name = models.BooleanField(default=False)
    require_purpose_description = models.BooleanField(default=True)
    min_purpose_length = models.PositiveIntegerField(null=True, blank=True, default=10)

    # Auto approval
    auto_approve_below_amount = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    auto_approve_for_grades = models.JSONField(null=True, blank=True)

    # Calendar rules
    allow_weekend_expenses = models.BooleanField(default=True)
    allow_holiday_expenses = models.BooleanField(default=True)
    require_justification_for_holiday = models.BooleanField(default=True)

    # Duplicate detection
    check_duplicate_expenses = models.BooleanField(default=True)
    duplicate_check_fields = models.JSONField(default=default_duplicate_check_fields, blank=True)
    duplicate_check_days = models.PositiveIntegerField(default=7)

    created_by = models.BigIntegerField(null=True, blank=True)
    updated_by = models.BigIntegerField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"Filing rule ({self.category_id})"

    def clean(self):
        start, end = self.filing_window_start_day, self.filing_window_end_day
        for day in (start, end):
            if day is not None and not 1 <= day <= 31:
                raise ValidationError("Filing window days must be between 1 and 31")

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)
