from django.contrib import admin

from hr_core.models import (CategoryCustomField, CategoryFilingRule,
                            CategoryLimit, LocationGroupMapping)

# ---------- Inline admin classes ----------


class CategoryLimitInline(admin.TabularInline):
    """Show CategoryLimit rows on ExpenseCategory page"""
    model = CategoryLimit
    extra = 0  # don’t show “empty” rows by default (prevents clutter)
    fields = (
        "limit_type", "location_group", "grade", "department_id",
        "limit_per_transaction", "limit_per_day", "limit_per_month",
        "allow_limit_override", "is_active",
    )


class CategoryCustomFieldInline(admin.TabularInline):
    model = CategoryCustomField
    extra = 0
    fields = ("field_name", "field_label", "field_type", "is_required", "display_order", "is_active")


class CategoryFilingRuleInline(admin.StackedInline):
    model = CategoryFilingRule
    extra = 0
    max_num = 1


class LocationGroupMappingInline(admin.TabularInline):
    model = LocationGroupMapping
    extra = 0
    fields = ("country_id", "state_id", "city_id", "postal_code_range")
