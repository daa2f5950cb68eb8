from django.contrib import admin

from hr_core.models import Currency, CurrencyPolicy, ExchangeRate, ExchangeRateHistory

from .actions import deactivate_exchange_rates
from .mixins import TenantAdminMixin
from .ReadOnly import ReadOnlyAdmin


@admin.register(Currency)
class CurrencyAdmin(TenantAdminMixin, admin.ModelAdmin):
    list_display = (
        "code", "name", "symbol", "company", "decimal_places",
        "is_base_currency", "is_default_expense_currency", "is_active", "deleted_at",
    )
    search_fields = ("code", "name")
    list_filter = ("company", "is_base_currency", "is_active")
    ordering = ("company", "code")
    list_per_page = 50
    readonly_fields = ("created_at", "updated_at", "deleted_at", "deleted_by")

    # soft delete only (through the API)
    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(ExchangeRate)
class ExchangeRateAdmin(TenantAdminMixin, admin.ModelAdmin):
    list_display = (
        "id", "company", "from_currency", "to_currency", "exchange_rate",
        "effective_from", "effective_to", "rate_source", "is_active",
    )
    list_filter = ("company", "rate_source", "is_active")
    search_fields = ("from_currency__code", "to_currency__code", "source_reference")
    date_hierarchy = "effective_from"
    actions = [deactivate_exchange_rates]
    # versions are created through the upsert service so history stays complete
    readonly_fields = [f.name for f in ExchangeRate._meta.fields]

    def get_queryset(self, request):
        return super().get_queryset(request).select_related("company", "from_currency", "to_currency")

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(ExchangeRateHistory)
class ExchangeRateHistoryAdmin(ReadOnlyAdmin):
    list_display = (
        "id", "exchange_rate", "action", "old_rate", "new_rate",
        "old_effective_to", "new_effective_to", "change_reason", "changed_by", "changed_at",
    )
    list_filter = ("company", "action")
    search_fields = ("change_reason",)


@admin.register(CurrencyPolicy)
class CurrencyPolicyAdmin(TenantAdminMixin, admin.ModelAdmin):
    list_display = (
        "company", "conversion_timing", "rounding_method", "rounding_precision",
        "rate_tolerance_percentage", "auto_convert_to_base",
    )
    list_filter = ("rounding_method", "conversion_timing")
    readonly_fields = ("created_at", "updated_at")
