from django.contrib import admin

from hr_core.models import ExpenseCategory, LocationGroup

from .inlines import (CategoryCustomFieldInline, CategoryFilingRuleInline,
                      CategoryLimitInline, LocationGroupMappingInline)
from .mixins import TenantAdminMixin


@admin.register(ExpenseCategory)
class ExpenseCategoryAdmin(TenantAdminMixin, admin.ModelAdmin):
    list_display = ("code", "name", "company", "parent", "expense_type", "receipt_required", "is_active")
    search_fields = ("code", "name")
    list_filter = ("company", "expense_type", "is_active")
    ordering = ("company", "display_order", "name")
    inlines = [CategoryLimitInline, CategoryCustomFieldInline, CategoryFilingRuleInline]
    readonly_fields = ("created_at", "updated_at", "deleted_at", "deleted_by")

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(LocationGroup)
class LocationGroupAdmin(TenantAdminMixin, admin.ModelAdmin):
    list_display = ("code", "name", "company", "cost_of_living_index", "is_active")
    search_fields = ("code", "name")
    list_filter = ("company", "cost_of_living_index", "is_active")
    inlines = [LocationGroupMappingInline]
    readonly_fields = ("created_at", "updated_at", "deleted_at", "deleted_by")

    def has_delete_permission(self, request, obj=None):
        return False
