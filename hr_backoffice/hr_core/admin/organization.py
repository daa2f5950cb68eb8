from django.contrib import admin

from hr_core.models import (Branch, BusinessUnit, Channel, CostCenter, Division,
                            Grade, Location, Region, Zone)

from .mixins import TenantAdminMixin


class OrgUnitAdmin(TenantAdminMixin, admin.ModelAdmin):
    """Shared list/search layout for every organizational master."""
    list_display = ("code", "name", "company", "is_active", "display_order", "deleted_at")
    search_fields = ("code", "name")
    list_filter = ("company", "is_active")
    ordering = ("company", "display_order", "name")
    readonly_fields = ("created_at", "updated_at", "deleted_at", "deleted_by")

    # soft delete only (through the API)
    def has_delete_permission(self, request, obj=None):
        return False


for model in (Region, Zone, Division, CostCenter, Grade, BusinessUnit, Channel, Branch, Location):
    admin.site.register(model, OrgUnitAdmin)
