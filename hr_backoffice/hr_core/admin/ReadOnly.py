from django.contrib import admin
from django.core.exceptions import PermissionDenied

from .mixins import TenantAdminMixin

# Columns worth filtering on when a read-only model has them
FILTER_CANDIDATES = ("company", "action", "object_type", "exchange_rate")


class ReadOnlyAdmin(TenantAdminMixin, admin.ModelAdmin):
    """Append-only rows (rate history, audit trail): browsable, never editable."""
    list_per_page = 50

    def _field_names(self):
        return [f.name for f in self.model._meta.fields]

    def get_readonly_fields(self, request, obj=None):
        return self._field_names()

    def get_list_filter(self, request):
        if self.list_filter:
            return self.list_filter
        present = set(self._field_names())
        return tuple(name for name in FILTER_CANDIDATES if name in present)

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False

    # the change page stays reachable as a detail view
    def has_change_permission(self, request, obj=None):
        return request.method in ("GET", "HEAD")

    def save_model(self, request, obj, form, change):
        raise PermissionDenied(f"{self.model._meta.verbose_name_plural.capitalize()} cannot be changed.")

    # no bulk actions (delete_selected included)
    def get_actions(self, request):
        return {}
