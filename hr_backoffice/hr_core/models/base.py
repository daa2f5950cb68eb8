from django.db import models
from django.utils import timezone
from ..managers import TenantManager


# ---------- Shared columns ----------
class TenantRecord(models.Model):
    """Row owned by a single company, with who/when audit columns."""
    # Every tenant-owned row belongs to exactly one company
    company = models.ForeignKey("hr_core.Company", on_delete=models.CASCADE)
    # User ids come from the caller's context (no FK to an auth table)
    created_by = models.BigIntegerField(null=True, blank=True)
    updated_by = models.BigIntegerField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        abstract = True


class SoftDeleteRecord(TenantRecord):
    """Tenant row that is hidden by stamping deleted_at instead of being removed."""
    is_active = models.BooleanField(default=True)
    deleted_at = models.DateTimeField(null=True, blank=True)
    deleted_by = models.BigIntegerField(null=True, blank=True)

    class Meta:
        abstract = True

    @property
    def is_deleted(self):
        return self.deleted_at is not None

    def soft_delete(self, user_id=None, extra_fields=()):
        self.deleted_at = timezone.now()
        self.deleted_by = user_id
        self.updated_by = user_id
        self.is_active = False
        self.save(update_fields=["deleted_at", "deleted_by", "updated_by", "is_active", "updated_at", *extra_fields])
