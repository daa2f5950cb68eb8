from django.core.serializers.json import DjangoJSONEncoder
from django.db import models

from ..managers import TenantQuerySet
from .company import Company


class AuditLogQuerySet(TenantQuerySet):
    def for_object(self, instance):
        """Entries about one record, newest first."""
        return self.filter(
            object_type=instance.__class__.__name__, object_id=str(instance.pk)
        ).order_by("-created_at", "-id")


# ---------- Audit trail of master-data writes ----------
class AuditLog(models.Model):
    # SET_NULL keeps the trail readable if a tenant is ever purged
    company = models.ForeignKey(Company, null=True, blank=True, on_delete=models.SET_NULL)
    # Acting user as sent by the gateway; empty for Celery feeds
    user_id = models.BigIntegerField(null=True, blank=True)
    action = models.CharField(max_length=50)  # create / update / delete / restore / clone / limit_add ...
    object_type = models.CharField(max_length=100)  # model class name: "Currency", "Branch"
    object_id = models.CharField(max_length=100)
    # Field-level {"old": ..., "new": ...} pairs, or a free-form summary
    changes = models.JSONField(null=True, blank=True, encoder=DjangoJSONEncoder)
    created_at = models.DateTimeField(auto_now_add=True)

    objects = AuditLogQuerySet.as_manager()

    class Meta:
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["company", "created_at"], name="ix_audit_company_created"),
            models.Index(fields=["object_type", "object_id"], name="ix_audit_object"),
        ]

    def __str__(self):
        who = self.user_id if self.user_id is not None else "system"
        return f"{self.created_at:%Y-%m-%d %H:%M} {who} {self.action} {self.object_type}#{self.object_id}"
