from django.db import models

from .base import SoftDeleteRecord


# ---------- Location groups ----------
class LocationGroup(SoftDeleteRecord):
    """
    Named set of geographies (metro cities, tier-2 towns...) that expense
    limits can be scoped to.
    """
    COST_OF_LIVING_CHOICES = [
        ("Low", "Low"),
        ("Medium", "Medium"),
        ("High", "High"),
        ("Very High", "Very High"),
    ]

    code = models.CharField(max_length=50)  # LG001, LG002... when generated
    name = models.CharField(max_length=100)
    description = models.TextField(blank=True)
    cost_of_living_index = models.CharField(
        max_length=10, choices=COST_OF_LIVING_CHOICES, default="Medium"
    )

    class Meta:
        ordering = ["name"]
        constraints = [
            models.UniqueConstraint(
                fields=["company", "code"],
                condition=models.Q(deleted_at__isnull=True),
                name="uq_location_group_company_code",
                violation_error_message="Location group code already exists",
            ),
        ]

    def __str__(self):
        return f"{self.code} - {self.name}"

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)


class LocationGroupMapping(models.Model):
    # Geo ids reference the shared geography tables
    location_group = models.ForeignKey(LocationGroup, on_delete=models.CASCADE, related_name="mappings")
    country_id = models.BigIntegerField(null=True, blank=True)
    state_id = models.BigIntegerField(null=True, blank=True)
    city_id = models.BigIntegerField(null=True, blank=True)
    postal_code_range = models.CharField(max_length=255, blank=True)  # e.g. "400001-400099"

    created_by = models.BigIntegerField(null=True, blank=True)
    updated_by = models.BigIntegerField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["id"]

    def __str__(self):
        return f"{self.country_id}/{self.state_id}/{self.city_id}"

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)
