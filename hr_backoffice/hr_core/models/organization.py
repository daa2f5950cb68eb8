from django.db import models
from .base import SoftDeleteRecord


# ---------- Organizational master data ----------
class OrgUnit(SoftDeleteRecord):
    """
    Common shape of every organizational master: a coded, named unit of a
    company with an optional head (employee id) and a display order.
    """
    code = models.CharField(max_length=50)
    name = models.CharField(max_length=150)
    description = models.TextField(blank=True)
    # Employee heading the unit (employees live in another service)
    head_id = models.BigIntegerField(null=True, blank=True)
    display_order = models.IntegerField(default=0)

    class Meta:
        abstract = True
        ordering = ["display_order", "name"]
        constraints = [
            # Code is unique per company among rows that are not deleted
            models.UniqueConstraint(
                fields=["company", "code"],
                condition=models.Q(deleted_at__isnull=True),
                name="uq_%(class)s_company_code",
                violation_error_message="A record with this code already exists.",
            ),
        ]

    def __str__(self):
        return f"{self.code} - {self.name}"

    def save(self, *args, **kwargs):
        self.full_clean()  # run validations before saving
        return super().save(*args, **kwargs)


class Region(OrgUnit):
    pass


class Zone(OrgUnit):
    region = models.ForeignKey(
        Region, null=True, blank=True, on_delete=models.PROTECT, related_name="zones"
    )


class Division(OrgUnit):
    pass


class CostCenter(OrgUnit):
    # Cost centers roll up into a parent cost center
    parent = models.ForeignKey(
        "self", null=True, blank=True, on_delete=models.PROTECT, related_name="children"
    )


class Grade(OrgUnit):
    # Seniority; higher is more senior
    level = models.PositiveIntegerField(null=True, blank=True)

    class Meta(OrgUnit.Meta):
        ordering = ["level", "display_order", "name"]


class BusinessUnit(OrgUnit):
    division = models.ForeignKey(
        Division, null=True, blank=True, on_delete=models.PROTECT, related_name="business_units"
    )
    cost_center = models.ForeignKey(
        CostCenter, null=True, blank=True, on_delete=models.PROTECT, related_name="business_units"
    )


class Channel(OrgUnit):
    channel_type = models.CharField(max_length=50, blank=True)  # e.g. Direct, Partner, Online


class Branch(OrgUnit):
    branch_type = models.CharField(max_length=50, blank=True)
    region = models.ForeignKey(
        Region, null=True, blank=True, on_delete=models.PROTECT, related_name="branches"
    )
    zone = models.ForeignKey(
        Zone, null=True, blank=True, on_delete=models.PROTECT, related_name="branches"
    )
    business_unit = models.ForeignKey(
        BusinessUnit, null=True, blank=True, on_delete=models.PROTECT, related_name="branches"
    )
    channel = models.ForeignKey(
        Channel, null=True, blank=True, on_delete=models.PROTECT, related_name="branches"
    )
    cost_center = models.ForeignKey(
        CostCenter, null=True, blank=True, on_delete=models.PROTECT, related_name="branches"
    )

    # Address / contact
    address = models.TextField(blank=True)
    phone = models.CharField(max_length=32, blank=True)
    email = models.EmailField(blank=True)
    latitude = models.DecimalField(max_digits=10, decimal_places=7, null=True, blank=True)
    longitude = models.DecimalField(max_digits=10, decimal_places=7, null=True, blank=True)

    class Meta(OrgUnit.Meta):
        verbose_name_plural = "branches"


class Location(OrgUnit):
    branch = models.ForeignKey(
        Branch, null=True, blank=True, on_delete=models.PROTECT, related_name="locations"
    )
    location_type = models.CharField(max_length=50, blank=True)  # Office, Warehouse, Site...
    capacity = models.PositiveIntegerField(null=True, blank=True)
    address = models.TextField(blank=True)
    latitude = models.DecimalField(max_digits=10, decimal_places=7, null=True, blank=True)
    longitude = models.DecimalField(max_digits=10, decimal_places=7, null=True, blank=True)
