"""
Organizational master data (regions, zones, divisions, cost centers, grades,
business units, channels, branches, locations).

Every unit shares one lifecycle, so the CRUD below is written once and
driven by the OrgResource registry.
"""
import logging

from django.db import transaction
from django.db.models import Q

from ..exceptions import ConflictError, InvalidInput, RecordNotFound
from ..models import (Branch, BusinessUnit, Channel, CostCenter, Division,
                      Grade, Location, Region, Zone)
from .audit_helper import log_action
from .common import (assign_fields, clean_str, get_company, page_params,
                     paginate, parse_bool, parse_int, to_dict)

logger = logging.getLogger(__name__)

COMMON_FIELDS = ["name", "description", "head_id", "is_active", "display_order"]


class OrgResource:
    """One master-data unit: its model, extra writable fields and references."""

    def __init__(self, model, *, fields=(), refs=None, self_ref=None):
        self.model = model
        self.fields = COMMON_FIELDS + list(fields)
        # attname -> referenced model (must live in the same company)
        self.refs = refs or {}
        # attname of a reference back into the same table (tree)
        self.self_ref = self_ref

    @property
    def label(self):
        return self.model._meta.verbose_name.title()


ADDRESS_FIELDS = ["address", "latitude", "longitude"]

RESOURCES = {
    "regions": OrgResource(Region),
    "zones": OrgResource(Zone, refs={"region_id": Region}),
    "divisions": OrgResource(Division),
    "cost-centers": OrgResource(CostCenter, refs={"parent_id": CostCenter}, self_ref="parent_id"),
    "grades": OrgResource(Grade, fields=["level"]),
    "business-units": OrgResource(
        BusinessUnit, refs={"division_id": Division, "cost_center_id": CostCenter}
    ),
    "channels": OrgResource(Channel, fields=["channel_type"]),
    "branches": OrgResource(
        Branch,
        fields=["branch_type", "phone", "email"] + ADDRESS_FIELDS,
        refs={
            "region_id": Region,
            "zone_id": Zone,
            "business_unit_id": BusinessUnit,
            "channel_id": Channel,
            "cost_center_id": CostCenter,
        },
    ),
    "locations": OrgResource(
        Location,
        fields=["location_type", "capacity"] + ADDRESS_FIELDS,
        refs={"branch_id": Branch},
    ),
}


def get_resource(name):
    try:
        return RESOURCES[name]
    except KeyError:
        raise RecordNotFound(f"Unknown resource: {name}")


# ---------- Serialization ----------
def record_to_dict(resource, record):
    data = to_dict(record, exclude=("deleted_at", "deleted_by"))
    for attname in resource.refs:
        name = attname.removesuffix("_id")
        related = getattr(record, name) if getattr(record, attname) else None
        data[name] = {"id": related.pk, "code": related.code, "name": related.name} if related else None
    return data


# ---------- Validation ----------
def _clean_payload(resource, data, *, partial):
    cleaned = {}

    if not partial or "code" in data:
        code = clean_str(data.get("code")).upper()
        if not code:
            raise InvalidInput("Code is required")
        cleaned["code"] = code

    if not partial or "name" in data:
        name = clean_str(data.get("name"))
        if not name:
            raise InvalidInput("Name is required")
        cleaned["name"] = name

    for field in resource.fields:
        if field in cleaned or field not in data:
            continue
        value = data[field]
        if field == "is_active":
            value = parse_bool(value)
            if value is None:
                raise InvalidInput("is_active must be a boolean")
        elif isinstance(value, str):
            value = value.strip()
        cleaned[field] = value

    for attname in resource.refs:
        if attname in data:
            cleaned[attname] = parse_int(data[attname], attname)

    return cleaned


def _check_code(resource, company, code, exclude_pk=None):
    clash = (
        resource.model.objects.for_company(company).alive()
        .filter(code=code).exclude(pk=exclude_pk).exists()
    )
    if clash:
        raise ConflictError(f"{resource.label} with code '{code}' already exists")


def _check_refs(resource, company, cleaned, record=None):
    """Referenced units must exist, be live and belong to the same company."""
    for attname, model in resource.refs.items():
        ref_id = cleaned.get(attname)
        if not ref_id:
            continue
        if not model.objects.for_company(company).alive().filter(pk=ref_id).exists():
            raise RecordNotFound(f"{model._meta.verbose_name.title()} not found")

    if resource.self_ref and record is not None and cleaned.get(resource.self_ref):
        # walk up the tree; reaching the record itself means a cycle
        parent_id = cleaned[resource.self_ref]
        seen = set()
        while parent_id and parent_id not in seen:
            if parent_id == record.pk:
                raise InvalidInput(f"{resource.label} cannot be its own ancestor")
            seen.add(parent_id)
            parent_id = (
                resource.model.objects.filter(pk=parent_id)
                .values_list(resource.self_ref, flat=True).first()
            )


def _get_record(resource, company, record_id, *, lock=False):
    record_id = parse_int(record_id, "id", required=True)
    qs = resource.model.objects.select_for_update() if lock else resource.model.objects.all()
    try:
        return qs.for_company(company).alive().get(pk=record_id)
    except resource.model.DoesNotExist:
        raise RecordNotFound(f"{resource.label} not found")


# ---------- Operations ----------
def create_record(resource_name, data, company_id, user_id=None):
    resource = get_resource(resource_name)
    cleaned = _clean_payload(resource, data, partial=False)

    with transaction.atomic():
        company = get_company(company_id)
        _check_code(resource, company, cleaned["code"])
        _check_refs(resource, company, cleaned)

        record = resource.model(company=company, created_by=user_id, updated_by=user_id)
        assign_fields(record, cleaned, cleaned.keys())
        record.save()
        log_action(action="create", instance=record, user_id=user_id, changes={"code": record.code})

    logger.info("%s %s created (company=%s, id=%s)", resource.label, record.code, company.pk, record.pk)
    return record_to_dict(resource, record)


def update_record(resource_name, data, company_id, user_id=None):
    resource = get_resource(resource_name)
    cleaned = _clean_payload(resource, data, partial=True)

    with transaction.atomic():
        company = get_company(company_id)
        record = _get_record(resource, company, data.get("id"), lock=True)
        if "code" in cleaned and cleaned["code"] != record.code:
            _check_code(resource, company, cleaned["code"], exclude_pk=record.pk)
        _check_refs(resource, company, cleaned, record=record)

        changes = assign_fields(record, cleaned, cleaned.keys())
        record.updated_by = user_id
        record.save()
        log_action(action="update", instance=record, user_id=user_id, changes=changes)

    logger.info("%s %s updated (company=%s)", resource.label, record.pk, company.pk)
    return record_to_dict(resource, record)


def list_records(resource_name, filters, company_id):
    """Returns (rows, pagination)."""
    resource = get_resource(resource_name)
    qs = resource.model.objects.for_company(company_id).alive()

    search = clean_str(filters.get("search"))
    if search:
        qs = qs.filter(Q(code__icontains=search) | Q(name__icontains=search))
    is_active = parse_bool(filters.get("is_active"))
    if is_active is not None:
        qs = qs.filter(is_active=is_active)
    for attname in resource.refs:
        ref_id = parse_int(filters.get(attname), attname)
        if ref_id:
            qs = qs.filter(**{attname: ref_id})

    if resource.refs:
        qs = qs.select_related(*[a.removesuffix("_id") for a in resource.refs])

    limit, offset = page_params(filters)
    rows, pagination = paginate(qs.order_by(*resource.model._meta.ordering, "id"), limit, offset)
    return [record_to_dict(resource, r) for r in rows], pagination


def get_record_details(resource_name, record_id, company_id):
    resource = get_resource(resource_name)
    record = _get_record(resource, company_id, record_id)
    return record_to_dict(resource, record)


def _live_references(record):
    """(count, label) for every reverse relation still pointing at the record."""
    found = []
    for rel in record._meta.related_objects:
        # reverse side of a ForeignKey is one_to_many
        if not (rel.one_to_many or rel.one_to_one):
            continue
        qs = rel.related_model._default_manager.filter(**{rel.field.name: record})
        field_names = {f.name for f in rel.related_model._meta.concrete_fields}
        if "deleted_at" in field_names:
            qs = qs.filter(deleted_at__isnull=True)
        elif "is_active" in field_names:
            qs = qs.filter(is_active=True)
        count = qs.count()
        if count:
            found.append((count, rel.related_model._meta.verbose_name_plural))
    return found


def delete_record(resource_name, record_id, company_id, user_id=None):
    resource = get_resource(resource_name)

    with transaction.atomic():
        company = get_company(company_id)
        record = _get_record(resource, company, record_id, lock=True)

        references = _live_references(record)
        if references:
            detail = ", ".join(f"{count} {name}" for count, name in references)
            logger.warning("Refused to delete %s %s: in use by %s", resource.label, record.pk, detail)
            raise ConflictError(f"Cannot delete {resource.label.lower()} as it is used by {detail}")

        record.soft_delete(user_id)
        log_action(action="delete", instance=record, user_id=user_id)

    logger.info("%s %s deleted (company=%s)", resource.label, record.pk, company.pk)
    return {"id": record.pk, "code": record.code}
