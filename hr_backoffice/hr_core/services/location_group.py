"""
Location groups: named geography sets with sequential codes (LG001...),
used to scope expense category limits.
"""
import logging
from itertools import zip_longest

from django.db import transaction
from django.db.models import Count, Q

from ..exceptions import ConflictError, InvalidInput, RecordNotFound
from ..models import CategoryLimit, LocationGroup, LocationGroupMapping
from .audit_helper import log_action
from .common import (assign_fields, clean_str, lock_company, page_params,
                     paginate, parse_bool, parse_int, to_dict)
from .reconcile import reconcile_children

logger = logging.getLogger(__name__)

CODE_PREFIX = "LG"
COST_OF_LIVING = [value for value, _ in LocationGroup.COST_OF_LIVING_CHOICES]
MAPPING_FIELDS = ["country_id", "state_id", "city_id", "postal_code_range"]


def group_to_dict(group):
    return to_dict(group, exclude=("deleted_at", "deleted_by"))


def mapping_to_dict(mapping):
    return to_dict(mapping, exclude=("location_group",))


# ---------- Codes ----------
def next_code(company):
    """
    Next LGnnn code for the company. Deleted groups count too, so a code is
    never handed out twice. Callers hold the company row lock.
    """
    highest = 0
    codes = LocationGroup.objects.for_company(company).filter(code__startswith=CODE_PREFIX).values_list("code", flat=True)
    for code in codes:
        suffix = code[len(CODE_PREFIX):]
        if suffix.isdigit():
            highest = max(highest, int(suffix))
    return f"{CODE_PREFIX}{highest + 1:03d}"


def generate_code(company_id):
    with transaction.atomic():
        company = lock_company(company_id)
        return {"code": next_code(company)}


def _code_taken(company, code, exclude_pk=None):
    return LocationGroup.objects.for_company(company).alive().filter(code=code).exclude(pk=exclude_pk).exists()


# ---------- Validation ----------
def _clean_group(data, *, partial):
    cleaned = {}
    if not partial or "name" in data:
        name = clean_str(data.get("name"))
        if not name:
            raise InvalidInput("Location group name is required")
        if len(name) > 100:
            raise InvalidInput("Location group name cannot exceed 100 characters")
        cleaned["name"] = name
    if "code" in data:
        cleaned["code"] = clean_str(data.get("code")).upper()
    if "description" in data:
        cleaned["description"] = clean_str(data.get("description"))
    if data.get("cost_of_living_index") not in (None, ""):
        index = clean_str(data["cost_of_living_index"])
        if index not in COST_OF_LIVING:
            raise InvalidInput(f"Cost of living index must be one of: {', '.join(COST_OF_LIVING)}")
        cleaned["cost_of_living_index"] = index
    if "is_active" in data and data["is_active"] is not None:
        value = parse_bool(data["is_active"])
        if value is None:
            raise InvalidInput("is_active must be a boolean")
        cleaned["is_active"] = value
    return cleaned


def _collect_locations(data):
    """
    Locations arrive either as `locations` (list of objects) or as parallel
    `country_ids` / `state_ids` / `city_ids` arrays. None when absent.
    """
    if "locations" in data:
        items = data.get("locations") or []
        if not isinstance(items, list):
            raise InvalidInput("locations must be an array")
        return items
    if any(key in data for key in ("country_ids", "state_ids", "city_ids")):
        columns = [data.get(key) or [] for key in ("country_ids", "state_ids", "city_ids")]
        if not all(isinstance(col, list) for col in columns):
            raise InvalidInput("country_ids, state_ids and city_ids must be arrays")
        return [
            {"country_id": country, "state_id": state, "city_id": city}
            for country, state, city in zip_longest(*columns)
        ]
    return None


def _save_mapping(group, item, user_id, mapping=None):
    if not isinstance(item, dict):
        raise InvalidInput("Invalid location entry")
    if mapping is None:
        mapping = LocationGroupMapping(location_group=group, created_by=user_id)
    cleaned = {}
    for field in ("country_id", "state_id", "city_id"):
        if field in item:
            cleaned[field] = parse_int(item[field], field)
    if "postal_code_range" in item:
        cleaned["postal_code_range"] = clean_str(item["postal_code_range"])
    assign_fields(mapping, cleaned, cleaned.keys())
    if not any(getattr(mapping, f) for f in MAPPING_FIELDS):
        raise InvalidInput("Each location must have a country, state, city or postal code range")
    mapping.updated_by = user_id
    mapping.save()
    return mapping


# ---------- Operations ----------
def create_location_group(data, company_id, user_id=None):
    cleaned = _clean_group(data, partial=False)
    locations = _collect_locations(data) or []

    with transaction.atomic():
        company = lock_company(company_id)
        requested = cleaned.pop("code", "")
        # A requested code that is free is kept; otherwise the next sequence number
        code_generated = not requested or _code_taken(company, requested)
        code = next_code(company) if code_generated else requested

        group = LocationGroup(company=company, code=code, created_by=user_id, updated_by=user_id)
        assign_fields(group, cleaned, cleaned.keys())
        group.save()
        for item in locations:
            _save_mapping(group, item, user_id)
        log_action(action="create", instance=group, user_id=user_id, changes={"code": code})

    if requested and code_generated:
        logger.info("Location group code %s taken, generated %s instead (company=%s)", requested, code, company.pk)
    logger.info("Location group %s created (company=%s, id=%s)", code, company.pk, group.pk)
    data = get_location_group_details(group.pk, company.pk)
    data["code_generated"] = code_generated
    return data


def list_location_groups(filters, company_id):
    """Returns (rows, pagination)."""
    qs = LocationGroup.objects.for_company(company_id).alive()
    search = clean_str(filters.get("search"))
    if search:
        qs = qs.filter(Q(code__icontains=search) | Q(name__icontains=search))
    is_active = parse_bool(filters.get("is_active"))
    if is_active is not None:
        qs = qs.filter(is_active=is_active)
    index = clean_str(filters.get("cost_of_living_index"))
    if index:
        qs = qs.filter(cost_of_living_index=index)

    qs = qs.annotate(
        locations_count=Count("mappings", distinct=True),
        category_limits_count=Count("category_limits", distinct=True),
    ).order_by("name", "id")

    limit, offset = page_params(filters)
    rows, pagination = paginate(qs, limit, offset)
    results = []
    for group in rows:
        item = group_to_dict(group)
        item["locations_count"] = group.locations_count
        item["category_limits_count"] = group.category_limits_count
        results.append(item)
    return results, pagination


def _get_group(company, group_id, *, lock=False):
    group_id = parse_int(group_id, "location_group_id", required=True)
    qs = LocationGroup.objects.select_for_update() if lock else LocationGroup.objects.all()
    try:
        return qs.for_company(company).alive().get(pk=group_id)
    except LocationGroup.DoesNotExist:
        raise RecordNotFound("Location group not found")


def get_location_group_details(group_id, company_id):
    group = _get_group(company_id, group_id)
    data = group_to_dict(group)
    data["locations"] = [mapping_to_dict(m) for m in group.mappings.all()]
    return data


def update_location_group(data, company_id, user_id=None):
    cleaned = _clean_group(data, partial=True)
    locations = _collect_locations(data)

    with transaction.atomic():
        company = lock_company(company_id)
        group = _get_group(company, data.get("location_group_id"), lock=True)

        if "code" in cleaned:
            if not cleaned["code"]:
                raise InvalidInput("Location group code cannot be empty")
            if cleaned["code"] != group.code and _code_taken(company, cleaned["code"], exclude_pk=group.pk):
                raise ConflictError("Location group code already exists")

        changes = assign_fields(group, cleaned, cleaned.keys())
        group.updated_by = user_id
        group.save()

        if locations is not None:
            changes["locations"] = reconcile_children(
                group.mappings.all(),
                locations,
                create=lambda item: _save_mapping(group, item, user_id),
                update=lambda mapping, item: _save_mapping(group, item, user_id, mapping),
                label="Location",
            )
        log_action(action="update", instance=group, user_id=user_id, changes=changes)

    logger.info("Location group %s updated (company=%s)", group.pk, company.pk)
    return get_location_group_details(group.pk, company.pk)


def _limits_using(group):
    return CategoryLimit.objects.filter(
        location_group=group, is_active=True, category__deleted_at__isnull=True
    ).select_related("category")


def check_usage(group_id, company_id):
    group = _get_group(company_id, group_id)
    limits = list(_limits_using(group))
    categories = {}
    for limit in limits:
        categories[limit.category_id] = {"id": limit.category_id, "code": limit.category.code, "name": limit.category.name}
    count = len(limits)
    return {
        "location_group_id": group.pk,
        "code": group.code,
        "category_limits_count": count,
        "categories": list(categories.values()),
        "is_in_use": count > 0,
        "can_delete": count == 0,
        "message": (
            f"Location group is used in {count} category limit(s)" if count
            else "Location group can be safely deleted"
        ),
    }


def delete_location_group(group_id, company_id, user_id=None):
    with transaction.atomic():
        company = lock_company(company_id)
        group = _get_group(company, group_id, lock=True)
        in_use = _limits_using(group).count()
        if in_use:
            logger.warning("Refused to delete location group %s: used by %d limits", group.pk, in_use)
            raise ConflictError(f"Cannot delete location group as it is used in {in_use} category limit(s)")
        group.soft_delete(user_id)
        log_action(action="delete", instance=group, user_id=user_id)

    logger.info("Location group %s deleted (company=%s)", group.pk, company.pk)
    return {"id": group.pk, "code": group.code}
