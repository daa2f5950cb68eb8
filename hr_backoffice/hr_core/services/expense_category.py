"""
Expense category administration: the category itself plus its limits,
custom fields and filing rule, cloning, ordering and the category tree.
"""
import logging

from django.db import transaction
from django.db.models import Count, Q
from django.utils import timezone

from ..exceptions import ConflictError, InvalidInput, RecordNotFound
from ..models import (CategoryCustomField, CategoryFilingRule, CategoryLimit,
                      ExpenseCategory, Grade, LocationGroup)
from .audit_helper import log_action
from .common import (assign_fields, clean_str, lock_company, page_params,
                     paginate, parse_bool, parse_decimal, parse_int, to_dict)
from .reconcile import reconcile_children

logger = logging.getLogger(__name__)

EXPENSE_TYPES = [value for value, _ in ExpenseCategory.EXPENSE_TYPE_CHOICES]
RECEIPT_OPTIONS = [value for value, _ in ExpenseCategory.RECEIPT_REQUIRED_CHOICES]
LIMIT_TYPES = [value for value, _ in CategoryLimit.LIMIT_TYPE_CHOICES]
FIELD_TYPES = [value for value, _ in CategoryCustomField.FIELD_TYPE_CHOICES]

RATE_FIELDS = [
    "mileage_rate_per_km", "per_diem_rate", "per_diem_half_day_rate",
    "hourly_rate", "min_hours", "max_hours_per_day",
    "receipt_required_above", "tax_percentage",
]
CATEGORY_FIELDS = RATE_FIELDS + [
    "name", "description", "icon", "parent_id", "expense_type",
    "mileage_vehicle_type", "receipt_required", "is_taxable",
    "gst_applicable", "hsn_code", "display_order", "is_active",
]
LIMIT_FIELDS = [
    "limit_type", "location_group_id", "grade_id", "department_id",
    "limit_per_transaction", "limit_per_day", "limit_per_week",
    "limit_per_month", "limit_per_quarter", "limit_per_year",
    "max_transactions_per_day", "max_transactions_per_month",
    "max_km_per_day", "max_km_per_month",
    "allow_limit_override", "override_approval_required",
    "effective_from", "effective_to", "is_active",
]
CUSTOM_FIELD_FIELDS = [
    "field_name", "field_label", "field_type", "field_placeholder",
    "field_description", "is_required", "min_length", "max_length",
    "min_value", "max_value", "regex_pattern", "dropdown_options",
    "allowed_file_types", "max_file_size_mb", "display_order",
    "show_in_list", "is_active",
]
FILING_RULE_FIELDS = [
    f.name for f in CategoryFilingRule._meta.concrete_fields
    if f.name not in ("id", "category", "created_by", "updated_by", "created_at", "updated_at")
]
# Children copied verbatim by clone, minus identity/audit columns
CHILD_SKIP = ("id", "category", "created_by", "updated_by", "created_at", "updated_at")


# ---------- Serialization ----------
def category_to_dict(category):
    return to_dict(category, exclude=("deleted_at", "deleted_by"))


def _child_dict(child):
    return to_dict(child, exclude=("category",))


def _brief(category):
    if category is None:
        return None
    return {"id": category.pk, "code": category.code, "name": category.name}


# ---------- Lookups ----------
def _get_category(company, category_id, *, lock=False):
    category_id = parse_int(category_id, "category_id", required=True)
    qs = ExpenseCategory.objects.select_for_update() if lock else ExpenseCategory.objects.all()
    try:
        return qs.for_company(company).alive().get(pk=category_id)
    except ExpenseCategory.DoesNotExist:
        raise RecordNotFound("Category not found")


def _check_code(company, code, exclude_pk=None):
    clash = (
        ExpenseCategory.objects.for_company(company).alive()
        .filter(code=code).exclude(pk=exclude_pk).exists()
    )
    if clash:
        raise ConflictError("Category code already exists")


def _check_parent(company, parent_id, category=None):
    if not parent_id:
        return
    if not ExpenseCategory.objects.for_company(company).alive().filter(pk=parent_id).exists():
        raise RecordNotFound("Parent category not found")
    if category is None:
        return
    # parent must not be the category or one of its descendants
    seen = set()
    while parent_id and parent_id not in seen:
        if parent_id == category.pk:
            raise InvalidInput("Category cannot be moved under itself or one of its sub-categories")
        seen.add(parent_id)
        parent_id = ExpenseCategory.objects.filter(pk=parent_id).values_list("parent_id", flat=True).first()


# ---------- Validation ----------
def _clean_category(data, *, partial):
    cleaned = {}
    if not partial or "code" in data:
        code = clean_str(data.get("code")).upper()
        if not code:
            raise InvalidInput("Category code is required")
        cleaned["code"] = code
    if not partial or "name" in data:
        name = clean_str(data.get("name"))
        if not name:
            raise InvalidInput("Category name is required")
        cleaned["name"] = name

    for field in CATEGORY_FIELDS:
        if field in cleaned or field not in data:
            continue
        value = data[field]
        if field in RATE_FIELDS:
            value = parse_decimal(value, field)
            if value is not None and value < 0:
                raise InvalidInput(f"{field} cannot be negative")
        elif field in ("parent_id", "display_order"):
            value = parse_int(value, field)
            if field == "display_order" and value is None:
                value = 0
        elif field in ("is_taxable", "gst_applicable", "is_active"):
            value = parse_bool(value)
            if value is None:
                raise InvalidInput(f"{field} must be a boolean")
        elif isinstance(value, str):
            value = value.strip()
        cleaned[field] = value

    if "expense_type" in cleaned and cleaned["expense_type"] not in EXPENSE_TYPES:
        raise InvalidInput(f"Expense type must be one of: {', '.join(EXPENSE_TYPES)}")
    if "receipt_required" in cleaned and cleaned["receipt_required"] not in RECEIPT_OPTIONS:
        raise InvalidInput(f"Receipt required must be one of: {', '.join(RECEIPT_OPTIONS)}")
    return cleaned


def _check_type_rates(category):
    """Each expense type needs its own rate."""
    if category.expense_type == "Mileage" and not category.mileage_rate_per_km:
        raise InvalidInput("Mileage rate per km is required for mileage type categories")
    if category.expense_type == "Per_Diem" and not category.per_diem_rate:
        raise InvalidInput("Per diem rate is required for per diem type categories")
    if category.expense_type == "Time_Based" and not category.hourly_rate:
        raise InvalidInput("Hourly rate is required for time based categories")


def _check_custom_field_names(items):
    names = set()
    for item in items or []:
        if not isinstance(item, dict):
            raise InvalidInput("Invalid custom field entry")
        name = clean_str(item.get("field_name"))
        if name in names:
            raise InvalidInput(f"Duplicate custom field name: {name}")
        names.add(name)


# ---------- Children ----------
def _save_limit(category, item, user_id, limit=None):
    if limit is None:
        limit = CategoryLimit(category=category, created_by=user_id)
    cleaned = {k: item[k] for k in LIMIT_FIELDS if k in item}

    if "limit_type" in cleaned and cleaned["limit_type"] not in LIMIT_TYPES:
        raise InvalidInput(f"Limit type must be one of: {', '.join(LIMIT_TYPES)}")
    for attname in ("location_group_id", "grade_id", "department_id"):
        if attname in cleaned:
            cleaned[attname] = parse_int(cleaned[attname], attname)
    if cleaned.get("location_group_id"):
        exists = LocationGroup.objects.for_company(category.company_id).alive().filter(
            pk=cleaned["location_group_id"]
        ).exists()
        if not exists:
            raise RecordNotFound("Location group not found")
    if cleaned.get("grade_id"):
        exists = Grade.objects.for_company(category.company_id).alive().filter(pk=cleaned["grade_id"]).exists()
        if not exists:
            raise RecordNotFound("Grade not found")

    assign_fields(limit, cleaned, cleaned.keys())
    limit.updated_by = user_id
    limit.save()
    return limit


def _save_custom_field(category, item, user_id, field=None):
    if field is None:
        field = CategoryCustomField(category=category, created_by=user_id)
    cleaned = {k: item[k] for k in CUSTOM_FIELD_FIELDS if k in item}

    for key, label in (("field_name", "Field name"), ("field_label", "Field label")):
        if key in cleaned or field.pk is None:
            value = clean_str(cleaned.get(key))
            if not value:
                raise InvalidInput(f"{label} is required")
            cleaned[key] = value
    if "field_type" in cleaned or field.pk is None:
        if cleaned.get("field_type") not in FIELD_TYPES:
            raise InvalidInput(f"Field type must be one of: {', '.join(FIELD_TYPES)}")

    if "field_name" in cleaned:
        clash = (
            CategoryCustomField.objects.filter(category=category, field_name=cleaned["field_name"])
            .exclude(pk=field.pk).exists()
        )
        if clash:
            raise ConflictError(f"Custom field '{cleaned['field_name']}' already exists for this category")

    assign_fields(field, cleaned, cleaned.keys())
    field.updated_by = user_id
    field.save()
    return field


def _save_filing_rule(category, item, user_id):
    if not isinstance(item, dict):
        raise InvalidInput("filing_rules must be an object")
    rule = CategoryFilingRule.objects.filter(category=category).first()
    if rule is None:
        rule = CategoryFilingRule(category=category, created_by=user_id)
    cleaned = {k: item[k] for k in FILING_RULE_FIELDS if k in item}
    if cleaned.get("claims_period") not in (None, "") and cleaned["claims_period"] not in dict(
        CategoryFilingRule.CLAIMS_PERIOD_CHOICES
    ):
        raise InvalidInput("Invalid claims period")
    assign_fields(rule, cleaned, cleaned.keys())
    rule.updated_by = user_id
    rule.save()
    return rule


# ---------- Create / read ----------
def create_category(data, company_id, user_id=None):
    cleaned = _clean_category(data, partial=False)
    limits = data.get("limits") or []
    custom_fields = data.get("custom_fields") or []
    _check_custom_field_names(custom_fields)

    with transaction.atomic():
        company = lock_company(company_id)
        _check_code(company, cleaned["code"])
        _check_parent(company, cleaned.get("parent_id"))

        category = ExpenseCategory(company=company, created_by=user_id, updated_by=user_id)
        assign_fields(category, cleaned, cleaned.keys())
        _check_type_rates(category)
        category.save()

        for item in limits:
            _save_limit(category, item, user_id)
        for item in custom_fields:
            _save_custom_field(category, item, user_id)
        if data.get("filing_rules"):
            _save_filing_rule(category, data["filing_rules"], user_id)

        log_action(action="create", instance=category, user_id=user_id, changes={"code": category.code})

    logger.info("Expense category %s created (company=%s, id=%s)", category.code, company.pk, category.pk)
    return get_category_details(category.pk, company.pk)


def list_categories(filters, company_id):
    """Returns (rows, pagination)."""
    qs = ExpenseCategory.objects.for_company(company_id).alive().select_related("parent")

    search = clean_str(filters.get("search"))
    if search:
        qs = qs.filter(Q(code__icontains=search) | Q(name__icontains=search))
    expense_type = clean_str(filters.get("expense_type"))
    if expense_type:
        qs = qs.filter(expense_type=expense_type)
    is_active = parse_bool(filters.get("is_active"))
    if is_active is not None:
        qs = qs.filter(is_active=is_active)
    parent_id = parse_int(filters.get("parent_id"), "parent_id")
    if parent_id:
        qs = qs.filter(parent_id=parent_id)
    elif parse_bool(filters.get("root_only"), False):
        qs = qs.filter(parent__isnull=True)

    qs = qs.annotate(
        sub_categories_count=Count(
            "sub_categories", filter=Q(sub_categories__deleted_at__isnull=True), distinct=True
        ),
        limits_count=Count("limits", distinct=True),
        custom_fields_count=Count("custom_fields", distinct=True),
    ).order_by("display_order", "name", "id")

    limit, offset = page_params(filters)
    rows, pagination = paginate(qs, limit, offset)
    results = []
    for category in rows:
        item = category_to_dict(category)
        item["parent"] = _brief(category.parent)
        item["sub_categories_count"] = category.sub_categories_count
        item["limits_count"] = category.limits_count
        item["custom_fields_count"] = category.custom_fields_count
        results.append(item)
    return results, pagination


def get_category_details(category_id, company_id):
    category = _get_category(company_id, category_id)
    data = category_to_dict(category)
    data["parent"] = _brief(category.parent)
    data["sub_categories"] = [
        _brief(c) for c in category.sub_categories.filter(deleted_at__isnull=True).order_by("display_order", "name")
    ]
    data["limits"] = [_child_dict(limit) for limit in category.limits.all()]
    data["custom_fields"] = [_child_dict(field) for field in category.custom_fields.all()]
    rule = CategoryFilingRule.objects.filter(category=category).first()
    data["filing_rules"] = _child_dict(rule) if rule else None
    return data


# ---------- Update / delete ----------
def update_category(data, company_id, user_id=None):
    """
    Partial update. `limits` and `custom_fields`, when present, replace the
    stored collections (see reconcile_children); `filing_rules` is upserted.
    """
    cleaned = _clean_category(data, partial=True)
    if "custom_fields" in data:
        _check_custom_field_names(data["custom_fields"])

    with transaction.atomic():
        company = lock_company(company_id)
        category = _get_category(company, data.get("category_id"), lock=True)
        if "code" in cleaned and cleaned["code"] != category.code:
            _check_code(company, cleaned["code"], exclude_pk=category.pk)
        if "parent_id" in cleaned:
            _check_parent(company, cleaned["parent_id"], category)

        changes = assign_fields(category, cleaned, cleaned.keys())
        _check_type_rates(category)
        category.updated_by = user_id
        category.save()

        if "limits" in data:
            changes["limits"] = reconcile_children(
                category.limits.all(),
                data["limits"],
                create=lambda item: _save_limit(category, item, user_id),
                update=lambda limit, item: _save_limit(category, item, user_id, limit),
                label="Limit",
            )
        if "custom_fields" in data:
            changes["custom_fields"] = reconcile_children(
                category.custom_fields.all(),
                data["custom_fields"],
                create=lambda item: _save_custom_field(category, item, user_id),
                update=lambda field, item: _save_custom_field(category, item, user_id, field),
                label="Custom field",
            )
        if data.get("filing_rules") is not None:
            _save_filing_rule(category, data["filing_rules"], user_id)
            changes["filing_rules"] = "updated"

        log_action(action="update", instance=category, user_id=user_id, changes=changes)

    logger.info("Expense category %s updated (company=%s)", category.pk, company.pk)
    return get_category_details(category.pk, company.pk)


def delete_category(category_id, company_id, user_id=None):
    with transaction.atomic():
        company = lock_company(company_id)
        category = _get_category(company, category_id, lock=True)
        if category.sub_categories.filter(deleted_at__isnull=True).exists():
            raise ConflictError("Cannot delete category as it has sub-categories")
        category.soft_delete(user_id)
        log_action(action="delete", instance=category, user_id=user_id)

    logger.info("Expense category %s deleted (company=%s)", category.pk, company.pk)
    return {"id": category.pk, "code": category.code}


# ---------- Single child management ----------
def _manage_child(data, company_id, user_id, *, payload_key, id_key, related, save, label):
    action = clean_str(data.get("action")).lower()
    if action not in ("add", "update", "delete"):
        raise InvalidInput("Action must be add, update or delete")

    with transaction.atomic():
        company = lock_company(company_id)
        category = _get_category(company, data.get("category_id"), lock=True)
        manager = getattr(category, related)

        if action == "add":
            child = save(category, data.get(payload_key) or {}, user_id)
            child_id = child.pk
        else:
            child_id = parse_int(data.get(id_key), id_key, required=True)
            child = manager.filter(pk=child_id).first()
            if child is None:
                raise RecordNotFound(f"{label} not found")
            if action == "update":
                save(category, data.get(payload_key) or {}, user_id, child)
            else:
                child.delete()

        log_action(
            action=f"{label.lower().replace(' ', '_')}_{action}",
            instance=category,
            user_id=user_id,
            changes={id_key: child_id},
        )

    return [_child_dict(c) for c in manager.all()]


def manage_category_limits(data, company_id, user_id=None):
    return _manage_child(
        data, company_id, user_id,
        payload_key="limit", id_key="limit_id", related="limits",
        save=_save_limit, label="Limit",
    )


def manage_custom_fields(data, company_id, user_id=None):
    return _manage_child(
        data, company_id, user_id,
        payload_key="custom_field", id_key="field_id", related="custom_fields",
        save=_save_custom_field, label="Custom field",
    )


def update_filing_rules(data, company_id, user_id=None):
    with transaction.atomic():
        company = lock_company(company_id)
        category = _get_category(company, data.get("category_id"), lock=True)
        rule = _save_filing_rule(category, data.get("filing_rules") or {}, user_id)
        log_action(action="update", instance=rule, user_id=user_id, company_id=company.pk)
    return _child_dict(rule)


# ---------- Clone / reorder / tree ----------
def _copy_row(row, **overrides):
    """Unsaved copy of a child row."""
    values = {k: v for k, v in to_dict(row).items() if k not in CHILD_SKIP and k != "category_id"}
    values.update(overrides)
    return type(row)(**values)


def clone_category(data, company_id, user_id=None):
    """Copy a category with its limits, custom fields and filing rule under a new code."""
    new_code = clean_str(data.get("new_code") or data.get("code")).upper()
    if not new_code:
        raise InvalidInput("New category code is required")

    with transaction.atomic():
        company = lock_company(company_id)
        source = _get_category(company, data.get("category_id"))
        _check_code(company, new_code)

        values = {
            k: v for k, v in category_to_dict(source).items()
            if k not in ("id", "code", "name", "created_at", "updated_at", "created_by", "updated_by")
        }
        clone = ExpenseCategory(
            **values,
            code=new_code,
            name=clean_str(data.get("new_name") or data.get("name")) or f"{source.name} (Copy)",
            created_by=user_id,
            updated_by=user_id,
        )
        clone.save()

        for limit in source.limits.all():
            _copy_row(limit, category=clone, created_by=user_id, updated_by=user_id).save()
        for field in source.custom_fields.all():
            _copy_row(field, category=clone, created_by=user_id, updated_by=user_id).save()
        rule = CategoryFilingRule.objects.filter(category=source).first()
        if rule is not None:
            _copy_row(rule, category=clone, created_by=user_id, updated_by=user_id).save()

        log_action(action="clone", instance=clone, user_id=user_id, changes={"source_id": source.pk})

    logger.info("Expense category %s cloned into %s (company=%s)", source.pk, clone.pk, company.pk)
    return get_category_details(clone.pk, company.pk)


def reorder_categories(data, company_id, user_id=None):
    orders = data.get("category_orders")
    if not isinstance(orders, list) or not orders:
        raise InvalidInput("No category orders provided")

    pairs = []
    for item in orders:
        if not isinstance(item, dict):
            raise InvalidInput("Invalid category order entry")
        category_id = parse_int(item.get("category_id", item.get("id")), "category_id", required=True)
        display_order = parse_int(item.get("display_order"), "display_order", required=True)
        pairs.append((category_id, display_order))

    with transaction.atomic():
        company = lock_company(company_id)
        ids = {category_id for category_id, _ in pairs}
        found = set(
            ExpenseCategory.objects.for_company(company).alive().filter(pk__in=ids).values_list("pk", flat=True)
        )
        missing = ids - found
        if missing:
            raise RecordNotFound(f"Categories not found: {', '.join(str(i) for i in sorted(missing))}")

        now = timezone.now()
        for category_id, display_order in pairs:
            ExpenseCategory.objects.filter(pk=category_id).update(
                display_order=display_order, updated_by=user_id, updated_at=now
            )

    return {"updated_count": len(pairs)}


def get_category_hierarchy(filters, company_id):
    """Live categories as a nested tree ordered by display_order, name."""
    qs = ExpenseCategory.objects.for_company(company_id).alive()
    if not parse_bool(filters.get("include_inactive"), False):
        qs = qs.filter(is_active=True)
    categories = list(qs.order_by("display_order", "name", "id"))

    nodes = {}
    for c in categories:
        nodes[c.pk] = {
            "id": c.pk,
            "code": c.code,
            "name": c.name,
            "expense_type": c.expense_type,
            "is_active": c.is_active,
            "display_order": c.display_order,
            "children": [],
        }
    roots = []
    for c in categories:
        # a child whose parent is hidden (inactive) surfaces as a root
        if c.parent_id in nodes:
            nodes[c.parent_id]["children"].append(nodes[c.pk])
        else:
            roots.append(nodes[c.pk])
    return roots


def _choices(pairs):
    return [{"value": value, "label": label} for value, label in pairs]


def get_category_dropdown_data(company_id):
    categories = (
        ExpenseCategory.objects.for_company(company_id).alive().filter(is_active=True)
        .order_by("display_order", "name")
        .values("id", "code", "name", "parent_id", "expense_type")
    )
    location_groups = (
        LocationGroup.objects.for_company(company_id).alive().filter(is_active=True)
        .order_by("name").values("id", "code", "name")
    )
    grades = (
        Grade.objects.for_company(company_id).alive().filter(is_active=True)
        .values("id", "code", "name", "level")
    )
    return {
        "categories": list(categories),
        "location_groups": list(location_groups),
        "grades": list(grades),
        "expense_types": _choices(ExpenseCategory.EXPENSE_TYPE_CHOICES),
        "receipt_required_options": _choices(ExpenseCategory.RECEIPT_REQUIRED_CHOICES),
        "limit_types": _choices(CategoryLimit.LIMIT_TYPE_CHOICES),
        "field_types": _choices(CategoryCustomField.FIELD_TYPE_CHOICES),
        "claims_periods": _choices(CategoryFilingRule.CLAIMS_PERIOD_CHOICES),
    }
