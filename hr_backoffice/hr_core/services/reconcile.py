from ..exceptions import InvalidInput
from .common import parse_int


def reconcile_children(queryset, items, *, create, update, label="item"):
    """
    Replace-on-update for a child collection.

    `queryset` holds the current children, `items` the submitted list.
    Children whose id is not submitted are deleted, submitted ids are passed
    to `update(child, item)`, items without an id to `create(item)`.
    Deletions run first so unique keys (e.g. field names) can be reused.
    """
    if items is None:
        items = []
    if not isinstance(items, list):
        raise InvalidInput(f"{label} list must be an array")

    existing = {child.pk: child for child in queryset}
    keep = set()
    for item in items:
        if not isinstance(item, dict):
            raise InvalidInput(f"Invalid {label} entry")
        child_id = parse_int(item.get("id"), f"{label} id")
        if child_id is None:
            continue
        if child_id not in existing:
            raise InvalidInput(f"{label} {child_id} does not belong to this record")
        if child_id in keep:
            raise InvalidInput(f"{label} {child_id} is listed more than once")
        keep.add(child_id)

    deleted = 0
    for pk, child in existing.items():
        if pk not in keep:
            child.delete()
            deleted += 1

    created = updated = 0
    for item in items:
        child_id = parse_int(item.get("id"), f"{label} id")
        if child_id is None:
            create(item)
            created += 1
        else:
            update(existing[child_id], item)
            updated += 1

    return {"created": created, "updated": updated, "deleted": deleted}
