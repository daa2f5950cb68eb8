import logging

from django.core.exceptions import ValidationError
from django.core.validators import validate_email
from django.db import transaction

from ..exceptions import InvalidInput, RecordNotFound
from ..models import Company
from .audit_helper import log_action
from .common import assign_fields, clean_str, parse_int, to_dict
from .organization import RESOURCES

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = [
    "name", "legal_name", "email", "phone", "website",
    "address_line1", "address_line2", "country_id", "state_id", "city_id",
    "postal_code", "timezone",
]
GEO_FIELDS = {"country_id", "state_id", "city_id"}


def company_to_dict(company):
    return to_dict(company)


def get_company_details(company_id):
    company_id = parse_int(company_id, "company_id", required=True)
    try:
        company = Company.objects.get(pk=company_id)
    except Company.DoesNotExist:
        raise RecordNotFound("Company not found")

    data = company_to_dict(company)
    # Live master-data counts, keyed like the /org/<resource>/ endpoints
    data["master_data_counts"] = {
        name: resource.model.objects.for_company(company).alive().count()
        for name, resource in RESOURCES.items()
    }
    return data


def update_company_details(data, company_id, user_id=None):
    cleaned = {}
    for field in EDITABLE_FIELDS:
        if field not in data:
            continue
        if field in GEO_FIELDS:
            cleaned[field] = parse_int(data[field], field)
        else:
            cleaned[field] = clean_str(data[field])

    if "name" in cleaned and not cleaned["name"]:
        raise InvalidInput("Company name is required")
    if cleaned.get("email"):
        try:
            validate_email(cleaned["email"])
        except ValidationError:
            raise InvalidInput("Invalid email address")

    with transaction.atomic():
        company_id = parse_int(company_id, "company_id", required=True)
        try:
            company = Company.objects.select_for_update().get(pk=company_id)
        except Company.DoesNotExist:
            raise RecordNotFound("Company not found")

        changes = assign_fields(company, cleaned, cleaned.keys())
        company.updated_by = user_id
        company.full_clean()
        company.save()
        log_action(action="update", instance=company, user_id=user_id, company_id=company.pk, changes=changes)

    logger.info("Company %s details updated (fields=%s)", company.pk, sorted(changes))
    return company_to_dict(company)
