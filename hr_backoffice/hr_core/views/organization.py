# One set of views serves every /org/<resource>/ endpoint
from ..services import organization as org_service
from .base import api_view


@api_view("Record created successfully", status=201)
def org_create_view(body, company_id, user_id, resource):
    return org_service.create_record(resource, body, company_id, user_id)


@api_view("Record updated successfully")
def org_update_view(body, company_id, user_id, resource):
    return org_service.update_record(resource, body, company_id, user_id)


@api_view()
def org_list_view(body, company_id, user_id, resource):
    return org_service.list_records(resource, body, company_id)


@api_view()
def org_details_view(body, company_id, user_id, resource):
    return org_service.get_record_details(resource, body.get("id"), company_id)


@api_view("Record deleted successfully")
def org_delete_view(body, company_id, user_id, resource):
    return org_service.delete_record(resource, body.get("id"), company_id, user_id)
