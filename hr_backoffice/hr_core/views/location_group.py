from ..services import location_group as group_service
from .base import api_view


@api_view("Location group created successfully", status=201)
def location_group_create_view(body, company_id, user_id):
    return group_service.create_location_group(body, company_id, user_id)


@api_view()
def location_group_list_view(body, company_id, user_id):
    return group_service.list_location_groups(body, company_id)


@api_view()
def location_group_details_view(body, company_id, user_id):
    return group_service.get_location_group_details(body.get("location_group_id"), company_id)


@api_view("Location group updated successfully")
def location_group_update_view(body, company_id, user_id):
    return group_service.update_location_group(body, company_id, user_id)


@api_view("Location group deleted successfully")
def location_group_delete_view(body, company_id, user_id):
    return group_service.delete_location_group(body.get("location_group_id"), company_id, user_id)


@api_view()
def location_group_generate_code_view(body, company_id, user_id):
    return group_service.generate_code(company_id)


@api_view()
def location_group_check_usage_view(body, company_id, user_id):
    return group_service.check_usage(body.get("location_group_id"), company_id)
