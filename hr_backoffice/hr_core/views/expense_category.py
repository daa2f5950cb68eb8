from ..services import expense_category as category_service
from .base import api_view


@api_view("Category created successfully", status=201)
def category_create_view(body, company_id, user_id):
    return category_service.create_category(body, company_id, user_id)


@api_view()
def category_list_view(body, company_id, user_id):
    return category_service.list_categories(body, company_id)


@api_view()
def category_details_view(body, company_id, user_id):
    return category_service.get_category_details(body.get("category_id"), company_id)


@api_view("Category updated successfully")
def category_update_view(body, company_id, user_id):
    return category_service.update_category(body, company_id, user_id)


@api_view("Category deleted successfully")
def category_delete_view(body, company_id, user_id):
    return category_service.delete_category(body.get("category_id"), company_id, user_id)


@api_view()
def category_dropdown_view(body, company_id, user_id):
    return category_service.get_category_dropdown_data(company_id)


@api_view("Category limits updated successfully")
def category_limits_view(body, company_id, user_id):
    return category_service.manage_category_limits(body, company_id, user_id)


@api_view("Custom fields updated successfully")
def category_custom_fields_view(body, company_id, user_id):
    return category_service.manage_custom_fields(body, company_id, user_id)


@api_view("Filing rules updated successfully")
def category_filing_rules_view(body, company_id, user_id):
    return category_service.update_filing_rules(body, company_id, user_id)


@api_view("Category cloned successfully", status=201)
def category_clone_view(body, company_id, user_id):
    return category_service.clone_category(body, company_id, user_id)


@api_view("Categories reordered successfully")
def category_reorder_view(body, company_id, user_id):
    return category_service.reorder_categories(body, company_id, user_id)


@api_view()
def category_hierarchy_view(body, company_id, user_id):
    return category_service.get_category_hierarchy(body, company_id)
