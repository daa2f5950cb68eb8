from ..services import company as company_service
from .base import api_view


@api_view()
def company_details_view(body, company_id, user_id):
    return company_service.get_company_details(company_id)


@api_view("Company details updated successfully")
def company_update_view(body, company_id, user_id):
    return company_service.update_company_details(body, company_id, user_id)
