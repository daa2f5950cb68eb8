from django.urls import path

from .views import company, currency, expense_category, location_group, organization

CURRENCIES = "expense/admin/currencies/"
CATEGORIES = "expense/admin/categories/"
LOCATION_GROUPS = "expense/admin/location-groups/"

urlpatterns = [
    # ---------- Company ----------
    path("company/details", company.company_details_view, name="company-details"),
    path("company/update", company.company_update_view, name="company-update"),

    # ---------- Organizational master data ----------
    path("org/<slug:resource>/create", organization.org_create_view, name="org-create"),
    path("org/<slug:resource>/update", organization.org_update_view, name="org-update"),
    path("org/<slug:resource>/list", organization.org_list_view, name="org-list"),
    path("org/<slug:resource>/details", organization.org_details_view, name="org-details"),
    path("org/<slug:resource>/delete", organization.org_delete_view, name="org-delete"),

    # ---------- Currencies ----------
    path(CURRENCIES + "create", currency.currency_create_view, name="currency-create"),
    path(CURRENCIES + "list", currency.currency_list_view, name="currency-list"),
    path(CURRENCIES + "details", currency.currency_details_view, name="currency-details"),
    path(CURRENCIES + "update", currency.currency_update_view, name="currency-update"),
    path(CURRENCIES + "delete", currency.currency_delete_view, name="currency-delete"),
    path(CURRENCIES + "set-base", currency.currency_set_base_view, name="currency-set-base"),
    path(CURRENCIES + "set-default", currency.currency_set_default_view, name="currency-set-default"),
    path(CURRENCIES + "dropdown", currency.currency_dropdown_view, name="currency-dropdown"),
    path(CURRENCIES + "check-usage", currency.currency_check_usage_view, name="currency-check-usage"),
    path(CURRENCIES + "exchange-rates/upsert", currency.exchange_rate_upsert_view, name="exchange-rate-upsert"),
    path(CURRENCIES + "exchange-rates/list", currency.exchange_rate_list_view, name="exchange-rate-list"),
    path(CURRENCIES + "exchange-rates/delete", currency.exchange_rate_delete_view, name="exchange-rate-delete"),
    path(CURRENCIES + "exchange-rates/bulk-update", currency.exchange_rate_bulk_update_view,
         name="exchange-rate-bulk-update"),
    path(CURRENCIES + "exchange-rates/history", currency.exchange_rate_history_view, name="exchange-rate-history"),
    path(CURRENCIES + "policy/get", currency.currency_policy_view, name="currency-policy"),
    path(CURRENCIES + "policy/update", currency.currency_policy_update_view, name="currency-policy-update"),
    path(CURRENCIES + "convert", currency.convert_amount_view, name="currency-convert"),

    # ---------- Expense categories ----------
    path(CATEGORIES + "create", expense_category.category_create_view, name="category-create"),
    path(CATEGORIES + "list", expense_category.category_list_view, name="category-list"),
    path(CATEGORIES + "details", expense_category.category_details_view, name="category-details"),
    path(CATEGORIES + "update", expense_category.category_update_view, name="category-update"),
    path(CATEGORIES + "delete", expense_category.category_delete_view, name="category-delete"),
    path(CATEGORIES + "dropdown", expense_category.category_dropdown_view, name="category-dropdown"),
    path(CATEGORIES + "limits/manage", expense_category.category_limits_view, name="category-limits"),
    path(CATEGORIES + "custom-fields/manage", expense_category.category_custom_fields_view,
         name="category-custom-fields"),
    path(CATEGORIES + "filing-rules/update", expense_category.category_filing_rules_view,
         name="category-filing-rules"),
    path(CATEGORIES + "clone", expense_category.category_clone_view, name="category-clone"),
    path(CATEGORIES + "reorder", expense_category.category_reorder_view, name="category-reorder"),
    path(CATEGORIES + "hierarchy", expense_category.category_hierarchy_view, name="category-hierarchy"),

    # ---------- Location groups ----------
    path(LOCATION_GROUPS + "create", location_group.location_group_create_view, name="location-group-create"),
    path(LOCATION_GROUPS + "list", location_group.location_group_list_view, name="location-group-list"),
    path(LOCATION_GROUPS + "details", location_group.location_group_details_view, name="location-group-details"),
    path(LOCATION_GROUPS + "update", location_group.location_group_update_view, name="location-group-update"),
    path(LOCATION_GROUPS + "delete", location_group.location_group_delete_view, name="location-group-delete"),
    path(LOCATION_GROUPS + "generate-code", location_group.location_group_generate_code_view,
         name="location-group-generate-code"),
    path(LOCATION_GROUPS + "check-usage", location_group.location_group_check_usage_view,
         name="location-group-check-usage"),
]
