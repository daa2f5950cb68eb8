SESSION_COMPANY_KEY = "active_company_id"


class TenantAdminMixin:
    """
    Scope an admin to one company.

    The company comes from the X-Company-Id header (CurrentCompanyMiddleware)
    or, for browser sessions, from session["active_company_id"].
    Superusers see every tenant.
    """

    def tenant_id(self, request):
        company_id = getattr(request, "company_id", None)
        if company_id is None and hasattr(request, "session"):
            company_id = request.session.get(SESSION_COMPANY_KEY)
        return company_id

    def get_queryset(self, request):
        qs = super().get_queryset(request)
        if request.user.is_superuser:
            return qs
        company_id = self.tenant_id(request)
        # no tenant, no rows
        return qs.filter(company_id=company_id) if company_id is not None else qs.none()

    def formfield_for_foreignkey(self, db_field, request, **kwargs):
        # Dropdowns (company, currencies, parent category, grade...) list the tenant's rows only
        if not request.user.is_superuser:
            company_id = self.tenant_id(request)
            related = db_field.related_model
            if db_field.name == "company":
                lookup = {"pk": company_id}
            elif any(f.name == "company" for f in related._meta.concrete_fields):
                lookup = {"company_id": company_id}
            else:
                lookup = None
            if lookup is not None:
                manager = related._default_manager
                kwargs["queryset"] = manager.filter(**lookup) if company_id is not None else manager.none()
        return super().formfield_for_foreignkey(db_field, request, **kwargs)

    def save_model(self, request, obj, form, change):
        # staff can only write into their own company
        company_id = self.tenant_id(request)
        if not request.user.is_superuser and company_id is not None and hasattr(obj, "company_id"):
            obj.company_id = company_id
        super().save_model(request, obj, form, change)
