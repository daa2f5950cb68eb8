from django.contrib import admin

from hr_core.models import Company


@admin.register(Company)
class CompanyAdmin(admin.ModelAdmin):
    list_display = ("id", "code", "name", "email", "timezone", "is_active", "created_at")
    search_fields = ("code", "name", "legal_name")
    list_filter = ("is_active",)
    readonly_fields = ("created_at", "updated_at")
