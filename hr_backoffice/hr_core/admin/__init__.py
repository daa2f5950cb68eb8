from .actions import deactivate_exchange_rates
from .auditlog import AuditLogAdmin
from .company import CompanyAdmin
from .currency import (CurrencyAdmin, CurrencyPolicyAdmin, ExchangeRateAdmin,
                       ExchangeRateHistoryAdmin)
from .expense import ExpenseCategoryAdmin, LocationGroupAdmin
from .inlines import (CategoryCustomFieldInline, CategoryFilingRuleInline,
                      CategoryLimitInline, LocationGroupMappingInline)
from .mixins import TenantAdminMixin
from .organization import OrgUnitAdmin
from .ReadOnly import ReadOnlyAdmin
