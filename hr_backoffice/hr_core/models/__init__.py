from .auditlog import AuditLog
from .company import Company
from .currency import Currency, CurrencyPolicy, ExchangeRate, ExchangeRateHistory
from .expense_category import (CategoryCustomField, CategoryFilingRule,
                               CategoryLimit, ExpenseCategory)
from .location_group import LocationGroup, LocationGroupMapping
from .organization import (Branch, BusinessUnit, Channel, CostCenter, Division,
                           Grade, Location, Region, Zone)
