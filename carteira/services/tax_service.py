# carteira/services/tax_service.py
"""
Withholding income tax for fixed-income investments.

Brazilian regressive table, by calendar days held (inclusive upper bounds):

    days <= 180  -> 22.5%
    days <= 360  -> 20.0%
    days <= 720  -> 17.5%
    days >  720  -> 15.0%

Pure functions: no state, no I/O, no error conditions.
"""

from datetime import date
from decimal import Decimal

from carteira.services.constants import INCOME_TAX_BRACKETS, INCOME_TAX_FLOOR_RATE
from carteira.utils.date_utils import calendar_days_between


def tax_rate_for_days(days_held: int) -> Decimal:
    """Map a holding period in calendar days to the withholding rate."""
    for upper_bound, rate in INCOME_TAX_BRACKETS:
        if days_held <= upper_bound:
            return rate
    return INCOME_TAX_FLOOR_RATE


def get_fixed_income_tax_rate(investment_date: date, current_date: date) -> Decimal:
    """Withholding rate for a holding started on investment_date and valued on current_date."""
    return tax_rate_for_days(calendar_days_between(investment_date, current_date))
