# carteira/schemas/__init__.py
"""Pydantic input schemas."""

from carteira.schemas.fixed_income import FixedIncomeCreate
from carteira.schemas.transactions import TransactionCreate

__all__ = [
    "FixedIncomeCreate",
    "TransactionCreate",
]
