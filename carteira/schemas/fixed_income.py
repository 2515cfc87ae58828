# carteira/schemas/fixed_income.py
"""Input schema for adding a fixed-income holding."""

from datetime import date
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from carteira.models import FixedIncomeIndex
from carteira.schemas.validators import validate_not_future


class FixedIncomeCreate(BaseModel):
    """
    Schema for creating a fixed-income holding.

    contracted_rate is read according to index_type:
    PRE_FIXED -> annual %, CDI -> % of CDI, IPCA -> real annual % over IPCA.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(
        ...,
        min_length=1,
        max_length=120,
        description="Unique name of the holding",
        examples=["CDB Banco X 2027"]
    )

    invested_amount: Decimal = Field(
        ...,
        gt=0,
        max_digits=18,
        decimal_places=2,
        description="Amount invested in the home currency"
    )

    investment_date: date = Field(..., description="Date the money was invested")
    maturity_date: date = Field(..., description="Maturity date")
    is_daily_liquid: bool = Field(default=False, description="Redeemable on any business day")
    index_type: FixedIncomeIndex = Field(..., description="PRE_FIXED, CDI or IPCA")

    contracted_rate: Decimal = Field(
        ...,
        ge=0,
        max_digits=18,
        decimal_places=4,
        examples=["12.5", "110", "6.2"]
    )

    @field_validator('investment_date')
    @classmethod
    def validate_investment_not_in_future(cls, v: date) -> date:
        return validate_not_future(v, "Investment date")

    @model_validator(mode="after")
    def validate_maturity_after_investment(self) -> "FixedIncomeCreate":
        if self.maturity_date < self.investment_date:
            raise ValueError(
                f"maturity_date ({self.maturity_date}) cannot be before "
                f"investment_date ({self.investment_date})"
            )
        return self
