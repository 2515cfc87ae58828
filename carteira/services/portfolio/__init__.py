# carteira/services/portfolio/__init__.py
"""
Portfolio valuation package.

Usage:
    from carteira.services.portfolio import PortfolioService

    service = PortfolioService(transaction_repo, calculator)
    dashboard = service.get_dashboard()
    evolution = service.get_evolution(months=12)

Architecture:
    portfolio/
    ├── __init__.py      # This file - package exports
    ├── types.py         # Positions, caches and view types
    ├── calculator.py    # Transactions -> valued positions
    ├── dashboard.py     # Summary, percentages, hierarchy, allocation tree
    └── service.py       # PortfolioService (views)

Data Flow:
    Transactions → group by AssetKey → CostBasis
    CostBasis + price (orchestrator) + FX rate → AssetPosition
    AssetPosition list + fixed-income positions → DashboardAggregator
"""

from carteira.services.portfolio.calculator import PortfolioCalculator, CostBasis
from carteira.services.portfolio.dashboard import DashboardAggregator
from carteira.services.portfolio.service import PortfolioService
from carteira.services.portfolio.types import (
    AssetKey,
    AssetPosition,
    CalculationCaches,
    FixedIncomeValues,
    PortfolioSummary,
    PortfolioPercentages,
    AssetTableRow,
    AssetSubCategory,
    AllocationNode,
    PortfolioDashboard,
    EvolutionPoint,
)

__all__ = [
    # Services
    "PortfolioService",
    "PortfolioCalculator",
    "CostBasis",
    "DashboardAggregator",
    # Types
    "AssetKey",
    "AssetPosition",
    "CalculationCaches",
    "FixedIncomeValues",
    "PortfolioSummary",
    "PortfolioPercentages",
    "AssetTableRow",
    "AssetSubCategory",
    "AllocationNode",
    "PortfolioDashboard",
    "EvolutionPoint",
]
