# carteira/services/portfolio/service.py
"""
Portfolio views: positions, summary, dashboard, allocation and evolution.

Every view recomputes positions from the stored transactions; nothing is
persisted between calls except the process-wide current-price cache held
by the market data orchestrator.
"""

import logging
from collections.abc import Callable
from datetime import date

from carteira.config import settings
from carteira.services.portfolio.calculator import PortfolioCalculator
from carteira.services.portfolio.dashboard import DashboardAggregator
from carteira.services.portfolio.types import (
    AllocationNode,
    AssetPosition,
    CalculationCaches,
    EvolutionPoint,
    PortfolioDashboard,
    PortfolioSummary,
)
from carteira.services.protocols import TransactionStore
from carteira.services.constants import ZERO
from carteira.utils.context import correlation_scope
from carteira.utils.date_utils import evolution_dates

logger = logging.getLogger(__name__)


class PortfolioService:
    """
    Read-side facade over the calculator and the dashboard aggregation.

    Example:
        service = PortfolioService(transaction_repo, calculator)
        service.get_summary().total_heritage
        [p.to_dict() for p in service.get_evolution(12)]
    """

    def __init__(
            self,
            transaction_store: TransactionStore,
            calculator: PortfolioCalculator,
            today: Callable[[], date] = date.today,
    ) -> None:
        self._transactions = transaction_store
        self._calculator = calculator
        self._today = today

    def get_positions(self) -> list[AssetPosition]:
        """Current positions, transactional first, then fixed income."""
        return self._calculator.calculate_consolidated_portfolio(self._transactions.find_all())

    def get_summary(self) -> PortfolioSummary:
        return DashboardAggregator.calculate_summary(self.get_positions())

    def get_dashboard(self) -> PortfolioDashboard:
        positions = self.get_positions()
        return PortfolioDashboard(
            summary=DashboardAggregator.calculate_summary(positions),
            percentages=DashboardAggregator.calculate_percentages(positions),
            assets=DashboardAggregator.build_asset_hierarchy(positions),
        )

    def get_allocation(self) -> dict[str, AllocationNode]:
        return DashboardAggregator.build_allocation_tree(self.get_positions())

    def get_evolution(self, months: int | None = None) -> list[EvolutionPoint]:
        """
        Heritage and invested amount at each snapshot date.

        Snapshot dates are the first of each of the last ``months`` months
        plus today. Each snapshot only sees transactions dated on or before
        it. Lookup caches are shared across the snapshots of this run.
        """
        months = months if months is not None else settings.evolution_months
        if months < 1:
            return []

        with correlation_scope("evolution"):
            transactions = self._transactions.find_all()
            caches = CalculationCaches()
            points = []

            for snapshot_date in evolution_dates(self._today(), months):
                visible = [tx for tx in transactions if tx.transaction_date <= snapshot_date]
                positions = self._calculator.calculate_consolidated_portfolio(
                    visible,
                    calculation_date=snapshot_date,
                    caches=caches,
                )
                points.append(EvolutionPoint(
                    date=snapshot_date,
                    heritage=sum((p.current_value for p in positions), ZERO),
                    invested=sum((p.total_invested for p in positions), ZERO),
                    positions=positions,
                ))

            logger.info(f"Evolution series built: {len(points)} point(s) over {months} month(s)")
            return points
