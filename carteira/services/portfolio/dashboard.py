# carteira/services/portfolio/dashboard.py
"""
Presentation aggregates over a list of positions.

- Summary: totals and overall profitability
- Percentages: share of value by asset family (stocks incl. ETFs, crypto,
  fixed income)
- Asset hierarchy: category -> subcategory -> rows, for the asset tables
- Allocation tree: category -> asset type -> ticker, for the allocation
  chart; every node's percentage is relative to its parent

Percentages are ratio (4 dp, half-up) * 100.
"""

from collections import OrderedDict
from decimal import Decimal, ROUND_HALF_UP

from carteira.models import AssetType, Market
from carteira.services.constants import RATIO_QUANTUM, ZERO, HUNDRED
from carteira.services.portfolio.types import (
    AllocationNode,
    AssetPosition,
    AssetSubCategory,
    AssetTableRow,
    PortfolioPercentages,
    PortfolioSummary,
)

# Display labels of the asset tables
CATEGORY_BRAZIL = "Brasil"
CATEGORY_USA = "EUA"
CATEGORY_CRYPTO = "Cripto"

SUBCATEGORY_NAMES: dict[AssetType, str] = {
    AssetType.STOCK: "Ações",
    AssetType.ETF: "ETFs",
    AssetType.CRYPTO: "Criptomoedas",
    AssetType.FIXED_INCOME: "Renda Fixa",
}

# Keys of the allocation tree
ALLOCATION_KEYS = {
    CATEGORY_BRAZIL: "brazil",
    CATEGORY_USA: "usa",
    CATEGORY_CRYPTO: "crypto",
}


def percentage_of(value: Decimal, total: Decimal) -> Decimal:
    if total <= 0:
        return ZERO
    return (value / total).quantize(RATIO_QUANTUM, rounding=ROUND_HALF_UP) * HUNDRED


def category_of(position: AssetPosition) -> str:
    """Fixed income -> Brasil, crypto -> Cripto, US market -> EUA, else Brasil."""
    if position.asset_type == AssetType.FIXED_INCOME:
        return CATEGORY_BRAZIL
    if position.asset_type == AssetType.CRYPTO:
        return CATEGORY_CRYPTO
    if position.market == Market.US:
        return CATEGORY_USA
    return CATEGORY_BRAZIL


def _total_value(positions: list[AssetPosition]) -> Decimal:
    return sum((p.current_value for p in positions), ZERO)


class DashboardAggregator:
    """Stateless aggregation helpers."""

    @staticmethod
    def calculate_summary(positions: list[AssetPosition]) -> PortfolioSummary:
        heritage = _total_value(positions)
        invested = sum((p.total_invested for p in positions), ZERO)
        profit = heritage - invested
        return PortfolioSummary(
            total_heritage=heritage,
            total_invested=invested,
            profit_or_loss=profit,
            profitability=percentage_of(profit, invested) if invested > 0 else ZERO,
        )

    @staticmethod
    def calculate_percentages(positions: list[AssetPosition]) -> PortfolioPercentages:
        total = _total_value(positions)
        stock = _total_value([p for p in positions if p.asset_type in (AssetType.STOCK, AssetType.ETF)])
        crypto = _total_value([p for p in positions if p.asset_type == AssetType.CRYPTO])
        fixed_income = _total_value([p for p in positions if p.asset_type == AssetType.FIXED_INCOME])
        return PortfolioPercentages(
            stock=percentage_of(stock, total),
            crypto=percentage_of(crypto, total),
            fixed_income=percentage_of(fixed_income, total),
        )

    @staticmethod
    def build_asset_hierarchy(positions: list[AssetPosition]) -> dict[str, list[AssetSubCategory]]:
        """
        Category -> subcategories (largest first) -> rows (largest first).

        Row percentages are relative to the whole portfolio.
        """
        total = _total_value(positions)
        grouped: OrderedDict[str, OrderedDict[str, list[AssetPosition]]] = OrderedDict(
            (name, OrderedDict()) for name in (CATEGORY_BRAZIL, CATEGORY_USA, CATEGORY_CRYPTO)
        )
        for position in positions:
            subcategory = SUBCATEGORY_NAMES.get(position.asset_type, position.asset_type.value)
            grouped[category_of(position)].setdefault(subcategory, []).append(position)

        hierarchy: dict[str, list[AssetSubCategory]] = {}
        for category, subcategories in grouped.items():
            if not subcategories:
                continue
            entries = []
            for name, members in subcategories.items():
                rows = [
                    AssetTableRow(position=p, portfolio_percentage=percentage_of(p.current_value, total))
                    for p in sorted(members, key=lambda p: p.current_value, reverse=True)
                ]
                entries.append(AssetSubCategory(name=name, total_value=_total_value(members), rows=rows))
            entries.sort(key=lambda s: s.total_value, reverse=True)
            hierarchy[category] = entries
        return hierarchy

    @staticmethod
    def build_allocation_tree(positions: list[AssetPosition]) -> dict[str, AllocationNode]:
        """
        brazil/usa/crypto -> children. Empty when the portfolio total is <= 0.

        Crypto children are tickers; other categories have asset-type
        children (lowercase type name) whose children are tickers.
        """
        total = _total_value(positions)
        if total <= 0:
            return {}

        by_category: OrderedDict[str, list[AssetPosition]] = OrderedDict()
        for position in positions:
            by_category.setdefault(ALLOCATION_KEYS[category_of(position)], []).append(position)

        tree = {}
        for key, members in by_category.items():
            category_total = _total_value(members)
            if key == "crypto":
                children = _ticker_nodes(members, category_total)
            else:
                children = _asset_type_nodes(members, category_total)
            tree[key] = AllocationNode(
                key=key,
                value=category_total,
                percentage=percentage_of(category_total, total),
                children=children,
            )
        return tree


def _ticker_nodes(positions: list[AssetPosition], parent_total: Decimal) -> dict[str, AllocationNode]:
    values: OrderedDict[str, Decimal] = OrderedDict()
    for position in positions:
        values[position.ticker] = values.get(position.ticker, ZERO) + position.current_value
    return {
        ticker: AllocationNode(key=ticker, value=value, percentage=percentage_of(value, parent_total))
        for ticker, value in values.items()
    }


def _asset_type_nodes(positions: list[AssetPosition], parent_total: Decimal) -> dict[str, AllocationNode]:
    by_type: OrderedDict[str, list[AssetPosition]] = OrderedDict()
    for position in positions:
        by_type.setdefault(position.asset_type.value.lower(), []).append(position)

    nodes = {}
    for type_key, members in by_type.items():
        type_total = _total_value(members)
        nodes[type_key] = AllocationNode(
            key=type_key,
            value=type_total,
            percentage=percentage_of(type_total, parent_total),
            children=_ticker_nodes(members, type_total),
        )
    return nodes
