# carteira/__init__.py
"""
Carteira: personal investment portfolio tracker.

Consolidates stock, ETF, crypto and fixed-income holdings across the
B3 and US markets into home-currency positions, using several market
data providers with fallback.
"""

__version__ = "0.1.0"
