"""Enumerations shared across the stock ledger modules.

Keeps the identifiers used by the business logic layer, the report export and
the command-line interface in one place.
"""

from __future__ import annotations

from enum import Enum


class EntityKind(str, Enum):
    """Enumerate the catalog entity kinds the entity commands operate on."""

    PRODUCT = "product"


class SheetName(str, Enum):
    """Enumerate the worksheet names written to the report workbook."""

    PRODUCTS = "Products"
    SALES = "Sales"
    PURCHASES = "Purchases"
    SUMMARY = "Summary"


class SummaryMetric(str, Enum):
    """Enumerate the aggregate figures shown in reports and exports."""

    TOTAL_SALES = "total_sales"
    TOTAL_PURCHASES = "total_purchases"
    COST_OF_SOLD_GOODS = "cost_of_sold_goods"
    TOTAL_PROFIT = "total_profit"


__all__ = [
    "EntityKind",
    "SheetName",
    "SummaryMetric",
]
