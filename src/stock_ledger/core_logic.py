"""Business logic layer for the stock ledger.

This module owns the ``Inventory`` aggregate: the product catalog plus the
append-only sales and purchases logs. Every mutation goes through the
operations defined here so the stock invariants hold, and the aggregation
helpers derive report figures from the same state. Presentation and file I/O
live in :mod:`stock_ledger.cli` and :mod:`stock_ledger.data_manager`.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from decimal import Decimal
from pathlib import Path
from typing import Dict, List, Optional

from . import data_manager, log
from .constants import SummaryMetric


ZERO = Decimal("0")


class BusinessRuleViolation(Exception):
    """Raised when a requested operation violates a domain constraint."""


class MissingReferenceError(BusinessRuleViolation):
    """Raised when an operation references an entity that does not exist."""


class ProductNotFound(MissingReferenceError):
    """Raised when a product name has no entry in the catalog."""

    def __init__(self, product_name: str) -> None:
        super().__init__(f"Product not found in inventory: {product_name}")
        self.product_name = product_name


class InsufficientStock(BusinessRuleViolation):
    """Raised when a sale requests more units than are currently on hand."""

    def __init__(self, product_name: str, *, requested: int, available: int) -> None:
        super().__init__(
            f"Insufficient stock for sale of '{product_name}': "
            f"requested {requested}, available {available}"
        )
        self.product_name = product_name
        self.requested = requested
        self.available = available


@dataclass
class Product:
    """Catalog entry; ``quantity`` is the current stock."""

    name: str
    description: str
    price: Decimal
    quantity: int


@dataclass(frozen=True)
class Sale:
    """Immutable record of units sold at a per-unit revenue."""

    product_name: str
    quantity_sold: int
    sale_price: Decimal


@dataclass(frozen=True)
class Purchase:
    """Immutable record of units bought at a per-unit cost."""

    product_name: str
    quantity_purchased: int
    purchase_price: Decimal


@dataclass
class Inventory:
    """Aggregate root holding the catalog and both transaction logs.

    Instances start empty and are mutated in place by the operations of this
    module. The logs are append-only: entries are never edited or removed,
    even when the product they reference leaves the catalog.
    """

    products: Dict[str, Product] = field(default_factory=dict)
    sales: List[Sale] = field(default_factory=list)
    purchases: List[Purchase] = field(default_factory=list)


@dataclass(frozen=True)
class RuntimeContext:
    """Settings and inventory used while executing a single command."""

    settings: data_manager.LedgerSettings
    inventory: Inventory


def load_runtime_context(
    config_path: Optional[Path] = None,
    *,
    inventory: Optional[Inventory] = None,
) -> RuntimeContext:
    """Resolve settings and pair them with an inventory for one command.

    Args:
        config_path (Path | None): Optional explicit ``config.ini`` location.
            When omitted the data layer searches upward from the current
            working directory and falls back to defaults.
        inventory (Inventory | None): Inventory to operate on. A fresh, empty
            instance is created when ``None``.

    Returns:
        RuntimeContext: Context ready for the CLI executors.

    Raises:
        FileNotFoundError: If an explicit configuration path does not exist.
        KeyError: When the configuration carries an invalid value.
    """
    settings = data_manager.load_settings(config_path)
    if inventory is None:
        inventory = Inventory()
    log.debug("Loaded runtime context for ledger '%s'", settings.ledger_name)
    return RuntimeContext(settings=settings, inventory=inventory)


def require_nonnegative_quantity(quantity: int) -> None:
    """Validate that a quantity is a whole number of zero or more units.

    Args:
        quantity (int): Units to validate.

    Raises:
        ValueError: If ``quantity`` is not an integer or is negative.
    """
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        log.error("Quantity validation failed: %r", quantity)
        raise ValueError("Quantity must be a whole number")
    if quantity < 0:
        log.error("Quantity validation failed: %s", quantity)
        raise ValueError("Quantity must be zero or positive")


def require_nonnegative_money(amount: Decimal) -> None:
    """Validate that a monetary amount is finite and not negative.

    Args:
        amount (Decimal): Price to validate.

    Raises:
        ValueError: If ``amount`` is not a ``Decimal`` (or whole number), is
            negative or is not finite.
    """
    if isinstance(amount, bool) or not isinstance(amount, (Decimal, int)):
        log.error("Monetary value validation failed: %r", amount)
        raise ValueError("Amount must be a Decimal")
    if not Decimal(amount).is_finite() or amount < 0:
        log.error("Monetary value validation failed: %s", amount)
        raise ValueError("Amount must be zero or positive")


def _validate_product(product: Product) -> None:
    require_nonnegative_money(product.price)
    require_nonnegative_quantity(product.quantity)


def add_product(inventory: Inventory, product: Product) -> Product:
    """Insert ``product`` into the catalog, replacing any entry with its name.

    The catalog keeps its own copy, so later changes to the caller's object do
    not leak into the inventory. Overwriting is not an error: the last write
    wins.

    Args:
        inventory (Inventory): Aggregate whose catalog is modified.
        product (Product): Product to store under ``product.name``.

    Returns:
        Product: The stored catalog entry.

    Raises:
        ValueError: If the price or quantity is negative.
    """
    _validate_product(product)
    stored = replace(product)
    replaced = product.name in inventory.products
    inventory.products[product.name] = stored
    log.info(
        "%s product '%s' (price=%s, quantity=%s)",
        "Replaced" if replaced else "Added",
        product.name,
        product.price,
        product.quantity,
    )
    return stored


def edit_product(inventory: Inventory, name: str, updated: Product) -> Optional[Product]:
    """Replace every field of the product stored under ``name``.

    The entry stays keyed by ``name`` even when ``updated.name`` differs, so an
    edit cannot move a product to another key. Editing a name that is not in
    the catalog does nothing.

    Args:
        inventory (Inventory): Aggregate whose catalog is modified.
        name (str): Catalog key of the product to edit.
        updated (Product): Source of the replacement field values.

    Returns:
        Product | None: The edited entry, or ``None`` when ``name`` is unknown.

    Raises:
        ValueError: If the replacement price or quantity is invalid. Unknown
            names are ignored before any validation.
    """
    if name not in inventory.products:
        log.warning("Edit ignored: product '%s' is not in the catalog", name)
        return None

    _validate_product(updated)

    stored = replace(updated)
    inventory.products[name] = stored
    log.info(
        "Edited product '%s' (price=%s, quantity=%s)",
        name,
        stored.price,
        stored.quantity,
    )
    return stored


def delete_product(inventory: Inventory, name: str) -> Optional[Product]:
    """Remove ``name`` from the catalog; unknown names are ignored.

    Recorded sales and purchases that reference the product are kept.
    """
    removed = inventory.products.pop(name, None)
    if removed is None:
        log.warning("Delete ignored: product '%s' is not in the catalog", name)
    else:
        log.info("Deleted product '%s'", name)
    return removed


def get_product(inventory: Inventory, name: str) -> Product:
    """Resolve a catalog entry by name.

    Args:
        inventory (Inventory): Aggregate holding the catalog.
        name (str): Product name used as the catalog key.

    Returns:
        Product: The live catalog entry.

    Raises:
        ProductNotFound: If ``name`` is absent from the catalog.
    """
    try:
        return inventory.products[name]
    except KeyError as exc:
        log.warning("Product lookup failed for name '%s'", name)
        raise ProductNotFound(name) from exc


def list_products(inventory: Inventory) -> List[Product]:
    """Return copies of the catalog entries; callers cannot mutate stock."""
    return [replace(product) for product in inventory.products.values()]


def list_sales(inventory: Inventory) -> List[Sale]:
    """Return the sales log in recording order."""
    return list(inventory.sales)


def list_purchases(inventory: Inventory) -> List[Purchase]:
    """Return the purchases log in recording order."""
    return list(inventory.purchases)


def record_sale(inventory: Inventory, sale: Sale) -> Sale:
    """Decrement stock and append ``sale`` to the sales log.

    All checks run before any state changes, so a rejected sale leaves both
    the catalog and the log untouched. A sale of zero units is accepted and
    logged.

    Args:
        inventory (Inventory): Aggregate to mutate.
        sale (Sale): Sale to record.

    Returns:
        Sale: The recorded sale.

    Raises:
        ProductNotFound: If ``sale.product_name`` is not in the catalog.
        InsufficientStock: If fewer units are on hand than requested.
        ValueError: When the quantity or price is negative.
    """
    require_nonnegative_quantity(sale.quantity_sold)
    require_nonnegative_money(sale.sale_price)
    product = get_product(inventory, sale.product_name)
    if product.quantity < sale.quantity_sold:
        log.warning(
            "Rejected sale of %s x '%s': only %s on hand",
            sale.quantity_sold,
            sale.product_name,
            product.quantity,
        )
        raise InsufficientStock(
            sale.product_name,
            requested=sale.quantity_sold,
            available=product.quantity,
        )

    product.quantity -= sale.quantity_sold
    inventory.sales.append(sale)
    log.info(
        "Recorded sale of %s x '%s' at %s (remaining=%s)",
        sale.quantity_sold,
        sale.product_name,
        sale.sale_price,
        product.quantity,
    )
    return sale


def record_purchase(inventory: Inventory, purchase: Purchase) -> Purchase:
    """Increment stock and append ``purchase`` to the purchases log.

    Args:
        inventory (Inventory): Aggregate to mutate.
        purchase (Purchase): Purchase to record.

    Returns:
        Purchase: The recorded purchase.

    Raises:
        ProductNotFound: If ``purchase.product_name`` is not in the catalog.
        ValueError: When the quantity or price is negative.
    """
    require_nonnegative_quantity(purchase.quantity_purchased)
    require_nonnegative_money(purchase.purchase_price)
    product = get_product(inventory, purchase.product_name)

    product.quantity += purchase.quantity_purchased
    inventory.purchases.append(purchase)
    log.info(
        "Recorded purchase of %s x '%s' at %s (on hand=%s)",
        purchase.quantity_purchased,
        purchase.product_name,
        purchase.purchase_price,
        product.quantity,
    )
    return purchase


def calculate_total_sales(inventory: Inventory) -> Decimal:
    """Sum ``quantity_sold * sale_price`` over the whole sales log."""
    return sum((sale.quantity_sold * sale.sale_price for sale in inventory.sales), ZERO)


def calculate_total_purchases(inventory: Inventory) -> Decimal:
    """Sum ``quantity_purchased * purchase_price`` over the purchases log."""
    return sum(
        (purchase.quantity_purchased * purchase.purchase_price for purchase in inventory.purchases),
        ZERO,
    )


def calculate_cost_of_sold_goods(inventory: Inventory) -> Decimal:
    """Price every recorded sale at the product's current catalog price.

    The catalog is read at call time, not at sale time: editing a product's
    price changes this figure for sales already recorded. Sales whose product
    has been deleted contribute nothing.

    Args:
        inventory (Inventory): Aggregate providing the sales log and catalog.

    Returns:
        Decimal: Cost side of :func:`calculate_total_profit`.
    """
    total = ZERO
    for sale in inventory.sales:
        product = inventory.products.get(sale.product_name)
        if product is None:
            log.debug("Skipping cost of sale for deleted product '%s'", sale.product_name)
            continue
        total += sale.quantity_sold * product.price
    return total


def calculate_total_profit(inventory: Inventory) -> Decimal:
    """Return total sales minus the cost of sold goods at current prices.

    Profit is not a stable historical figure; see
    :func:`calculate_cost_of_sold_goods`.
    """
    return calculate_total_sales(inventory) - calculate_cost_of_sold_goods(inventory)


def calculate_report_summary(inventory: Inventory) -> Dict[str, Decimal]:
    """Bundle every aggregate into a dictionary keyed by :class:`SummaryMetric`.

    Args:
        inventory (Inventory): Aggregate to summarise.

    Returns:
        dict[str, Decimal]: ``total_sales``, ``total_purchases``,
            ``cost_of_sold_goods`` and ``total_profit``.
    """
    total_sales = calculate_total_sales(inventory)
    cost_of_sold_goods = calculate_cost_of_sold_goods(inventory)
    summary = {
        SummaryMetric.TOTAL_SALES.value: total_sales,
        SummaryMetric.TOTAL_PURCHASES.value: calculate_total_purchases(inventory),
        SummaryMetric.COST_OF_SOLD_GOODS.value: cost_of_sold_goods,
        SummaryMetric.TOTAL_PROFIT.value: total_sales - cost_of_sold_goods,
    }
    log.debug("Computed report summary: %s", summary)
    return summary
