"""Data access layer for the stock ledger.

This module keeps every piece of file I/O out of the business logic:

1. Configuration handling: finding and parsing the optional ``config.ini``.
2. Report export: building an ``openpyxl`` workbook from the inventory
   snapshots and saving it to disk.

The exported workbook is an output artefact. The ledger never reads it back,
so state still lives only for the duration of one process.
"""


from __future__ import annotations

import configparser
import logging
from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path
from typing import TYPE_CHECKING, Iterable, Mapping, Optional, Sequence

from openpyxl.styles import Font
from openpyxl.workbook import Workbook
import openpyxl

from . import log
from .constants import SheetName

if TYPE_CHECKING:
    from .core_logic import Product, Purchase, Sale


CONFIG_FILE_NAME = "config.ini"
DEFAULT_LEDGER_NAME = "Stock Ledger"
DEFAULT_EXPORT_FILE = "ledger_report.xlsx"
DEFAULT_LOG_LEVEL = "INFO"

SHEET_COLUMNS: Mapping[str, Sequence[str]] = {
    SheetName.PRODUCTS.value: ["Name", "Description", "Price", "Quantity"],
    SheetName.SALES.value: ["ProductName", "QuantitySold", "SalePrice", "LineTotal"],
    SheetName.PURCHASES.value: ["ProductName", "QuantityPurchased", "PurchasePrice", "LineTotal"],
    SheetName.SUMMARY.value: ["Metric", "Value"],
}


@dataclass(frozen=True)
class LedgerSettings:
    """Typed representation of the ``config.ini`` settings we care about."""

    ledger_name: str
    export_file: Path
    log_level: str


def default_settings(base_path: Optional[Path] = None) -> LedgerSettings:
    """Return the settings used when no configuration file is present."""

    anchor = base_path if base_path is not None else Path.cwd()
    return LedgerSettings(
        ledger_name=DEFAULT_LEDGER_NAME,
        export_file=(anchor / DEFAULT_EXPORT_FILE).resolve(),
        log_level=DEFAULT_LOG_LEVEL,
    )


def find_config_file(explicit_path: Optional[Path] = None) -> Optional[Path]:
    """Locate the configuration file, if any.

    An explicit path is returned as-is so the caller can target a
    non-standard location; its existence is checked later by
    :func:`read_config`. Otherwise the search walks up from the current working
    directory toward the filesystem root looking for ``CONFIG_FILE_NAME``.

    Args:
        explicit_path (Path | None): Optional path to use instead of the
            upward search.

    Returns:
        Path | None: The explicit or discovered path, or ``None`` when no
            configuration file exists. The ledger runs on defaults in that
            case.
    """

    if explicit_path:
        return explicit_path

    current = Path.cwd()
    for p in (current, *current.parents):
        candidate = p / CONFIG_FILE_NAME
        if candidate.exists():
            return candidate

    log.debug("No %s found above '%s'; using defaults", CONFIG_FILE_NAME, current)
    return None


def read_config(config_path: Path) -> configparser.ConfigParser:
    """Load ``config.ini`` and return a populated ``ConfigParser`` instance.

    Args:
        config_path (Path): Path to the configuration file, relative or
            absolute. ``~`` is expanded.

    Returns:
        configparser.ConfigParser: Parser holding the raw configuration.

    Raises:
        FileNotFoundError: If ``config_path`` does not exist after expansion and
            resolution.
    """

    config_path = Path(config_path).expanduser().resolve()
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    parser = configparser.ConfigParser()
    parser.read(config_path, encoding="utf-8")
    return parser


def parse_settings(parser: configparser.ConfigParser, *, base_path: Optional[Path] = None) -> LedgerSettings:
    """Convert a ``ConfigParser`` into :class:`LedgerSettings`.

    Every option is optional and falls back to the module defaults. A relative
    ``ExportFile`` is anchored to ``base_path`` (normally the directory holding
    the configuration file), or to the current working directory.

    Args:
        parser (configparser.ConfigParser): Parsed configuration data.
        base_path (Path | None): Anchor for relative ``ExportFile`` entries.

    Returns:
        LedgerSettings: Immutable settings with a resolved export path.

    Raises:
        KeyError: If ``[Logging] Level`` names an unknown logging level.
    """

    ledger_name = parser.get("Ledger", "LedgerName", fallback=DEFAULT_LEDGER_NAME)
    export_raw = parser.get("Ledger", "ExportFile", fallback=DEFAULT_EXPORT_FILE)
    log_level = parser.get("Logging", "Level", fallback=DEFAULT_LOG_LEVEL).strip().upper()

    if not isinstance(logging.getLevelName(log_level), int):
        raise KeyError(f"Unknown logging level in configuration: {log_level}")

    export_path = Path(export_raw).expanduser()
    if not export_path.is_absolute():
        if base_path is None:
            base_path = Path.cwd()
        export_path = (base_path / export_path).resolve()

    return LedgerSettings(
        ledger_name=ledger_name,
        export_file=export_path,
        log_level=log_level,
    )


def load_settings(config_path: Optional[Path] = None) -> LedgerSettings:
    """Find, read and parse the configuration in one step.

    Raises:
        FileNotFoundError: If ``config_path`` is given but missing.
        KeyError: When a configured value is invalid.
    """

    located = find_config_file(config_path)
    if located is None:
        return default_settings()

    resolved = Path(located).expanduser().resolve()
    parser = read_config(resolved)
    settings = parse_settings(parser, base_path=resolved.parent)
    log.debug("Loaded settings from '%s'", resolved)
    return settings


def serialize_product(record: Product) -> list[object]:
    """Arrange a product as ``[Name, Description, Price, Quantity]``."""

    return [record.name, record.description, record.price, record.quantity]


def serialize_sale(record: Sale) -> list[object]:
    """Arrange a sale as ``[ProductName, QuantitySold, SalePrice, LineTotal]``."""

    return [
        record.product_name,
        record.quantity_sold,
        record.sale_price,
        record.quantity_sold * record.sale_price,
    ]


def serialize_purchase(record: Purchase) -> list[object]:
    """Arrange a purchase in the ``Purchases`` sheet column order."""

    return [
        record.product_name,
        record.quantity_purchased,
        record.purchase_price,
        record.quantity_purchased * record.purchase_price,
    ]


def create_report_workbook(
    *,
    ledger_name: str,
    products: Iterable[Product],
    sales: Iterable[Sale],
    purchases: Iterable[Purchase],
    summary: Mapping[str, Decimal],
    sheet_columns: Mapping[str, Sequence[str]] = SHEET_COLUMNS,
) -> Workbook:
    """Build an in-memory report workbook with one sheet per report.

    Each sheet receives a bold header row followed by one row per record. The
    ``Summary`` sheet lists the ledger name and every aggregate in ``summary``.

    Args:
        ledger_name (str): Display name written to the summary sheet.
        products (Iterable[Product]): Catalog snapshot.
        sales (Iterable[Sale]): Sales log snapshot in recording order.
        purchases (Iterable[Purchase]): Purchases log snapshot in recording
            order.
        summary (Mapping[str, Decimal]): Aggregates keyed by metric name.
        sheet_columns (Mapping[str, Sequence[str]]): Header layout, overridable
            for tests.

    Returns:
        Workbook: Unsaved ``openpyxl`` workbook.
    """

    workbook = openpyxl.Workbook()

    # Remove the default sheet openpyxl generates so we can create ours.
    if workbook.active and workbook.active.title == "Sheet":
        workbook.remove(workbook.active)

    bold_font = Font(bold=True)
    for sheet_name, columns in sheet_columns.items():
        worksheet = workbook.create_sheet(title=sheet_name)
        for column_index, column_name in enumerate(columns, start=1):
            cell = worksheet.cell(row=1, column=column_index)
            cell.value = column_name
            cell.font = bold_font

    for product in products:
        workbook[SheetName.PRODUCTS.value].append(serialize_product(product))
    for sale in sales:
        workbook[SheetName.SALES.value].append(serialize_sale(sale))
    for purchase in purchases:
        workbook[SheetName.PURCHASES.value].append(serialize_purchase(purchase))

    summary_sheet = workbook[SheetName.SUMMARY.value]
    summary_sheet.append(["ledger_name", ledger_name])
    for metric, value in summary.items():
        summary_sheet.append([metric, value])

    return workbook


def save_workbook(workbook: Workbook, destination: Path) -> Path:
    """Persist the workbook at ``destination``, creating parent directories.

    Args:
        workbook (Workbook): Workbook instance to save.
        destination (Path): Target file; ``~`` is expanded.

    Returns:
        Path: The resolved location that was written.
    """

    dest = Path(destination).expanduser().resolve()
    dest.parent.mkdir(parents=True, exist_ok=True)
    workbook.save(dest)
    log.info("Saved report workbook to '%s'", dest)
    return dest
