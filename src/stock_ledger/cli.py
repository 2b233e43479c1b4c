"""Command-line entry points for the stock ledger.

The module wires argparse sub-commands to the business layer and renders the
text reports. Parsing, translation into domain records and formatting live
here; every rule about stock and totals lives in :mod:`stock_ledger.core_logic`.
The same parser configuration is reused by tests and by any front-end that
wants to drive the ledger.
"""

from __future__ import annotations

import argparse
from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Mapping, MutableMapping, Optional, Sequence, Tuple

from . import core_logic, data_manager, log, set_log_level
from .constants import EntityKind


# Marker stored in ``args.export`` when ``--export`` is given without a path.
USE_CONFIGURED_EXPORT = ""


@dataclass(frozen=True)
class CommandSpec:
    """Describe how a CLI sub-command is configured and executed."""

    name: str
    help_text: str
    register: Callable[[argparse._SubParsersAction[argparse.ArgumentParser]], argparse.ArgumentParser]
    execute: Callable[[core_logic.RuntimeContext, argparse.Namespace], int]


def build_parser() -> argparse.ArgumentParser:
    """Construct the top-level CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="stock-ledger",
        description="Command-line inventory ledger for products, sales and purchases.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Optional path to config.ini (searched upward from the working directory by default).",
    )
    return parser


def configure_subcommands(
    parser: argparse.ArgumentParser,
) -> Mapping[str, CommandSpec]:
    """Wire all CLI sub-commands onto the supplied parser."""
    subparsers = parser.add_subparsers(dest="command", required=True, title="commands")
    entity_specs = register_entity_commands(subparsers)
    transaction_specs = register_transaction_commands(subparsers)
    report_specs = register_report_commands(subparsers)
    return build_command_table(
        [*entity_specs.values(), *transaction_specs.values(), *report_specs.values()]
    )


def register_entity_commands(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> Dict[str, CommandSpec]:
    """Declare the catalog commands that take an entity kind (``add product``)."""
    specs = {
        "add": register_entity_command(subparsers, "add", "Add an entity to the catalog."),
        "edit": register_entity_command(subparsers, "edit", "Replace the fields of a catalog entity."),
        "delete": register_entity_command(subparsers, "delete", "Remove an entity from the catalog."),
        "display": register_entity_command(subparsers, "display", "Display catalog entities."),
    }
    for spec in specs.values():
        spec.register(subparsers)
    return specs


def register_transaction_commands(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> Dict[str, CommandSpec]:
    """Declare the stock-moving commands."""
    specs = {
        "sale": register_sale_command(subparsers),
        "purchase": register_purchase_command(subparsers),
    }
    for spec in specs.values():
        spec.register(subparsers)
    return specs


def register_report_commands(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> Dict[str, CommandSpec]:
    """Declare read-only report commands."""
    specs = {
        "inventory": register_report_command(
            subparsers, "inventory", "Display the inventory report.", run_inventory_report
        ),
        "sales": register_report_command(
            subparsers, "sales", "Display the sales report with total sales and profit.", run_sales_report
        ),
        "purchases": register_report_command(
            subparsers, "purchases", "Display the purchase report with total purchases.", run_purchase_report
        ),
    }
    for spec in specs.values():
        spec.register(subparsers)
    return specs


def register_entity_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
    name: str,
    help_text: str,
) -> CommandSpec:
    """Register ``name`` with one nested sub-parser per :class:`EntityKind`."""

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        entities = parser.add_subparsers(dest="entity", required=True, title="entities")
        for kind in EntityKind:
            ENTITY_ARGUMENTS[kind](entities, name)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_entity_command)


def register_product_arguments(
    entities: argparse._SubParsersAction[argparse.ArgumentParser],
    action: str,
) -> argparse.ArgumentParser:
    """Attach the ``product`` entity parser for the given catalog action."""
    parser = entities.add_parser(EntityKind.PRODUCT.value, help="Product catalog entry.")
    if action in ("add", "edit"):
        parser.add_argument("-n", "--name", required=True)
        parser.add_argument("-d", "--description", required=True)
        parser.add_argument("-p", "--price", required=True)
        parser.add_argument("-q", "--quantity", required=True)
    elif action == "delete":
        parser.add_argument("-n", "--name", required=True)
    else:
        parser.add_argument("-n", "--name", default=None, help="Show a single product instead of the whole catalog.")
    return parser


def register_sale_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``sale``."""
    name = "sale"
    help_text = "Record a sale and decrement stock."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("-n", "--name", dest="product_name", required=True)
        parser.add_argument("-q", "--quantity", required=True)
        parser.add_argument("-p", "--price", required=True)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_sale)


def register_purchase_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``purchase``."""
    name = "purchase"
    help_text = "Record a purchase and increment stock."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("-n", "--name", dest="product_name", required=True)
        parser.add_argument("-q", "--quantity", required=True)
        parser.add_argument("-p", "--price", required=True)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_purchase)


def register_report_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
    name: str,
    help_text: str,
    execute: Callable[[core_logic.RuntimeContext, argparse.Namespace], int],
) -> CommandSpec:
    """Register a report command that can also export the report workbook."""

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument(
            "--export",
            nargs="?",
            const=USE_CONFIGURED_EXPORT,
            default=None,
            metavar="PATH",
            help="Also write the report workbook (defaults to ExportFile from config.ini).",
        )
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=execute)


def load_runtime_context(
    config_path: Optional[Path] = None,
    inventory: Optional[core_logic.Inventory] = None,
) -> core_logic.RuntimeContext:
    """Resolve the runtime context for CLI operations."""
    context = core_logic.load_runtime_context(config_path, inventory=inventory)
    set_log_level(context.settings.log_level)
    return context


def dispatch_command(
    context: core_logic.RuntimeContext,
    args: argparse.Namespace,
    command_table: Mapping[str, CommandSpec],
) -> int:
    """Dispatch the parsed arguments to the configured executor."""
    if not hasattr(args, "command") or args.command is None:
        raise KeyError("No command specified")
    spec = command_table.get(args.command)
    if spec is None:
        raise KeyError(f"Unknown command: {args.command}")
    return spec.execute(context, args)


def build_command_table(
    specs: Iterable[CommandSpec],
) -> MutableMapping[str, CommandSpec]:
    """Build an index of command specifications keyed by command name."""
    table: Dict[str, CommandSpec] = {}
    for spec in specs:
        if spec.name in table:
            raise ValueError(f"Duplicate command name: {spec.name}")
        table[spec.name] = spec
    return table


def translate_product(args: argparse.Namespace) -> core_logic.Product:
    """Translate CLI args into a product record."""
    return core_logic.Product(
        name=args.name,
        description=args.description,
        price=Decimal(args.price),
        quantity=int(args.quantity),
    )


def translate_sale(args: argparse.Namespace) -> core_logic.Sale:
    """Translate CLI args into a sale record."""
    return core_logic.Sale(
        product_name=args.product_name,
        quantity_sold=int(args.quantity),
        sale_price=Decimal(args.price),
    )


def translate_purchase(args: argparse.Namespace) -> core_logic.Purchase:
    """Translate CLI args into a purchase record."""
    return core_logic.Purchase(
        product_name=args.product_name,
        quantity_purchased=int(args.quantity),
        purchase_price=Decimal(args.price),
    )


def format_money(amount: Decimal) -> str:
    return f"{amount:.2f}"


def format_product_line(product: core_logic.Product) -> str:
    return (
        f"Name: {product.name}, Description: {product.description}, "
        f"Price: {format_money(product.price)}, Quantity: {product.quantity}"
    )


def render_products(products: Iterable[core_logic.Product], *, title: str) -> List[str]:
    """Render a catalog snapshot under ``title``."""
    return [title, *(format_product_line(product) for product in products)]


def render_sales_report(
    sales: Iterable[core_logic.Sale],
    *,
    total_sales: Decimal,
    total_profit: Decimal,
) -> List[str]:
    """Render the sales log followed by total sales and total profit."""
    lines = ["Sales Report:"]
    for sale in sales:
        lines.append(
            f"Product: {sale.product_name}, Quantity Sold: {sale.quantity_sold}, "
            f"Sale Price: {format_money(sale.sale_price)}"
        )
    lines.append(f"Total Sales: {format_money(total_sales)}")
    lines.append(f"Total Profit: {format_money(total_profit)}")
    return lines


def render_purchase_report(
    purchases: Iterable[core_logic.Purchase],
    *,
    total_purchases: Decimal,
) -> List[str]:
    """Render the purchases log followed by total purchases."""
    lines = ["Purchase Report:"]
    for purchase in purchases:
        lines.append(
            f"Product: {purchase.product_name}, Quantity Purchased: {purchase.quantity_purchased}, "
            f"Purchase Price: {format_money(purchase.purchase_price)}"
        )
    lines.append(f"Total Purchases: {format_money(total_purchases)}")
    return lines


def emit(lines: Iterable[str]) -> None:
    for line in lines:
        print(line)


def run_add_product(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute ``add product``."""
    core_logic.add_product(context.inventory, translate_product(args))
    return 0


def run_edit_product(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute ``edit product``; unknown names are a silent no-op."""
    core_logic.edit_product(context.inventory, args.name, translate_product(args))
    return 0


def run_delete_product(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute ``delete product``; unknown names are a silent no-op."""
    core_logic.delete_product(context.inventory, args.name)
    return 0


def run_display_product(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute ``display product`` for the whole catalog or a single name."""
    if args.name is None:
        products = core_logic.list_products(context.inventory)
    else:
        products = [core_logic.get_product(context.inventory, args.name)]
    emit(render_products(products, title="Inventory:"))
    return 0


ENTITY_ARGUMENTS: Mapping[
    EntityKind,
    Callable[[argparse._SubParsersAction[argparse.ArgumentParser], str], argparse.ArgumentParser],
] = {
    EntityKind.PRODUCT: register_product_arguments,
}

ENTITY_EXECUTORS: Mapping[
    Tuple[str, EntityKind],
    Callable[[core_logic.RuntimeContext, argparse.Namespace], int],
] = {
    ("add", EntityKind.PRODUCT): run_add_product,
    ("edit", EntityKind.PRODUCT): run_edit_product,
    ("delete", EntityKind.PRODUCT): run_delete_product,
    ("display", EntityKind.PRODUCT): run_display_product,
}


def run_entity_command(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Route an entity command to the executor for its action and kind."""
    kind = EntityKind(args.entity)
    executor = ENTITY_EXECUTORS.get((args.command, kind))
    if executor is None:
        raise KeyError(f"Unsupported entity command: {args.command} {kind.value}")
    return executor(context, args)


def run_sale(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the sale workflow via the BLL."""
    core_logic.record_sale(context.inventory, translate_sale(args))
    return 0


def run_purchase(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the purchase workflow via the BLL."""
    core_logic.record_purchase(context.inventory, translate_purchase(args))
    return 0


def run_inventory_report(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Print the inventory report."""
    emit(render_products(core_logic.list_products(context.inventory), title="Inventory Report:"))
    export_if_requested(context, args)
    return 0


def run_sales_report(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Print the sales report with total sales and total profit."""
    inventory = context.inventory
    emit(
        render_sales_report(
            core_logic.list_sales(inventory),
            total_sales=core_logic.calculate_total_sales(inventory),
            total_profit=core_logic.calculate_total_profit(inventory),
        )
    )
    export_if_requested(context, args)
    return 0


def run_purchase_report(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Print the purchase report with total purchases."""
    inventory = context.inventory
    emit(
        render_purchase_report(
            core_logic.list_purchases(inventory),
            total_purchases=core_logic.calculate_total_purchases(inventory),
        )
    )
    export_if_requested(context, args)
    return 0


def resolve_export_path(context: core_logic.RuntimeContext, args: argparse.Namespace) -> Optional[Path]:
    """Return where ``--export`` should write, or ``None`` when not requested."""
    requested = getattr(args, "export", None)
    if requested is None:
        return None
    if requested == USE_CONFIGURED_EXPORT:
        return context.settings.export_file
    return Path(requested)


def export_reports(context: core_logic.RuntimeContext, destination: Path) -> Path:
    """Write every report of the current inventory to a workbook."""
    inventory = context.inventory
    workbook = data_manager.create_report_workbook(
        ledger_name=context.settings.ledger_name,
        products=core_logic.list_products(inventory),
        sales=core_logic.list_sales(inventory),
        purchases=core_logic.list_purchases(inventory),
        summary=core_logic.calculate_report_summary(inventory),
    )
    return data_manager.save_workbook(workbook, destination)


def export_if_requested(context: core_logic.RuntimeContext, args: argparse.Namespace) -> None:
    destination = resolve_export_path(context, args)
    if destination is None:
        return
    written = export_reports(context, destination)
    print(f"Report exported to: {written}")


def handle_cli_error(error: Exception) -> int:
    """Convert raised exceptions into user-facing messages and exit codes."""
    if isinstance(error, core_logic.BusinessRuleViolation):
        log.error("%s", error)
        print(f"Error: {error}")
        return 2
    if isinstance(error, FileNotFoundError):
        log.error("%s", error)
        return 3
    log.error("%s", error)
    return 1


def main(
    argv: Sequence[str] | None = None,
    *,
    inventory: Optional[core_logic.Inventory] = None,
) -> int:
    """CLI entry point that orchestrates parsing and execution.

    ``inventory`` lets a caller run several commands against one in-memory
    inventory; by default every invocation starts from an empty one.
    """
    parser = build_parser()
    command_table = configure_subcommands(parser)
    args = parser.parse_args(argv)
    try:
        context = load_runtime_context(getattr(args, "config", None), inventory)
        return dispatch_command(context, args, command_table)
    except Exception as error:  # pragma: no cover - centralised error handler tested separately
        return handle_cli_error(error)
