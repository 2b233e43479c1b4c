"""Unit tests describing the CLI presentation layer contract."""

from __future__ import annotations

import argparse
import logging
from decimal import Decimal

import openpyxl
import pytest

from stock_ledger import cli, constants, core_logic, log, set_log_level


ENTITY_COMMANDS = {"add", "edit", "delete", "display"}
TRANSACTION_COMMANDS = {"sale", "purchase"}
REPORT_COMMANDS = {"inventory", "sales", "purchases"}


def _parse(argv: list[str]) -> argparse.Namespace:
    parser = cli.build_parser()
    cli.configure_subcommands(parser)
    return parser.parse_args(argv)


# ---------------------------------------------------------------------------
# Parser construction
# ---------------------------------------------------------------------------


def test_build_parser_sets_program_metadata():
    parser = cli.build_parser()
    assert isinstance(parser, argparse.ArgumentParser)
    assert parser.prog == "stock-ledger"
    assert "ledger" in (parser.description or "")


def test_configure_subcommands_registers_every_command(cli_parser):
    command_table = cli.configure_subcommands(cli_parser)

    assert set(command_table) == ENTITY_COMMANDS | TRANSACTION_COMMANDS | REPORT_COMMANDS
    for spec in command_table.values():
        assert isinstance(spec, cli.CommandSpec)
        assert spec.help_text


def test_register_entity_commands_accept_every_entity_kind(subparsers_action):
    specs = cli.register_entity_commands(subparsers_action)

    assert set(specs) == ENTITY_COMMANDS
    for name in ENTITY_COMMANDS:
        entity_parser = subparsers_action.choices[name]
        nested = next(
            action for action in entity_parser._actions if isinstance(action, argparse._SubParsersAction)
        )
        assert set(nested.choices) == {kind.value for kind in constants.EntityKind}


def test_add_product_arguments_support_short_flags():
    namespace = _parse(["add", "product", "-n", "Widget", "-d", "desc", "-p", "10.00", "-q", "5"])

    assert namespace.command == "add"
    assert namespace.entity == "product"
    assert namespace.name == "Widget"
    assert namespace.description == "desc"
    assert namespace.price == "10.00"
    assert namespace.quantity == "5"


def test_edit_product_requires_all_fields():
    with pytest.raises(SystemExit):
        _parse(["edit", "product", "--name", "Widget"])


def test_delete_product_only_needs_name():
    namespace = _parse(["delete", "product", "--name", "Widget"])
    assert namespace.name == "Widget"


def test_display_product_name_is_optional():
    assert _parse(["display", "product"]).name is None
    assert _parse(["display", "product", "-n", "Widget"]).name == "Widget"


def test_sale_arguments_map_to_product_name():
    namespace = _parse(["sale", "--name", "Widget", "--quantity", "3", "--price", "12.00"])

    assert namespace.command == "sale"
    assert namespace.product_name == "Widget"
    assert namespace.quantity == "3"
    assert namespace.price == "12.00"


def test_report_export_flag_variants():
    assert _parse(["inventory"]).export is None
    assert _parse(["sales", "--export"]).export == cli.USE_CONFIGURED_EXPORT
    assert _parse(["purchases", "--export", "out.xlsx"]).export == "out.xlsx"


# ---------------------------------------------------------------------------
# Dispatch and command table
# ---------------------------------------------------------------------------


def test_build_command_table_indexes_by_name(command_spec_iterable):
    table = cli.build_command_table(command_spec_iterable)
    assert list(table) == ["alpha", "beta", "gamma"]


def test_build_command_table_rejects_duplicates(command_spec_iterable):
    with pytest.raises(ValueError):
        cli.build_command_table([*command_spec_iterable, command_spec_iterable[0]])


def test_dispatch_command_rejects_unknown_command(context, command_spec_iterable):
    table = cli.build_command_table(command_spec_iterable)
    with pytest.raises(KeyError):
        cli.dispatch_command(context, argparse.Namespace(command="omega"), table)


def test_run_entity_command_rejects_unknown_action(context):
    args = argparse.Namespace(command="archive", entity="product")
    with pytest.raises(KeyError):
        cli.run_entity_command(context, args)


# ---------------------------------------------------------------------------
# Translation and rendering
# ---------------------------------------------------------------------------


def test_translate_product_converts_numbers():
    args = argparse.Namespace(name="Widget", description="desc", price="10.00", quantity="5")

    product = cli.translate_product(args)

    assert product == core_logic.Product("Widget", "desc", Decimal("10.00"), 5)


def test_translate_sale_and_purchase():
    args = argparse.Namespace(product_name="Widget", quantity="3", price="12.00")

    assert cli.translate_sale(args) == core_logic.Sale("Widget", 3, Decimal("12.00"))
    assert cli.translate_purchase(args) == core_logic.Purchase("Widget", 3, Decimal("12.00"))


def test_translate_rejects_non_numeric_quantity():
    args = argparse.Namespace(product_name="Widget", quantity="three", price="12.00")
    with pytest.raises(ValueError):
        cli.translate_sale(args)


def test_render_products_uses_two_decimal_prices():
    lines = cli.render_products(
        [core_logic.Product("Widget", "desc", Decimal("10"), 2)],
        title="Inventory Report:",
    )
    assert lines == [
        "Inventory Report:",
        "Name: Widget, Description: desc, Price: 10.00, Quantity: 2",
    ]


def test_render_sales_report_appends_totals():
    lines = cli.render_sales_report(
        [core_logic.Sale("Widget", 3, Decimal("12"))],
        total_sales=Decimal("36"),
        total_profit=Decimal("6"),
    )
    assert lines == [
        "Sales Report:",
        "Product: Widget, Quantity Sold: 3, Sale Price: 12.00",
        "Total Sales: 36.00",
        "Total Profit: 6.00",
    ]


def test_render_purchase_report_appends_total():
    lines = cli.render_purchase_report(
        [core_logic.Purchase("Widget", 5, Decimal("2"))],
        total_purchases=Decimal("10"),
    )
    assert lines == [
        "Purchase Report:",
        "Product: Widget, Quantity Purchased: 5, Purchase Price: 2.00",
        "Total Purchases: 10.00",
    ]


# ---------------------------------------------------------------------------
# Error handling
# ---------------------------------------------------------------------------


def test_handle_cli_error_maps_business_rules_to_exit_code_2(capsys):
    code = cli.handle_cli_error(core_logic.ProductNotFound("Gadget"))

    assert code == 2
    assert capsys.readouterr().out.startswith("Error: Product not found")


def test_handle_cli_error_maps_missing_files_to_exit_code_3():
    assert cli.handle_cli_error(FileNotFoundError("config.ini")) == 3


def test_handle_cli_error_defaults_to_exit_code_1():
    assert cli.handle_cli_error(ValueError("bad quantity")) == 1


# ---------------------------------------------------------------------------
# main()
# ---------------------------------------------------------------------------


def test_main_starts_from_empty_inventory(capsys):
    """Each invocation without an injected inventory sees an empty catalog."""

    assert cli.main(["add", "product", "-n", "Widget", "-d", "desc", "-p", "10", "-q", "5"]) == 0
    assert cli.main(["inventory"]) == 0

    assert capsys.readouterr().out.strip() == "Inventory Report:"


def test_main_sale_on_unknown_product_returns_2(capsys):
    code = cli.main(["sale", "-n", "Widget", "-q", "1", "-p", "1.00"])

    assert code == 2
    assert "Error: Product not found in inventory: Widget" in capsys.readouterr().out


def test_main_reports_insufficient_stock(stocked_inventory, capsys):
    code = cli.main(["sale", "-n", "Widget", "-q", "10", "-p", "12.00"], inventory=stocked_inventory)

    assert code == 2
    assert "Insufficient stock" in capsys.readouterr().out
    assert stocked_inventory.products["Widget"].quantity == 5
    assert stocked_inventory.sales == []


def test_main_invalid_number_returns_1(stocked_inventory):
    code = cli.main(["purchase", "-n", "Widget", "-q", "-3", "-p", "1.00"], inventory=stocked_inventory)

    assert code == 1
    assert stocked_inventory.purchases == []


def test_main_missing_explicit_config_returns_3(tmp_path):
    assert cli.main(["--config", str(tmp_path / "missing.ini"), "inventory"]) == 3


def test_main_display_single_product(stocked_inventory, capsys):
    assert cli.main(["display", "product", "--name", "Widget"], inventory=stocked_inventory) == 0

    assert capsys.readouterr().out.splitlines() == [
        "Inventory:",
        "Name: Widget, Description: desc, Price: 10.00, Quantity: 5",
    ]


def test_main_display_unknown_product_returns_2(stocked_inventory):
    assert cli.main(["display", "product", "--name", "Gadget"], inventory=stocked_inventory) == 2


def test_main_export_writes_configured_workbook(config_factory, stocked_inventory, capsys):
    bundle = config_factory(ledger_name="Corner Shop")

    code = cli.main(["--config", str(bundle.config_path), "sales", "--export"], inventory=stocked_inventory)

    assert code == 0
    assert bundle.export_path.exists()
    assert f"Report exported to: {bundle.export_path}" in capsys.readouterr().out
    workbook = openpyxl.load_workbook(bundle.export_path)
    summary = {row[0]: row[1] for row in workbook["Summary"].iter_rows(min_row=2, values_only=True)}
    assert summary["ledger_name"] == "Corner Shop"
    assert summary["total_sales"] == 0


def test_main_export_to_explicit_path(tmp_path, stocked_inventory):
    destination = tmp_path / "explicit.xlsx"

    assert cli.main(["inventory", "--export", str(destination)], inventory=stocked_inventory) == 0

    workbook = openpyxl.load_workbook(destination)
    rows = list(workbook["Products"].iter_rows(min_row=2, values_only=True))
    assert rows == [("Widget", "desc", 10, 5)]


def test_main_applies_configured_log_level(config_factory, stocked_inventory):
    bundle = config_factory(log_level="debug")

    try:
        assert cli.main(["--config", str(bundle.config_path), "inventory"], inventory=stocked_inventory) == 0
        assert log.level == logging.DEBUG
    finally:
        set_log_level("INFO")
