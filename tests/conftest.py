"""Shared pytest fixtures and utilities for stock ledger tests."""

from __future__ import annotations

import argparse
import sys
import uuid
from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path
from typing import Callable, Iterator

import pytest

# Ensure source packages are importable without installation.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "src"

if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from stock_ledger import cli, core_logic, data_manager  # noqa: E402

_CONFIG_TEMPLATE = (
    "[Ledger]\n"
    "LedgerName = {ledger_name}\n"
    "ExportFile = {export_file}\n\n"
    "[Logging]\n"
    "Level = {log_level}\n"
)


@dataclass(frozen=True)
class ConfigBundle:
    """Container bundling together config metadata for tests."""

    directory: Path
    config_path: Path
    export_path: Path
    ledger_name: str


@pytest.fixture(scope="session", autouse=True)
def _restore_sys_path() -> Iterator[None]:
    """Ensure sys.path modifications are undone after the test session."""

    original = sys.path.copy()
    try:
        yield
    finally:
        sys.path[:] = original


@pytest.fixture(autouse=True)
def _isolate_working_directory(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Run each test from an empty directory so no stray config.ini is found."""

    workdir = tmp_path / "cwd"
    workdir.mkdir()
    monkeypatch.chdir(workdir)


@pytest.fixture
def inventory() -> core_logic.Inventory:
    """Return a fresh, empty inventory."""

    return core_logic.Inventory()


@pytest.fixture
def stocked_inventory() -> core_logic.Inventory:
    """Inventory holding five Widgets priced at 10.00."""

    inventory = core_logic.Inventory()
    core_logic.add_product(
        inventory,
        core_logic.Product(name="Widget", description="desc", price=Decimal("10.00"), quantity=5),
    )
    return inventory


@pytest.fixture
def config_factory(tmp_path: Path) -> Callable[..., ConfigBundle]:
    """Provide a callable that writes config.ini files on demand."""

    def _create_config(
        *,
        ledger_name: str = "Test Store",
        export_file: str = "reports/ledger.xlsx",
        log_level: str = "INFO",
    ) -> ConfigBundle:
        bundle_dir = tmp_path / f"bundle_{uuid.uuid4().hex}"
        bundle_dir.mkdir(parents=True, exist_ok=True)
        config_path = bundle_dir / "config.ini"
        config_path.write_text(
            _CONFIG_TEMPLATE.format(
                ledger_name=ledger_name,
                export_file=export_file,
                log_level=log_level,
            )
        )
        export_path = Path(export_file)
        if not export_path.is_absolute():
            export_path = (bundle_dir / export_path).resolve()
        return ConfigBundle(
            directory=bundle_dir,
            config_path=config_path,
            export_path=export_path,
            ledger_name=ledger_name,
        )

    return _create_config


@pytest.fixture
def config_file(config_factory: Callable[..., ConfigBundle]) -> Path:
    """Convenience fixture returning only the config path."""

    return config_factory().config_path


@pytest.fixture
def settings(tmp_path: Path) -> data_manager.LedgerSettings:
    """Provide default settings for runtime context tests."""

    return data_manager.LedgerSettings(
        ledger_name="Test Store",
        export_file=tmp_path / "ledger_report.xlsx",
        log_level="INFO",
    )


@pytest.fixture
def context(settings: data_manager.LedgerSettings, stocked_inventory: core_logic.Inventory) -> core_logic.RuntimeContext:
    """Assemble a runtime context around the stocked inventory."""

    return core_logic.RuntimeContext(settings=settings, inventory=stocked_inventory)


# ---------------------------------------------------------------------------
# CLI layer fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_parser() -> argparse.ArgumentParser:
    """Return a fresh CLI parser instance for tests."""

    return argparse.ArgumentParser(prog="stock-ledger", description="Stock ledger CLI")


@pytest.fixture
def subparsers_action(
    cli_parser: argparse.ArgumentParser,
) -> argparse._SubParsersAction[argparse.ArgumentParser]:
    """Return the subparser action used to register commands."""

    return cli_parser.add_subparsers(dest="command")


@pytest.fixture
def command_spec_iterable() -> list[cli.CommandSpec]:
    """Provide a list of command specs for indexing tests."""

    def _make_spec(name: str) -> cli.CommandSpec:
        return cli.CommandSpec(
            name,
            f"{name} help",
            lambda subparsers: subparsers.add_parser(name),
            lambda *_: 0,
        )

    return [_make_spec("alpha"), _make_spec("beta"), _make_spec("gamma")]
