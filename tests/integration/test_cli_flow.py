import json
from unittest.mock import MagicMock

import pytest
from typer.testing import CliRunner

from shipscli import main
from shipscli.core.command_handler import CommandHandler
from shipscli.core.exceptions import InsufficientCreditsError
from shipscli.core.services.tracking_service import ShipmentTrackingService
from shipscli.domain.models.shipment import ListOptions
from shipscli.infrastructure.cache.caching_service import CachingServiceImpl
from shipscli.main import app

# These fixtures are defined in tests/conftest.py:
# runner: CliRunner
# isolated_config: Sets a dummy SHIPSGO_API_KEY


@pytest.fixture
def mock_handler(mocker):
    """Replaces the wired-up CommandHandler; nothing touches the network."""
    handler = MagicMock(spec=CommandHandler)
    mocker.patch("shipscli.main.get_handler", return_value=handler)
    return handler


@pytest.fixture
def mock_ui(mocker):
    ui = MagicMock()
    mocker.patch.dict(main._dependencies, {"ui": ui}, clear=True)
    return ui


def test_help_lists_commands(runner: CliRunner):
    result = runner.invoke(app, ["--help"])

    assert result.exit_code == 0
    for command in ("create-shipment", "track-container", "arriving-soon", "get-sharing-link", "cache-stats"):
        assert command in result.stdout


def test_create_shipment_flow(runner: CliRunner, mock_handler: MagicMock, mock_ui: MagicMock):
    result = runner.invoke(app, ["create-shipment", "--container", "MSCU1234567", "--reference", "SO-1"])

    assert result.exit_code == 0, result.stdout
    mock_handler.handle_create_shipment.assert_called_once_with(
        bl_number=None, container_number="MSCU1234567", booking_number=None, reference="SO-1",
    )


def test_list_shipments_builds_options(runner: CliRunner, mock_handler: MagicMock, mock_ui: MagicMock):
    result = runner.invoke(app, ["list-shipments", "--status", "en_route", "--limit", "5", "--order", "desc"])

    assert result.exit_code == 0, result.stdout
    mock_handler.handle_list_shipments.assert_called_once_with(
        ListOptions(status="EN_ROUTE", limit=5, order="desc")
    )


def test_arriving_soon_days_are_bounded(runner: CliRunner, mock_handler: MagicMock):
    result = runner.invoke(app, ["arriving-soon", "--days", "400"])

    assert result.exit_code != 0
    mock_handler.handle_arriving_soon.assert_not_called()


def test_arriving_soon_default_window(runner: CliRunner, mock_handler: MagicMock, mock_ui: MagicMock):
    result = runner.invoke(app, ["arriving-soon"])

    assert result.exit_code == 0, result.stdout
    mock_handler.handle_arriving_soon.assert_called_once_with(7)


def test_service_error_exits_with_code_1(runner: CliRunner, mock_handler: MagicMock, mock_ui: MagicMock):
    mock_handler.handle_create_shipment.side_effect = InsufficientCreditsError("No credits left")

    result = runner.invoke(app, ["create-shipment", "--bl", "MAEU123456789"])

    assert result.exit_code == 1
    mock_ui.display_error.assert_called_once_with("No credits left")


def test_sync_commands(runner: CliRunner, mock_handler: MagicMock):
    assert runner.invoke(app, ["rate-limit"]).exit_code == 0
    assert runner.invoke(app, ["cache-stats"]).exit_code == 0

    mock_handler.handle_rate_limit.assert_called_once()
    mock_handler.handle_cache_stats.assert_called_once()


@pytest.mark.parametrize("command", [["rate-limit"], ["cache-stats"], ["cache-clear"]])
def test_commands_release_client_and_cache(runner: CliRunner, mock_handler: MagicMock, mocker, command):
    tracking_service = MagicMock(spec=ShipmentTrackingService)
    cache_service = MagicMock(spec=CachingServiceImpl)
    mocker.patch.dict(main._dependencies, {
        "ui": MagicMock(), "tracking_service": tracking_service, "cache_service": cache_service,
    }, clear=True)

    result = runner.invoke(app, command)

    assert result.exit_code == 0, result.stdout
    tracking_service.aclose.assert_awaited_once()
    cache_service.close.assert_called_once()


def test_track_container_end_to_end(runner: CliRunner, mocker, tracking_service, backend):
    """Real handler and service against the scripted backend, output captured as JSON."""
    backend.add("GET", "/ocean/shipments", params={"container_number": "MSCU1234567"}, json_body={
        "shipments": [{"id": "9", "status": "InProgress", "container_number": "MSCU1234567"}],
    })
    ui = MagicMock()
    handler = CommandHandler(tracking_service=tracking_service, ui=ui)
    mocker.patch("shipscli.main.get_handler", return_value=handler)
    mocker.patch.dict(main._dependencies, {"ui": ui, "tracking_service": tracking_service}, clear=True)

    result = runner.invoke(app, ["track-container", "mscu1234567"])

    assert result.exit_code == 0, result.stdout
    shown = ui.display_result.call_args.args[0]
    assert json.loads(json.dumps(shown))["status"] == "EN_ROUTE"
    assert shown["id"] == "9"
