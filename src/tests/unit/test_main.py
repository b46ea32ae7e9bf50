"""Tests for vaultmirror.main module."""

import sys
from unittest.mock import MagicMock

import pytest

import vaultmirror.core.config as config
from vaultmirror.main import main


@pytest.fixture
def mock_cli_app(monkeypatch):
    """Provide a mocked CLI app module."""
    module = MagicMock()
    module.run_cli = MagicMock()
    monkeypatch.setitem(sys.modules, "vaultmirror.interfaces.cli.app", module)
    return module


@pytest.fixture
def mock_uvicorn(monkeypatch):
    """Provide a mocked uvicorn module."""
    module = MagicMock()
    module.run = MagicMock()
    monkeypatch.setitem(sys.modules, "uvicorn", module)
    return module


@pytest.fixture
def config_defaults(monkeypatch):
    """Set predictable API defaults for tests."""
    monkeypatch.setattr(config, "VAULTMIRROR_HOST", "127.0.0.1")
    monkeypatch.setattr(config, "VAULTMIRROR_PORT", 8430)


class TestMainEntryPoint:
    """Tests for the main entry point and interface selection."""

    @pytest.mark.parametrize(
        "argv,expected_host,expected_port",
        [
            (["vaultmirror"], "127.0.0.1", 8430),
            (["vaultmirror", "api"], "127.0.0.1", 8430),
            (["vaultmirror", "api", "--port", "9000"], "127.0.0.1", 9000),
            (["vaultmirror", "api", "--host", "0.0.0.0"], "0.0.0.0", 8430),
        ],
    )
    def test_main_api_starts_uvicorn(
        self,
        monkeypatch,
        mock_uvicorn,
        config_defaults,
        argv,
        expected_host,
        expected_port,
    ):
        """Main entry point starts uvicorn for the API interface."""
        monkeypatch.setattr(sys, "argv", argv)

        main()

        mock_uvicorn.run.assert_called_once()
        call_kwargs = mock_uvicorn.run.call_args.kwargs
        assert call_kwargs["host"] == expected_host
        assert call_kwargs["port"] == expected_port

    def test_main_cli_starts_cli(self, monkeypatch, mock_cli_app):
        """Main entry point starts the CLI with the remaining arguments."""
        monkeypatch.setattr(sys, "argv", ["vaultmirror", "cli", "sync", "--force"])

        main()

        mock_cli_app.run_cli.assert_called_once()
        assert sys.argv[1:] == ["sync", "--force"]
