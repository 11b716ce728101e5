"""Tests for the command line entry point."""

from __future__ import annotations

import asyncio
import logging
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from netpinger import main as main_module
from netpinger.probe.transport import TransportClosedError, TransportError


@pytest.fixture
def restore_root_logger():
    handlers = logging.root.handlers[:]
    level = logging.root.level
    yield
    logging.root.handlers = handlers
    logging.root.setLevel(level)


class TestLoadSettings:
    """Command line merged into Settings."""

    def test_positional_targets(self):
        settings = main_module.load_settings(["10.0.0.1", "10.0.0.2"])
        assert settings.target_list == ["10.0.0.1", "10.0.0.2"]
        assert settings.log_level == "INFO"

    def test_all_options(self):
        settings = main_module.load_settings([
            "-v",
            "-a", "wg-quick up wg0",
            "-d", "wg-quick down wg0",
            "--wait", "500ms",
            "--pause", "2s",
            "--alive-count", "2",
            "--dead-count", "4",
            "--group-alive", "2",
            "--group-dead", "1",
            "--privileged",
            "--web",
            "--web-port", "9100",
            "--log-format", "json",
            "10.0.0.1", "10.0.0.2", "10.0.0.3",
        ])

        assert settings.log_level == "DEBUG"
        assert settings.alive_cmd == "wg-quick up wg0"
        assert settings.dead_cmd == "wg-quick down wg0"
        assert settings.wait_timeout == pytest.approx(0.5)
        assert settings.pause_duration == 2.0
        assert settings.alive_count == 2
        assert settings.dead_count == 4
        assert settings.group_alive == 2
        assert settings.group_dead == 1
        assert settings.privileged is True
        assert settings.web_enabled is True
        assert settings.web_port == 9100
        assert settings.log_format == "json"

    def test_unset_options_fall_back_to_environment(self, monkeypatch):
        monkeypatch.setenv("NETPINGER_TARGETS", "10.9.9.9")
        monkeypatch.setenv("NETPINGER_ALIVE_COUNT", "5")

        settings = main_module.load_settings([])

        assert settings.target_list == ["10.9.9.9"]
        assert settings.alive_count == 5
        assert settings.privileged is False

    def test_invalid_configuration_raises(self):
        with pytest.raises(ValueError):
            main_module.load_settings(["--alive-count", "0", "10.0.0.1"])


class TestMain:
    def test_invalid_configuration_exits_2(self, capsys, monkeypatch):
        monkeypatch.delenv("NETPINGER_TARGETS", raising=False)
        assert main_module.main([]) == 2
        assert "invalid configuration" in capsys.readouterr().err

    def test_transport_failure_exits_1(self):
        with patch.object(main_module, "configure_logging"), \
             patch.object(main_module, "serve", new=AsyncMock(side_effect=TransportError("denied"))):
            assert main_module.main(["10.0.0.1"]) == 1


class TestServe:
    @pytest.mark.asyncio
    async def test_serve_closes_transport_on_fatal_error(self, fake_transport):
        settings = main_module.load_settings(["--wait", "10ms", "--pause", "0", "10.0.0.1"])
        fake_transport.stream.put_nowait(TransportClosedError("zero-length read on ICMP socket"))

        with patch.object(main_module.IcmpTransport, "open", return_value=fake_transport) as open_mock:
            with pytest.raises(TransportClosedError):
                await main_module.serve(settings)

        open_mock.assert_called_once_with(privileged=False)
        assert fake_transport.closed is True

    @pytest.mark.asyncio
    async def test_serve_starts_web_server_when_enabled(self, fake_transport):
        settings = main_module.load_settings(["--web", "--web-port", "9100", "10.0.0.1"])
        fake_transport.stream.put_nowait(TransportClosedError("closed"))

        async def serve_forever():
            await asyncio.sleep(10)

        server = MagicMock()
        server.serve = serve_forever

        with patch.object(main_module.IcmpTransport, "open", return_value=fake_transport), \
             patch.object(main_module.uvicorn, "Server", return_value=server) as server_cls, \
             patch.object(main_module.uvicorn, "Config") as config_cls:
            with pytest.raises(TransportClosedError):
                await main_module.serve(settings)

        server_cls.assert_called_once()
        assert config_cls.call_args.kwargs["port"] == 9100
        assert fake_transport.closed is True


class TestConfigureLogging:
    def test_text_format_with_file(self, tmp_path, restore_root_logger):
        settings = main_module.load_settings(["-v", "--log-file", str(tmp_path / "logs" / "netpinger.log"), "10.0.0.1"])

        main_module.configure_logging(settings)

        assert logging.root.level == logging.DEBUG
        assert len(logging.root.handlers) == 2
        assert (tmp_path / "logs").is_dir()
        assert logging.getLogger("httpx").level == logging.WARNING

    def test_json_format(self, restore_root_logger):
        from pythonjsonlogger import jsonlogger

        settings = main_module.load_settings(["--log-format", "json", "10.0.0.1"])

        main_module.configure_logging(settings)

        assert len(logging.root.handlers) == 1
        assert isinstance(logging.root.handlers[0].formatter, jsonlogger.JsonFormatter)
