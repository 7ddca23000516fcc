"""Tests for the ``ha`` command line interface."""

from __future__ import annotations

import argparse
import logging
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from hass_client import cli
from hass_client.errors import HassConnectionError
from hass_client.responses import EntityRegistryList

from .test_responses import REGISTRY_REPLY

ENV = {"HASS_SERVER": "http://hub.local:8123", "HASS_TOKEN": "secret-token"}


@pytest.fixture
def api() -> MagicMock:
    api = MagicMock()
    api.list_shades = AsyncMock(return_value=["cover.office", "cover.bedroom"])
    api.open_shade = AsyncMock()
    api.close_shade = AsyncMock()
    api.list_entity_registry = AsyncMock(
        return_value=EntityRegistryList(REGISTRY_REPLY)
    )
    return api


def parse(*argv: str) -> argparse.Namespace:
    return cli.build_parser().parse_args(argv)


class TestMain:
    """Tests for cli.main() exit codes and usage handling."""

    def test_help(self, capsys: pytest.CaptureFixture[str]):
        assert cli.main(["help"]) == 0
        assert "Usage: ha <command>" in capsys.readouterr().out

    def test_no_command(self, capsys: pytest.CaptureFixture[str]):
        assert cli.main([]) == 1
        assert "Commands:" in capsys.readouterr().out

    def test_unknown_command(self, capsys: pytest.CaptureFixture[str]):
        """An unknown command prints the usage and exits with 1."""
        assert cli.main(["lights"]) == 1

        out = capsys.readouterr().out
        assert out.startswith("Error: ")
        assert "Usage: ha <command> [options]" in out

    @pytest.mark.parametrize("argv", [["shades"], ["shades", "bogus"]])
    def test_bad_shades_subcommand(
        self, argv: list[str], capsys: pytest.CaptureFixture[str]
    ):
        """A missing or unknown shades subcommand prints the shades usage."""
        assert cli.main(argv) == 1

        out = capsys.readouterr().out
        assert "Usage: ha shades <command> [options]" in out
        assert "close - Close shade" in out

    def test_unknown_option(self, capsys: pytest.CaptureFixture[str]):
        assert cli.main(["shades", "open", "--bogus"]) == 1
        assert "unrecognized arguments: --bogus" in capsys.readouterr().out

    def test_parser_usage_line(self):
        """argparse's own usage line is not doubled up with the help text."""
        assert cli.build_parser().format_usage() == "usage: ha <command> [options]\n"

    @pytest.mark.parametrize(
        ("argv", "message"),
        [
            (["shades", "open"], "Provide either --all or at least one entity ID"),
            (
                ["shades", "close", "--all", "cover.office"],
                "--all and individual entities are mutually exclusive",
            ),
        ],
    )
    def test_shade_target_errors(
        self, argv: list[str], message: str, capsys: pytest.CaptureFixture[str]
    ):
        with patch.object(cli, "run", AsyncMock()) as run:
            assert cli.main(argv) == 1

        assert f"Error: {message}" in capsys.readouterr().out
        run.assert_not_called()

    def test_runs_command(self, monkeypatch: pytest.MonkeyPatch):
        for name, value in ENV.items():
            monkeypatch.setenv(name, value)

        with patch.object(cli, "run", AsyncMock()) as run:
            assert cli.main(["shades", "open", "cover.office"]) == 0

        config, args = run.await_args.args
        assert config.server == "http://hub.local:8123"
        assert args.entities == ["cover.office"]

    def test_missing_config(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.delenv("HASS_SERVER", raising=False)
        monkeypatch.delenv("HASS_TOKEN", raising=False)

        with patch.object(cli, "run", AsyncMock()) as run:
            assert cli.main(["shades", "list"]) == 1
        run.assert_not_called()

    def test_client_error_exit_code(self, monkeypatch: pytest.MonkeyPatch):
        for name, value in ENV.items():
            monkeypatch.setenv(name, value)

        with patch.object(
            cli, "run", AsyncMock(side_effect=HassConnectionError("refused"))
        ):
            assert cli.main(["entities"]) == 1

    def test_debug_flag_sets_level(self, monkeypatch: pytest.MonkeyPatch):
        for name, value in ENV.items():
            monkeypatch.setenv(name, value)

        with patch.object(cli, "run", AsyncMock()):
            cli.main(["--debug", "entities"])

        assert logging.getLogger("hass_client").level == logging.DEBUG


class TestRunShades:
    """Tests for the shades subcommands."""

    async def test_list(self, api: MagicMock, capsys: pytest.CaptureFixture[str]):
        await cli.run_shades(api, parse("shades", "list"))
        assert capsys.readouterr().out.splitlines() == ["cover.office", "cover.bedroom"]

    async def test_open_entities(self, api: MagicMock, capsys: pytest.CaptureFixture[str]):
        await cli.run_shades(api, parse("shades", "open", "cover.office"))

        api.open_shade.assert_awaited_once_with("cover.office")
        api.list_shades.assert_not_awaited()
        assert "Opening cover.office..." in capsys.readouterr().out

    async def test_close_all(self, api: MagicMock, capsys: pytest.CaptureFixture[str]):
        await cli.run_shades(api, parse("shades", "close", "--all"))

        assert [c.args for c in api.close_shade.await_args_list] == [
            ("cover.office",),
            ("cover.bedroom",),
        ]
        assert "Closing cover.bedroom..." in capsys.readouterr().out


class TestRunEntities:
    """Tests for the entities command."""

    async def test_lists_registry(
        self, api: MagicMock, capsys: pytest.CaptureFixture[str]
    ):
        await cli.run_entities(api)

        assert capsys.readouterr().out.splitlines() == [
            "cover.living_room\tLiving Room",
            "light.kitchen\tKitchen",
        ]
