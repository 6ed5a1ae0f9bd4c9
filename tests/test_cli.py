"""Tests for the command line interface."""

import argparse
import os
from pathlib import Path

import pytest

from src import cli
from src.swordsman.models import WatcherEvent


class TestParseExpression:
    """Tests for parse_expression."""

    def test_valid_expression(self):
        assert cli.parse_expression('["suffix", "txt"]') == ["suffix", "txt"]

    def test_invalid_json(self):
        with pytest.raises(argparse.ArgumentTypeError):
            cli.parse_expression("[suffix")

    def test_not_an_array(self):
        with pytest.raises(argparse.ArgumentTypeError):
            cli.parse_expression('{"suffix": "txt"}')


class TestParser:
    """Tests for build_parser."""

    def test_watch_defaults(self):
        args = cli.build_parser().parse_args(["watch", "/tmp/x"])

        assert args.path == "/tmp/x"
        assert args.expression is None
        assert args.watchman_binary is None
        assert args.existing is False
        assert args.check is False
        assert args.func is cli.cmd_watch

    def test_watch_options(self):
        args = cli.build_parser().parse_args([
            "watch", "/tmp/x",
            "--expression", '["type", "f"]',
            "--watchman-binary", "/opt/watchman",
            "--existing",
            "--check",
        ])

        assert args.expression == ["type", "f"]
        assert args.watchman_binary == "/opt/watchman"
        assert args.existing is True
        assert args.check is True

    def test_check_command(self):
        args = cli.build_parser().parse_args(["check"])
        assert args.func is cli.cmd_check

    def test_command_required(self):
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args([])


class TestCommands:
    """Tests for command functions."""

    def test_watch_rejects_missing_directory(self, tmp_path):
        args = cli.build_parser().parse_args(["watch", str(tmp_path / "missing")])

        with pytest.raises(SystemExit) as exc_info:
            cli.cmd_watch(args)

        assert exc_info.value.code == 1

    def test_print_event(self, capsys, tmp_path):
        path = tmp_path / "a.txt"
        path.write_text("abc")

        cli.print_event(WatcherEvent.ADD, path, os.lstat(path))
        cli.print_event(WatcherEvent.DELETE, Path("/tmp/x/b.txt"))

        out = capsys.readouterr().out.splitlines()
        assert out[0] == f"add     {path} (3 bytes)"
        assert out[1] == "delete  /tmp/x/b.txt"
