# -*- coding: utf-8 -*-
"""Location: ./tests/unit/wpgateway/test_cli.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0

Tests for the wpgateway console script.
"""

# Standard
import json
import sys
from unittest.mock import patch

# Third-Party
import pytest

# First-Party
from wpgateway import __version__
from wpgateway import cli
from wpgateway.config import settings


@pytest.mark.parametrize(
    "args, expected",
    [
        ([], True),
        (["--reload"], True),
        (["custom.module:app"], False),
    ],
)
def test_needs_app(args, expected):
    assert cli._needs_app(args) is expected


def test_insert_defaults_adds_app_host_and_port():
    args = cli._insert_defaults(["--reload"])
    assert args[0] == cli.DEFAULT_APP
    assert args[args.index("--host") + 1] == settings.host
    assert args[args.index("--port") + 1] == str(settings.port)


def test_insert_defaults_respects_user_values():
    args = cli._insert_defaults(["my.app:app", "--host", "0.0.0.0", "--port", "8000"])
    assert args == ["my.app:app", "--host", "0.0.0.0", "--port", "8000"]


def test_insert_defaults_skips_host_for_unix_socket():
    args = cli._insert_defaults(["--uds", "/tmp/gw.sock"])
    assert "--host" not in args and "--port" not in args


def test_validate_config_accepts_valid_file(tmp_path, capsys):
    env = tmp_path / ".env"
    env.write_text("ENCRYPTION_KEY=a-perfectly-long-root-key\nPORT=5000\n", encoding="utf-8")
    cli._handle_validate_config(str(env))
    assert "is valid" in capsys.readouterr().out


def test_validate_config_rejects_short_root_key(tmp_path, capsys):
    env = tmp_path / ".env"
    env.write_text("ENCRYPTION_KEY=short\n", encoding="utf-8")
    with pytest.raises(SystemExit) as exc_info:
        cli._handle_validate_config(str(env))
    assert exc_info.value.code == 1
    assert "Invalid configuration" in capsys.readouterr().err


def test_config_schema_written_to_file(tmp_path):
    output = tmp_path / "schema.json"
    cli._handle_config_schema(str(output))
    schema = json.loads(output.read_text(encoding="utf-8"))
    assert "encryption_key" in schema["properties"]


def test_config_schema_printed(capsys):
    cli._handle_config_schema()
    assert "rate_limit_window" in capsys.readouterr().out


def test_main_version(monkeypatch, capsys):
    monkeypatch.setattr(sys, "argv", ["wpgateway", "--version"])
    cli.main()
    assert __version__ in capsys.readouterr().out


def test_main_delegates_to_uvicorn(monkeypatch):
    monkeypatch.setattr(sys, "argv", ["wpgateway", "--reload"])
    with patch("wpgateway.cli.uvicorn.main") as mock_main:
        cli.main()
    mock_main.assert_called_once()
    assert sys.argv[:3] == ["wpgateway", cli.DEFAULT_APP, "--reload"]


def test_main_validate_config(monkeypatch, tmp_path, capsys):
    env = tmp_path / ".env"
    env.write_text("ENCRYPTION_KEY=a-perfectly-long-root-key\n", encoding="utf-8")
    monkeypatch.setattr(sys, "argv", ["wpgateway", "--validate-config", str(env)])
    with patch("wpgateway.cli.uvicorn.main") as mock_main:
        cli.main()
    mock_main.assert_not_called()
    assert "is valid" in capsys.readouterr().out
