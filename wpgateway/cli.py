# -*- coding: utf-8 -*-
"""Location: ./wpgateway/cli.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0

wpgateway CLI - a thin wrapper around Uvicorn.
This module is exposed as a console-script via:

    [project.scripts]
    wpgateway = "wpgateway.cli:main"

Features:
    * Injects the default application path (``wpgateway.main:app``) when the
      user doesn't supply one.
    * Adds default host/port from settings (``HOST`` / ``PORT``) unless the
      user passes ``--host`` / ``--port``.
    * Forwards all remaining arguments verbatim to Uvicorn, so ``--reload``,
      ``--workers`` and friends work unchanged.
    * ``--validate-config [path]`` and ``--config-schema [output]`` check or
      export the settings model without starting the server.

Typical usage:

    $ wpgateway --reload
    $ wpgateway --workers 4
    $ wpgateway --validate-config .env
"""

# Standard
import json
from pathlib import Path
import sys
from typing import List, Optional

# Third-Party
from pydantic import ValidationError
import uvicorn

# First-Party
from wpgateway import __version__
from wpgateway.config import settings, Settings

DEFAULT_APP = "wpgateway.main:app"


def _needs_app(arg_list: List[str]) -> bool:
    """Return True when the invocation has no positional APP path.

    Args:
        arg_list (List[str]): Arguments after the program name.

    Returns:
        bool: True when the first argument is missing or is a flag.

    Examples:
        >>> _needs_app([])
        True
        >>> _needs_app(["--reload"])
        True
        >>> _needs_app(["pkg.main:app"])
        False
    """
    return len(arg_list) == 0 or arg_list[0].startswith("-")


def _insert_defaults(raw_args: List[str]) -> List[str]:
    """Return a new argv with the app path, host and port filled in.

    Args:
        raw_args (List[str]): Arguments after the program name.

    Returns:
        List[str]: Uvicorn arguments.

    Examples:
        >>> _insert_defaults([])[0]
        'wpgateway.main:app'
        >>> args = _insert_defaults(["--port", "9000"])
        >>> args.count("--port"), "--host" in args
        (1, True)
        >>> "--host" in _insert_defaults(["--uds", "/tmp/gw.sock"])
        False
    """
    args = list(raw_args)
    if _needs_app(args):
        args.insert(0, DEFAULT_APP)
    if "--uds" not in args:
        if "--host" not in args:
            args.extend(["--host", settings.host])
        if "--port" not in args:
            args.extend(["--port", str(settings.port)])
    return args


def _handle_validate_config(path: str = ".env") -> None:
    """Validate an environment file against the settings model.

    Args:
        path (str): Path to the ``.env`` file.

    Raises:
        SystemExit: With code 1 when the configuration is invalid.
    """
    try:
        Settings(_env_file=path)
    except ValidationError as exc:
        print(f"Invalid configuration in {path}", file=sys.stderr)
        print(exc.json(indent=2), file=sys.stderr)
        raise SystemExit(1)
    print(f"Configuration in {path} is valid")


def _handle_config_schema(output: Optional[str] = None) -> None:
    """Print or write the JSON schema of the settings model.

    Args:
        output (Optional[str]): File to write. Prints to stdout when None.
    """
    data = json.dumps(Settings.model_json_schema(mode="validation"), indent=2, sort_keys=True)
    if output:
        path = Path(output)
        path.write_text(data, encoding="utf-8")
        print(f"Schema written to {path}")
    else:
        print(data)


def main() -> None:
    """Entry point for the *wpgateway* console script (delegates to Uvicorn)."""
    if "--version" in sys.argv or "-V" in sys.argv:
        print(f"wpgateway {__version__}")
        return

    if len(sys.argv) > 1:
        cmd = sys.argv[1]
        if cmd == "--validate-config":
            _handle_validate_config(sys.argv[2] if len(sys.argv) > 2 else ".env")
            return
        if cmd == "--config-schema":
            _handle_config_schema(sys.argv[2] if len(sys.argv) > 2 else None)
            return

    uvicorn_argv = _insert_defaults(sys.argv[1:])
    sys.argv = ["wpgateway", *uvicorn_argv]
    uvicorn.main()  # pylint: disable=no-value-for-parameter


if __name__ == "__main__":  # pragma: no cover
    main()
