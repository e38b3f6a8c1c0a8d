# This file is part of ukcraft.
#
# Copyright 2024 Canonical Ltd.
#
# This program is free software: you can redistribute it and/or modify it
# under the terms of the GNU Lesser General Public License version 3, as
# published by the Free Software Foundation.
#
# This program is distributed in the hope that it will be useful, but WITHOUT
# ANY WARRANTY; without even the implied warranties of MERCHANTABILITY,
# SATISFACTORY QUALITY, or FITNESS FOR A PARTICULAR PURPOSE.  See the GNU
# Lesser General Public License for more details.
#
# You should have received a copy of the GNU Lesser General Public License along
# with this program.  If not, see <http://www.gnu.org/licenses/>.
"""Logging setup and the mapping of uncaught errors to exit codes."""

from __future__ import annotations

import logging
import os
import signal
import sys
from typing import TYPE_CHECKING

import craft_cli

if TYPE_CHECKING:
    from collections.abc import Callable

    from ukcraft.application import AppMetadata

INTERRUPTED = 128 + signal.SIGINT


def setup_loggers(*names: str) -> None:
    """Let craft-cli receive every record from the named loggers."""
    for name in names:
        logging.getLogger(name).setLevel(logging.DEBUG)


def _to_craft_error(app: AppMetadata, error: BaseException) -> craft_cli.CraftError:
    if isinstance(error, craft_cli.CraftError):
        return error
    if isinstance(error, KeyboardInterrupt):
        craft_error = craft_cli.CraftError("Interrupted.", retcode=INTERRUPTED)
    else:
        craft_error = craft_cli.CraftError(
            f"{app.name} internal error: {error!r}", retcode=os.EX_SOFTWARE
        )
    craft_error.__cause__ = error
    return craft_error


def handle_runtime_error(
    app: AppMetadata,
    error: BaseException,
    *,
    print_error: Callable[[craft_cli.CraftError], None] = craft_cli.emit.report_error,
    debug_mode: bool = False,
) -> int:
    """Report an error that escaped a command and get the exit code for it.

    Argument errors are printed as-is and exit with ``EX_USAGE``. Anything
    else is reported as a ``CraftError`` through ``print_error``. In debug
    mode, errors that are not ``CraftError`` or interrupts are re-raised after
    being reported.
    """
    if isinstance(error, craft_cli.ArgumentParsingError):
        print(error, file=sys.stderr)
        return os.EX_USAGE

    craft_error = _to_craft_error(app, error)
    print_error(craft_error)
    if debug_mode and craft_error.__cause__ is error and not isinstance(
        error, KeyboardInterrupt
    ):
        raise error
    return craft_error.retcode
