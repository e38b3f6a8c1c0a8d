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
"""Base command for ukcraft commands."""

from __future__ import annotations

import abc
import argparse
import pathlib
from typing import TYPE_CHECKING, Any, final

from craft_cli import BaseCommand, emit

if TYPE_CHECKING:
    from ukcraft.application import AppMetadata
    from ukcraft.services.service_factory import ServiceFactory


class AppCommand(BaseCommand):
    """Command for use with ukcraft."""

    def __init__(self, config: dict[str, Any] | None) -> None:
        if config is None:
            # This should only be the case when the command is not going to be run.
            # For example, when requesting help on the command.
            emit.trace("Not completing command configuration")
            return

        super().__init__(config)

        self._app: AppMetadata = config["app"]
        self._services: ServiceFactory = config["services"]

    def _fill_parser(self, parser: argparse.ArgumentParser) -> None:
        """Add the command's own arguments."""

    @final
    def fill_parser(self, parser: argparse.ArgumentParser) -> None:
        """Set the arguments for the parser."""
        self._fill_parser(parser)

    @abc.abstractmethod
    def _run(self, parsed_args: argparse.Namespace) -> int | None:
        """Run the command itself."""

    @final
    def run(self, parsed_args: argparse.Namespace) -> int | None:
        """Run the command."""
        emit.trace(f"{self.name} command arguments: {parsed_args!r}")
        return self._run(parsed_args)


class ProjectCommand(AppCommand):
    """A command that works on a project directory."""

    @staticmethod
    def add_project_arguments(parser: argparse.ArgumentParser) -> None:
        """Add the arguments locating the project."""
        parser.add_argument(
            "project_dir",
            type=pathlib.Path,
            nargs="?",
            default=None,
            help="Path to the project directory (default: current directory)",
        )
        parser.add_argument(
            "-K",
            "--kraftfile",
            type=pathlib.Path,
            default=None,
            help="Use a Kraftfile other than the one in the project directory",
        )

    @staticmethod
    def add_target_arguments(parser: argparse.ArgumentParser) -> None:
        """Add the arguments narrowing down the project's targets."""
        parser.add_argument(
            "-m", "--arch", dest="architecture", default="", help="Filter by architecture"
        )
        parser.add_argument(
            "-p", "--plat", dest="platform", default="", help="Filter by platform"
        )
        parser.add_argument(
            "-t",
            "--target",
            dest="target_name",
            default="",
            help="Select the target by name",
        )
        parser.add_argument(
            "--rootfs",
            default=None,
            help="Root filesystem: a directory, a Dockerfile or an archive",
        )
        parser.add_argument(
            "-e",
            "--env",
            action="append",
            default=[],
            metavar="KEY[=VALUE]",
            help="Environment variable to set in the unikernel (repeatable)",
        )
        parser.add_argument(
            "-M",
            "--format",
            dest="catalog_format",
            default=None,
            help="Catalog format to use",
        )
