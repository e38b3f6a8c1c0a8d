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
"""Commands that manage catalogs."""

from __future__ import annotations

import argparse
import pathlib
import textwrap

from craft_cli import CommandGroup, emit
from typing_extensions import override

from ukcraft.commands import base


def get_catalog_command_group() -> CommandGroup:
    """Return the catalog related command group."""
    return CommandGroup(
        "Catalog",
        [PullCommand, SourceCommand, UnsourceCommand, UpdateCommand],
    )


def _add_format_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-M",
        "--format",
        dest="catalog_format",
        default=None,
        help="Catalog format to use (default: all)",
    )


class PullCommand(base.ProjectCommand):
    """Fetch packages, skipping the ones that cannot be found."""

    name = "pull"
    help_msg = "Fetch a project's components or named packages"
    overview = textwrap.dedent(
        """
        Fetch packages into the project directory. Without any package
        references, the project's missing components are fetched. Packages
        that cannot be found or fetched are reported and skipped.
        """
    )

    @override
    def _fill_parser(self, parser: argparse.ArgumentParser) -> None:
        parser.add_argument(
            "references",
            nargs="*",
            metavar="PACKAGE",
            help="Packages to fetch, as [type/]name[:version]",
        )
        parser.add_argument(
            "-w",
            "--workdir",
            dest="project_dir",
            type=pathlib.Path,
            default=None,
            help="Project directory to fetch into (default: current directory)",
        )
        parser.add_argument(
            "--force",
            action="store_true",
            help="Fetch packages again even if they are present",
        )
        parser.add_argument(
            "--update",
            action="store_true",
            help="Refresh the catalog before fetching",
        )
        _add_format_argument(parser)

    @override
    def _run(self, parsed_args: argparse.Namespace) -> int | None:
        project_dir = self._services.get("project").project_dir
        requested = len(parsed_args.references)
        pulled = self._services.get("catalog").pull(
            project_dir,
            parsed_args.references,
            catalog_format=parsed_args.catalog_format,
            force=parsed_args.force,
            update=parsed_args.update,
        )
        for package in pulled:
            emit.message(f"Pulled {package}")
        if requested and not pulled:
            return 1
        return None


class SourceCommand(base.AppCommand):
    """Add catalog sources."""

    name = "source"
    help_msg = "Add a catalog source"
    overview = textwrap.dedent(
        """
        Start indexing packages from a source. Sources are remembered in
        the user's configuration.
        """
    )

    @override
    def _fill_parser(self, parser: argparse.ArgumentParser) -> None:
        parser.add_argument("sources", nargs="+", metavar="SOURCE", help="Sources to add")
        _add_format_argument(parser)

    @override
    def _run(self, parsed_args: argparse.Namespace) -> None:
        self._services.get("catalog").add_sources(
            parsed_args.sources, catalog_format=parsed_args.catalog_format
        )


class UnsourceCommand(base.AppCommand):
    """Remove catalog sources."""

    name = "unsource"
    help_msg = "Remove a catalog source"
    overview = textwrap.dedent(
        """
        Stop indexing packages from a source and forget it in the user's
        configuration.
        """
    )

    @override
    def _fill_parser(self, parser: argparse.ArgumentParser) -> None:
        parser.add_argument(
            "sources", nargs="+", metavar="SOURCE", help="Sources to remove"
        )
        _add_format_argument(parser)

    @override
    def _run(self, parsed_args: argparse.Namespace) -> None:
        self._services.get("catalog").remove_sources(
            parsed_args.sources, catalog_format=parsed_args.catalog_format
        )


class UpdateCommand(base.AppCommand):
    """Refresh the catalogs."""

    name = "update"
    help_msg = "Refresh the local view of the catalogs"
    overview = "Refresh the local view of one catalog, or of all of them."

    @override
    def _fill_parser(self, parser: argparse.ArgumentParser) -> None:
        _add_format_argument(parser)

    @override
    def _run(self, parsed_args: argparse.Namespace) -> None:
        self._services.get("catalog").update(parsed_args.catalog_format)
