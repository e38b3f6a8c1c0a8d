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
"""Command classes for ukcraft."""

from craft_cli import CommandGroup

from ukcraft.commands.base import AppCommand, ProjectCommand
from ukcraft.commands.catalog import (
    PullCommand,
    SourceCommand,
    UnsourceCommand,
    UpdateCommand,
    get_catalog_command_group,
)
from ukcraft.commands.lifecycle import (
    BuildCommand,
    PackageCommand,
    get_lifecycle_command_group,
)


def get_command_groups() -> list[CommandGroup]:
    """Get every command group, in display order."""
    return [get_lifecycle_command_group(), get_catalog_command_group()]


__all__ = [
    "AppCommand",
    "BuildCommand",
    "PackageCommand",
    "ProjectCommand",
    "PullCommand",
    "SourceCommand",
    "UnsourceCommand",
    "UpdateCommand",
    "get_catalog_command_group",
    "get_command_groups",
    "get_lifecycle_command_group",
]
