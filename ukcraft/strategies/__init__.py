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
"""Strategies for building and packaging projects."""

from ukcraft.strategies.base import (
    BuildContext,
    PackContext,
    Strategy,
    choose,
    find_runtime,
    rewrap_kraftcloud,
)
from ukcraft.strategies.builders import (
    BUILDERS,
    Builder,
    CoreBuilder,
    DockerfileBuilder,
    RuntimeBuilder,
)
from ukcraft.strategies.packagers import (
    PACKAGERS,
    CorePackager,
    DockerfilePackager,
    KernelPackager,
    Packager,
    RuntimePackager,
    pack_target,
    parse_labels,
)

__all__ = [
    "BUILDERS",
    "PACKAGERS",
    "BuildContext",
    "Builder",
    "CoreBuilder",
    "CorePackager",
    "DockerfileBuilder",
    "DockerfilePackager",
    "KernelPackager",
    "PackContext",
    "Packager",
    "RuntimeBuilder",
    "RuntimePackager",
    "Strategy",
    "choose",
    "find_runtime",
    "pack_target",
    "parse_labels",
    "rewrap_kraftcloud",
]
