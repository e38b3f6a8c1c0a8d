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
"""Narrowing a project's targets down to the ones to work on."""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING

from ukcraft import errors, util

if TYPE_CHECKING:
    from ukcraft.models import Target


def filter_targets(
    targets: Sequence[Target],
    architecture: str = "",
    platform: str = "",
    name: str = "",
) -> list[Target]:
    """Get the targets matching the given constraints.

    With no constraints every target matches. A name matches the target name
    exactly, and an architecture and platform on their own or together match
    the corresponding target fields. A name cannot be combined with an
    architecture or platform.
    """
    if name and (architecture or platform):
        raise errors.IncompatibleArgumentsError(
            "Cannot select a target by name together with an architecture or platform.",
            resolution="Use either '--target' or '--arch' and '--plat'.",
        )
    platform = util.canonical_platform(platform)

    def _matches(target: Target) -> bool:
        if not (architecture or platform or name):
            return True
        if name:
            return target.name == name
        if architecture and not platform:
            return target.architecture == architecture
        if platform and not architecture:
            return target.platform == platform
        return target.architecture == architecture and target.platform == platform

    return [target for target in targets if _matches(target)]


def select_targets(
    targets: Sequence[Target],
    architecture: str = "",
    platform: str = "",
    name: str = "",
    *,
    interactive: bool,
    verb: str = "build",
) -> list[Target]:
    """Filter targets, asking the user to choose one if several remain.

    :raises NoTargetsSelectedError: if nothing is left to ``verb``.
    """
    selected = filter_targets(targets, architecture, platform, name)
    if interactive and len(selected) > 1:
        selected = [util.select(f"Select target to {verb}", selected)]
    if not selected:
        raise errors.NoTargetsSelectedError(
            verb,
            details=f"The project declares {len(targets)} target(s).",
        )
    return selected
