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
"""The outputs handed back after a build or packaging run."""

from __future__ import annotations

import pathlib

from ukcraft.models import base


class Artifact(base.CraftBaseModel):
    """Named outputs of a build or packaging run."""

    binaries: list[pathlib.Path] = []
    initramfs: list[pathlib.Path] = []
    packages: list[str] = []
    """References to the packages that were created."""
    statistics: dict[str, str] = {}

    def files(self) -> list[pathlib.Path]:
        """Get every file produced, binaries first."""
        return [*self.binaries, *self.initramfs]
