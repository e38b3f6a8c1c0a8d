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
"""Configuration model for ukcraft."""

from __future__ import annotations

from typing import Literal

import craft_cli
import pydantic


class ConfigModel(pydantic.BaseModel):
    """A configuration model for ukcraft."""

    verbosity_level: craft_cli.EmitterMode = craft_cli.EmitterMode.BRIEF
    debug: bool = False
    no_prompt: bool = False
    no_parallel: bool = False
    log_type: Literal["fancy", "basic"] = "fancy"
    jobs: int = 0

    manifests: list[str] = []
    """Sources the catalog indexes packages from."""
    catalog_format: str = "manifest"
