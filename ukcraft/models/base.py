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
"""Base pydantic model for Kraftfile and artifact data."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import pydantic

if TYPE_CHECKING:  # pragma: no cover
    from typing_extensions import Self


def kraftfile_alias(name: str) -> str:
    """Kraftfile keys are written with dashes: ``build_rootfs`` is ``build-rootfs``."""
    return name.replace("_", "-")


class CraftBaseModel(pydantic.BaseModel):
    """Base model for ukcraft data.

    Fields accept either their Python name or their dashed Kraftfile key and
    unknown keys are rejected.
    """

    model_config = pydantic.ConfigDict(
        validate_assignment=True,
        extra="forbid",
        populate_by_name=True,
        alias_generator=kraftfile_alias,
    )

    @classmethod
    def unmarshal(cls, data: dict[str, Any]) -> Self:
        """Validate a mapping loaded from a Kraftfile or index.

        :raise TypeError: If data is not a mapping.
        """
        if not isinstance(data, dict):  # pyright: ignore[reportUnnecessaryIsInstance]
            raise TypeError(f"{cls.__name__} data is not a mapping")
        return cls.model_validate(data)
