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
"""Models exchanged with catalog backends."""

from __future__ import annotations

import dataclasses
import enum
import pathlib
from collections.abc import Collection, Mapping
from typing import Any

from ukcraft.models.project import ComponentType, Target


class MergeStrategy(str, enum.Enum):
    """What to do when a package being created already exists."""

    OVERWRITE = "overwrite"
    MERGE = "merge"
    ABORT = "abort"
    EXIT = "exit"
    PROMPT = "prompt"

    def __str__(self) -> str:
        return self.value


@dataclasses.dataclass(frozen=True)
class CatalogQuery:
    """A request for packages matching some criteria.

    Empty criteria match anything.
    """

    name: str = ""
    version: str = ""
    types: Collection[ComponentType] = ()
    source: str = ""
    architecture: str = ""
    platform: str = ""
    kconfig: Mapping[str, str] = dataclasses.field(default_factory=dict)
    remote: bool = False

    def with_remote(self, remote: bool = True) -> CatalogQuery:  # noqa: FBT001, FBT002
        """Get a copy of this query with the remote flag set."""
        return dataclasses.replace(self, remote=remote)

    def matches(self, package: Package) -> bool:
        """Determine whether a package satisfies this query."""
        if self.name and package.name != self.name:
            return False
        if self.version and package.version != self.version:
            return False
        if self.types and package.type not in self.types:
            return False
        if self.source and self.source not in (package.source, package.location):
            return False
        if self.architecture and package.architecture != self.architecture:
            return False
        if self.platform and package.platform != self.platform:
            return False
        return all(package.kconfig.get(key) == value for key, value in self.kconfig.items())

    def __str__(self) -> str:
        subject = self.name or "*"
        if self.version:
            subject += f":{self.version}"
        if self.platform or self.architecture:
            subject += f" ({self.platform or '*'}/{self.architecture or '*'})"
        return subject


@dataclasses.dataclass
class Package:
    """A package listed by a catalog."""

    name: str
    version: str = ""
    type: ComponentType = ComponentType.LIBRARY
    format: str = ""
    architecture: str = ""
    platform: str = ""
    kconfig: dict[str, str] = dataclasses.field(default_factory=dict)
    kernel: str | None = None
    command: list[str] = dataclasses.field(default_factory=list)
    location: str = ""
    """Where the package contents can be retrieved from."""
    source: str = ""
    """The index or origin the package was listed by."""
    metadata: dict[str, Any] = dataclasses.field(default_factory=dict)

    @property
    def is_target(self) -> bool:
        """Whether this package carries its own kernel, architecture and platform."""
        return bool(self.kernel and self.architecture and self.platform)

    def as_target(self) -> Target:
        """Reuse this package directly as a build target."""
        if not self.is_target:
            raise ValueError(f"package {self} does not describe a target")
        return Target(
            architecture=self.architecture,
            platform=self.platform,
            name=self.name,
            kernel=self.kernel,
            kconfig=self.kconfig,
            command=self.command,
        )

    def __str__(self) -> str:
        subject = f"{self.type}/{self.name}"
        if self.version:
            subject += f":{self.version}"
        if self.is_target:
            subject += f" ({self.platform}/{self.architecture})"
        return subject


@dataclasses.dataclass
class PackOptions:
    """Options for creating a package from a target."""

    name: str
    output: pathlib.Path | None = None
    args: list[str] = dataclasses.field(default_factory=list)
    initrd: pathlib.Path | None = None
    env: dict[str, str] = dataclasses.field(default_factory=dict)
    labels: dict[str, str] = dataclasses.field(default_factory=dict)
    kconfig: bool = True
    """Whether to include the target's kconfig in the package metadata."""
    kernel_version: str | None = None
    strategy: MergeStrategy = MergeStrategy.MERGE
