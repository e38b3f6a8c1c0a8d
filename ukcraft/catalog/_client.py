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
"""The interface every catalog backend implements."""

from __future__ import annotations

import abc
from typing import TYPE_CHECKING, ClassVar

if TYPE_CHECKING:
    import pathlib

    from ukcraft import models


class CatalogClient(abc.ABC):
    """A queryable index of packages, local and remote.

    Backends never interpret packages for the rest of ukcraft. They list them,
    retrieve them into a project and create them from a target.
    """

    format: ClassVar[str]
    """The name this backend is registered under."""

    @abc.abstractmethod
    def catalog(self, query: models.CatalogQuery) -> list[models.Package]:
        """List the packages matching a query.

        Without ``query.remote`` only the locally known view is consulted.
        """

    @abc.abstractmethod
    def pull(
        self,
        package: models.Package,
        workdir: pathlib.Path,
        *,
        dest: pathlib.Path | None = None,
        use_cache: bool = True,
    ) -> pathlib.Path:
        """Retrieve a package into a project directory.

        :param dest: where to place the package, for components declaring a
            path. By default the package goes to its standard location under
            ``workdir``.
        :returns: The directory the package was placed in.
        """

    @abc.abstractmethod
    def push(self, package: models.Package) -> None:
        """Publish a package."""

    @abc.abstractmethod
    def update(self) -> None:
        """Refresh the locally known view of the remote sources."""

    @abc.abstractmethod
    def add_source(self, source: str) -> None:
        """Start indexing packages from a source."""

    @abc.abstractmethod
    def remove_source(self, source: str) -> None:
        """Stop indexing packages from a source."""

    @abc.abstractmethod
    def pack(
        self, target: models.Target, options: models.PackOptions
    ) -> list[models.Package]:
        """Create packages from a built target."""

    @abc.abstractmethod
    def is_compatible(self, source: str) -> bool:
        """Whether this backend knows how to index a source."""

    @property
    @abc.abstractmethod
    def sources(self) -> list[str]:
        """The sources currently indexed."""
