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
"""An explicit registry of catalog backends."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from typing import TYPE_CHECKING, ClassVar

from craft_cli import emit
from typing_extensions import override

from ukcraft import errors
from ukcraft.catalog._client import CatalogClient

if TYPE_CHECKING:
    import pathlib

    from ukcraft import models

CatalogFactory = Callable[[], CatalogClient]


class CatalogRegistry:
    """Backends selected by format name.

    A registry is constructed once at start-up and handed to whatever needs a
    catalog. Backends are created lazily, once each.
    """

    def __init__(self, factories: dict[str, CatalogFactory] | None = None) -> None:
        self._factories: dict[str, CatalogFactory] = dict(factories or {})
        self._clients: dict[str, CatalogClient] = {}

    def register(self, catalog_format: str, factory: CatalogFactory) -> None:
        """Register a backend factory, replacing any existing one for the format."""
        self._factories[catalog_format] = factory
        self._clients.pop(catalog_format, None)

    @property
    def formats(self) -> list[str]:
        """The registered format names, in registration order."""
        return list(self._factories)

    def get(self, catalog_format: str) -> CatalogClient:
        """Get the backend for a format."""
        if catalog_format not in self._clients:
            try:
                factory = self._factories[catalog_format]
            except KeyError:
                raise errors.CatalogError(
                    f"Unknown package format {catalog_format!r}.",
                    resolution=f"Use one of: {', '.join(self.formats) or 'none'}.",
                ) from None
            emit.debug(f"Creating {catalog_format!r} catalog backend")
            self._clients[catalog_format] = factory()
        return self._clients[catalog_format]

    def umbrella(self) -> CatalogClient:
        """Get a client that fans out to every registered backend."""
        return UmbrellaCatalog([self.get(name) for name in self.formats])


class UmbrellaCatalog(CatalogClient):
    """Combine several backends behind one client."""

    format: ClassVar[str] = "umbrella"

    def __init__(self, clients: Iterable[CatalogClient]) -> None:
        self._clients = list(clients)

    def _for_format(self, catalog_format: str) -> CatalogClient:
        for client in self._clients:
            if client.format == catalog_format:
                return client
        if len(self._clients) == 1:
            return self._clients[0]
        raise errors.CatalogError(f"No catalog backend handles {catalog_format!r}.")

    @override
    def catalog(self, query: models.CatalogQuery) -> list[models.Package]:
        packages: list[models.Package] = []
        for client in self._clients:
            packages.extend(client.catalog(query))
        return packages

    @override
    def pull(
        self,
        package: models.Package,
        workdir: pathlib.Path,
        *,
        dest: pathlib.Path | None = None,
        use_cache: bool = True,
    ) -> pathlib.Path:
        return self._for_format(package.format).pull(
            package, workdir, dest=dest, use_cache=use_cache
        )

    @override
    def push(self, package: models.Package) -> None:
        self._for_format(package.format).push(package)

    @override
    def update(self) -> None:
        for client in self._clients:
            client.update()

    @override
    def add_source(self, source: str) -> None:
        for client in self._clients:
            if client.is_compatible(source):
                client.add_source(source)
                return
        raise errors.CatalogError(
            f"No catalog backend can index {source!r}.",
            resolution="Check that the source is a catalog index.",
        )

    @override
    def remove_source(self, source: str) -> None:
        for client in self._clients:
            if source in client.sources:
                client.remove_source(source)

    @override
    def pack(
        self, target: models.Target, options: models.PackOptions
    ) -> list[models.Package]:
        if len(self._clients) != 1:
            raise errors.CatalogError("Choose a package format to create packages.")
        return self._clients[0].pack(target, options)

    @override
    def is_compatible(self, source: str) -> bool:
        return any(client.is_compatible(source) for client in self._clients)

    @property
    @override
    def sources(self) -> list[str]:
        return [source for client in self._clients for source in client.sources]
