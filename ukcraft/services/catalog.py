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
"""Service for managing catalog sources and pulling packages."""

from __future__ import annotations

import pathlib
from collections.abc import Sequence
from typing import TYPE_CHECKING

import platformdirs
from craft_cli import CraftError, emit
from typing_extensions import override

from ukcraft import errors, models, resolver
from ukcraft.catalog import (
    CatalogClient,
    CatalogRegistry,
    ManifestCatalog,
    select_package,
)
from ukcraft.scheduler import CancellationToken, UnitState
from ukcraft.services import base
from ukcraft.strategies.base import split_reference

if TYPE_CHECKING:
    from ukcraft.application import AppMetadata
    from ukcraft.services.service_factory import ServiceFactory


def reference_query(reference: str, *, remote: bool = False) -> models.CatalogQuery:
    """Get the query for a ``[type/]name[:version]`` package reference."""
    kind, sep, rest = reference.partition("/")
    types: tuple[models.ComponentType, ...] = ()
    if sep and kind in {member.value for member in models.ComponentType}:
        types = (models.ComponentType(kind),)
    else:
        rest = reference
    name, version = split_reference(rest)
    return models.CatalogQuery(name=name, version=version, types=types, remote=remote)


class CatalogService(base.AppService):
    """Access to the package catalogs.

    :param registry: the catalog backends to use. By default the backends are
        configured from the ``manifests`` configuration item.
    :param cache_dir: where backends keep their downloaded indexes and archives.
    """

    def __init__(
        self,
        app: AppMetadata,
        services: ServiceFactory,
        *,
        registry: CatalogRegistry | None = None,
        cache_dir: pathlib.Path | None = None,
    ) -> None:
        super().__init__(app, services)
        self._registry = registry
        self._cache_dir = cache_dir

    @override
    def setup(self) -> None:
        super().setup()
        if self._cache_dir is None:
            self._cache_dir = platformdirs.user_cache_path(self._app.name)
        if self._registry is None:
            self._registry = self._default_registry()

    def _default_registry(self) -> CatalogRegistry:
        config = self._services.get("config")
        cache_dir = self.cache_dir

        def _manifest() -> CatalogClient:
            return ManifestCatalog(
                config.get("manifests"),
                cache_dir=cache_dir / ManifestCatalog.format,
                user_agent=f"{self._app.name}/{self._app.version}",
            )

        return CatalogRegistry({ManifestCatalog.format: _manifest})

    @property
    def cache_dir(self) -> pathlib.Path:
        """The directory catalog backends cache into."""
        if self._cache_dir is None:
            raise RuntimeError("CatalogService is not set up")
        return self._cache_dir

    @property
    def registry(self) -> CatalogRegistry:
        """The registered catalog backends."""
        if self._registry is None:
            raise RuntimeError("CatalogService is not set up")
        return self._registry

    def client(self, catalog_format: str | None = None) -> CatalogClient:
        """Get the backend for a format, or one spanning every backend."""
        if catalog_format:
            return self.registry.get(catalog_format)
        return self.registry.umbrella()

    def packaging_client(self, catalog_format: str | None = None) -> CatalogClient:
        """Get the backend that creates packages."""
        return self.registry.get(catalog_format or self._services.get("config").get("catalog_format"))

    def resolver(
        self,
        *,
        catalog_format: str | None = None,
        update: bool = False,
        fail_fast: bool = True,
        token: CancellationToken | None = None,
    ) -> resolver.DependencyResolver:
        """Get a dependency resolver using the catalogs."""
        jobs = self._services.get("config").get("jobs")
        return resolver.DependencyResolver(
            self.client(catalog_format),
            interactive=self._interactive,
            parallel=self._parallel,
            render=self._render,
            fail_fast=fail_fast,
            update=update,
            token=token,
            max_workers=jobs or None,
        )

    def add_sources(
        self, sources: Sequence[str], *, catalog_format: str | None = None
    ) -> None:
        """Start indexing sources and remember them in the user's configuration."""
        config = self._services.get("config")
        manifests: list[str] = list(config.get("manifests"))
        client = self.client(catalog_format)
        for source in sources:
            if source in manifests:
                emit.progress(f"Source {source!r} is already indexed", permanent=True)
                continue
            client.add_source(source)
            manifests.append(source)
            emit.debug(f"Added source {source!r}")
        config.set("manifests", manifests)
        config.write()

    def remove_sources(
        self, sources: Sequence[str], *, catalog_format: str | None = None
    ) -> None:
        """Stop indexing sources and forget them in the user's configuration."""
        config = self._services.get("config")
        manifests: list[str] = list(config.get("manifests"))
        client = self.client(catalog_format)
        for source in sources:
            if source not in manifests:
                emit.progress(f"Source {source!r} is not indexed", permanent=True)
                continue
            client.remove_source(source)
            manifests.remove(source)
            emit.debug(f"Removed source {source!r}")
        config.set("manifests", manifests)
        config.write()

    def update(self, catalog_format: str | None = None) -> None:
        """Refresh the local view of one catalog, or of all of them."""
        formats = [catalog_format] if catalog_format else self.registry.formats
        for name in formats:
            emit.progress(f"Updating {name} catalog")
            try:
                self.registry.get(name).update()
            except CraftError:
                raise
            except OSError as exc:
                raise errors.ExternalToolError.from_error(
                    "update", f"the {name} catalog", exc
                ) from exc

    def pull(
        self,
        workdir: pathlib.Path,
        references: Sequence[str] = (),
        *,
        catalog_format: str | None = None,
        force: bool = False,
        update: bool = False,
    ) -> list[models.Package]:
        """Fetch packages, skipping the ones that cannot be found or pulled.

        With no ``references`` the missing components of the project in
        ``workdir`` are pulled.

        :returns: The packages that were pulled.
        """
        dependency_resolver = self.resolver(
            catalog_format=catalog_format, update=update, fail_fast=False
        )
        if references:
            subjects = list(references)
            queries = [reference_query(ref, remote=force) for ref in references]
            paths: list[pathlib.Path | None] = [None] * len(references)
        else:
            project = self._project
            missing = [
                component
                for component in project.components()
                if not resolver.is_local(project, component)
                and (force or not resolver.is_materialized(project, component))
            ]
            subjects = [component.type_name_version() for component in missing]
            queries = [
                resolver.component_query(component, remote=force) for component in missing
            ]
            paths = [project.component_path(component) for component in missing]

        found: list[models.Package] = []
        destinations: list[pathlib.Path | None] = []
        for subject, path, packages in zip(
            subjects, paths, dependency_resolver.search(queries), strict=True
        ):
            try:
                found.append(
                    select_package(
                        packages, subject, interactive=self._interactive
                    )
                )
            except errors.ResolutionError as exc:
                emit.progress(f"Skipping {subject}: {exc}", permanent=True)
            else:
                destinations.append(path)

        units = dependency_resolver.fetch(
            found, workdir, destinations=destinations, use_cache=not force
        )
        return [
            package
            for package, unit in zip(found, units, strict=True)
            if unit.state == UnitState.SUCCEEDED
        ]
