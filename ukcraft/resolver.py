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
"""Resolve a project's components against a catalog and fetch what is missing."""

from __future__ import annotations

import pathlib
from collections.abc import Sequence
from typing import TYPE_CHECKING

from craft_cli import CraftError, emit

from ukcraft import catalog, errors, kraftfile, models, util
from ukcraft.scheduler import (
    CancellationToken,
    Phase,
    PhaseKind,
    ProcessModel,
    UnitContext,
    WorkUnit,
)
from ukcraft.util.retry import retry

if TYPE_CHECKING:
    from ukcraft.catalog import CatalogClient


def is_local(project: models.Project, component: models.Component) -> bool:
    """Whether a component is provided from a local directory and never fetched."""
    return component.is_local_override or util.is_local_directory(
        component.source, project.workdir
    )


def is_materialized(project: models.Project, component: models.Component) -> bool:
    """Whether a component is already on disk."""
    return is_local(project, component) or project.component_path(component).is_dir()


def merge_local_template(project: models.Project) -> models.Project:
    """Merge the project's template in if it is already on disk, without fetching."""
    template = project.template
    if template is None or not is_materialized(project, template):
        return project
    return project.merge_template(kraftfile.load_project(project.component_path(template)))


def component_query(component: models.Component, *, remote: bool = False) -> models.CatalogQuery:
    """Get the catalog query that finds a component."""
    return models.CatalogQuery(
        name=component.name,
        version=component.version or "",
        types=(component.type,),
        source=component.source or "",
        remote=remote,
    )


class DependencyResolver:
    """Make sure every component of a project is available on disk.

    :param client: the catalog to query and pull from.
    :param interactive: whether to ask the user when a query is ambiguous.
    :param parallel: whether queries and fetches may run concurrently.
    :param fail_fast: abort on the first failed fetch.
    :param update: refresh the catalog before the first query.
    """

    def __init__(
        self,
        client: CatalogClient,
        *,
        interactive: bool = False,
        parallel: bool = True,
        render: bool = True,
        fail_fast: bool = True,
        update: bool = False,
        token: CancellationToken | None = None,
        max_workers: int | None = None,
    ) -> None:
        self._client = client
        self._interactive = interactive
        self._update = update
        self._updated = False
        self._parallel = parallel
        self._render = render
        self._fail_fast = fail_fast
        self._max_workers = max_workers
        self.token = token or CancellationToken()

    def _process(self) -> ProcessModel:
        return ProcessModel(
            parallel=self._parallel,
            fail_fast=self._fail_fast,
            render=self._render,
            max_workers=self._max_workers,
            token=self.token,
        )

    def _ensure_updated(self) -> None:
        if not self._update or self._updated:
            return
        self._updated = True
        emit.progress("Updating package catalog")
        try:
            self._client.update()
        except CraftError:
            raise
        except OSError as exc:
            raise errors.ExternalToolError.from_error("update", "the catalog", exc) from exc

    def resolve(self, project: models.Project, *, force: bool = False) -> models.Project:
        """Resolve and fetch everything a project needs.

        :param force: re-fetch components even if they are already on disk.
        :returns: The project, with its template merged in.
        """
        project = self.resolve_template(project, force=force)
        self.resolve_components(project, force=force)
        return project

    def resolve_components(self, project: models.Project, *, force: bool = False) -> None:
        """Fetch the project's components that are not on disk yet."""
        missing = [
            component
            for component in project.components()
            if not is_local(project, component)
            and (force or not is_materialized(project, component))
        ]
        if not missing:
            emit.debug("All components are available locally")
            return

        packages = self.find(missing, remote=force)
        self.fetch(
            packages,
            project.workdir,
            destinations=[project.component_path(component) for component in missing],
            use_cache=not force,
        )

    def resolve_template(
        self, project: models.Project, *, force: bool = False
    ) -> models.Project:
        """Fetch the project's template if needed and merge it into the project."""
        template = project.template
        if template is None:
            return project

        path = project.component_path(template)
        if not is_local(project, template) and (
            force or not is_materialized(project, template)
        ):
            (package,) = self.find([template], remote=force)
            self.fetch(
                [package], project.workdir, destinations=[path], use_cache=not force
            )

        emit.debug(f"Merging template {template} from {str(path)!r}")
        return project.merge_template(kraftfile.load_project(path))

    def search(self, queries: Sequence[models.CatalogQuery]) -> list[list[models.Package]]:
        """Run catalog queries as one search phase.

        :returns: The packages found for each query, in order. A query whose
            unit failed without aborting the phase found nothing.
        """
        self._ensure_updated()

        def _search(query: models.CatalogQuery) -> WorkUnit:
            def _run(context: UnitContext) -> list[models.Package]:
                context.check()
                return catalog.query_catalog(self._client, query)

            return WorkUnit(f"searching {query}", _run)

        units = self._process().run_phase(
            Phase("search", [_search(query) for query in queries], PhaseKind.SEARCH)
        )
        return [list(unit.result or []) for unit in units]

    def find(
        self, components: Sequence[models.Component], *, remote: bool = False
    ) -> list[models.Package]:
        """Find exactly one package for each component."""
        results = self.search(
            [component_query(component, remote=remote) for component in components]
        )
        return [
            catalog.select_package(
                packages,
                component.type_name_version(),
                interactive=self._interactive,
                kind=str(component.type),
            )
            for component, packages in zip(components, results, strict=True)
        ]

    def fetch(
        self,
        packages: Sequence[models.Package],
        workdir: pathlib.Path,
        *,
        destinations: Sequence[pathlib.Path | None] | None = None,
        use_cache: bool = True,
    ) -> list[WorkUnit]:
        """Pull packages into a project directory as one action phase.

        :param destinations: where each package goes, in the same order as
            ``packages``. ``None`` leaves the choice to the catalog.
        """
        if destinations is None:
            destinations = [None] * len(packages)

        def _pull_unit(package: models.Package, dest: pathlib.Path | None) -> WorkUnit:
            def _run(context: UnitContext) -> pathlib.Path:
                context.check()
                try:
                    return retry(
                        f"pull {package}",
                        OSError,
                        self._client.pull,
                        package,
                        workdir,
                        dest=dest,
                        use_cache=use_cache,
                    )
                except CraftError:
                    raise
                except OSError as exc:
                    raise errors.ExternalToolError.from_error("pull", str(package), exc) from exc

            return WorkUnit(f"pulling {package}", _run)

        units = [
            _pull_unit(package, dest)
            for package, dest in zip(packages, destinations, strict=True)
        ]
        process = self._process()
        return process.run_phase(Phase("fetch", units, PhaseKind.ACTION))
