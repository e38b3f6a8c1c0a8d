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
"""Service for creating and publishing packages."""

from __future__ import annotations

import pathlib
from collections.abc import Sequence
from typing import TYPE_CHECKING

from craft_cli import CraftError, emit

from ukcraft import errors, models, resolver, util
from ukcraft.catalog import CatalogClient
from ukcraft.scheduler import CancellationToken
from ukcraft.services import base
from ukcraft.strategies import PACKAGERS, PackContext, Packager, choose
from ukcraft.strategies.base import split_reference

if TYPE_CHECKING:
    from ukcraft.application import AppMetadata
    from ukcraft.services.service_factory import ServiceFactory

_PROMPT_CHOICES = (
    models.MergeStrategy.OVERWRITE,
    models.MergeStrategy.MERGE,
    models.MergeStrategy.ABORT,
    models.MergeStrategy.EXIT,
)


class PackageService(base.AppService):
    """Package built kernels with the first capable packager.

    :param packagers: packager classes in priority order.
    """

    def __init__(
        self,
        app: AppMetadata,
        services: ServiceFactory,
        *,
        packagers: Sequence[type[Packager]] = PACKAGERS,
    ) -> None:
        super().__init__(app, services)
        self._packagers = packagers

    def resolve_strategy(
        self, client: CatalogClient, name: str, strategy: models.MergeStrategy
    ) -> models.MergeStrategy:
        """Decide how to treat an existing package of the same name.

        :raises PackageExistsError: if the package exists and the strategy is ``exit``.
        """
        package_name, version = split_reference(name)
        existing = client.catalog(models.CatalogQuery(name=package_name, version=version))
        if not existing:
            if strategy in (models.MergeStrategy.PROMPT, models.MergeStrategy.EXIT):
                return models.MergeStrategy.MERGE
            return strategy

        emit.debug(f"Package {name!r} already exists")
        if strategy == models.MergeStrategy.PROMPT:
            strategy = util.select(
                f"Package {name!r} already exists: how would you like to proceed?",
                _PROMPT_CHOICES,
            )
        if strategy == models.MergeStrategy.EXIT:
            raise errors.PackageExistsError(name, str(strategy))
        return strategy

    def pack(  # noqa: PLR0913
        self,
        name: str,
        *,
        architecture: str = "",
        platform: str = "",
        target_name: str = "",
        kernel: str = "",
        output: pathlib.Path | None = None,
        rootfs: str | None = None,
        strategy: models.MergeStrategy = models.MergeStrategy.OVERWRITE,
        push: bool = False,
        args: Sequence[str] = (),
        env: Sequence[str] = (),
        labels: Sequence[str] = (),
        kconfig: bool = True,
        pull: bool = True,
        runtime: str = "",
        catalog_format: str | None = None,
    ) -> list[models.Package]:
        """Package the project in the project directory.

        :returns: The packages that were created.
        """
        if not name:
            raise errors.IncompatibleArgumentsError(
                "Cannot package without a name.", resolution="Set '--name'."
            )
        if target_name and (architecture or platform):
            raise errors.IncompatibleArgumentsError(
                "The '--arch' and '--plat' options cannot be used with '--target'."
            )
        interactive = self._interactive
        if strategy == models.MergeStrategy.PROMPT and not interactive:
            raise errors.IncompatibleArgumentsError(
                "Cannot use '--strategy prompt' when prompting is disabled.",
                resolution="Choose another merge strategy.",
            )

        project_service = self._services.get("project")
        catalog_service = self._services.get("catalog")
        client = catalog_service.packaging_client(catalog_format)
        project = project_service.get_optional()
        if project is not None:
            project = resolver.merge_local_template(project)

        token = CancellationToken()
        ctx = PackContext(
            workdir=project_service.project_dir,
            catalog=client,
            resolver=catalog_service.resolver(catalog_format=catalog_format, token=token),
            name=name,
            project=project,
            architecture=architecture,
            platform=util.canonical_platform(platform),
            target_name=target_name,
            kernel=kernel,
            output=output,
            rootfs=rootfs,
            strategy=self.resolve_strategy(client, name, strategy),
            args=list(args),
            env=list(env),
            labels=list(labels),
            kconfig=kconfig,
            pull=pull,
            runtime=runtime,
            interactive=interactive,
            token=token,
        )

        packager = choose([packager() for packager in self._packagers], ctx, "package")
        packages = packager.pack(ctx)
        if not packages:
            raise errors.NoTargetsSelectedError("package")

        for package in packages:
            emit.progress(f"Packaged {package}", permanent=True)
            if push:
                self._push(client, package)
        return packages

    def _push(self, client: CatalogClient, package: models.Package) -> None:
        emit.progress(f"Pushing {package}")
        try:
            client.push(package)
        except CraftError:
            raise
        except OSError as exc:
            raise errors.ExternalToolError.from_error("push", str(package), exc) from exc
