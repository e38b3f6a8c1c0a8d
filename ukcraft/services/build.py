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
"""Service for building a project's kernels."""

from __future__ import annotations

import pathlib
from collections.abc import Sequence
from typing import TYPE_CHECKING

from craft_cli import emit

from ukcraft import initrd, models
from ukcraft.driver import KernelDriver, MakeDriver
from ukcraft.scheduler import CancellationToken
from ukcraft.services import base
from ukcraft.strategies import BUILDERS, BuildContext, Builder, choose

if TYPE_CHECKING:
    from ukcraft.application import AppMetadata
    from ukcraft.services.service_factory import ServiceFactory


class BuildService(base.AppService):
    """Build kernels with the first capable builder.

    :param driver: the kernel build system to drive.
    :param builders: builder classes in priority order.
    """

    def __init__(
        self,
        app: AppMetadata,
        services: ServiceFactory,
        *,
        driver: KernelDriver | None = None,
        builders: Sequence[type[Builder]] = BUILDERS,
    ) -> None:
        super().__init__(app, services)
        self._driver = driver or MakeDriver()
        self._builders = builders

    def build(  # noqa: PLR0913
        self,
        *,
        architecture: str = "",
        platform: str = "",
        target_name: str = "",
        rootfs: str | None = None,
        all_targets: bool = False,
        force_pull: bool = False,
        no_update: bool = False,
        no_configure: bool = False,
        fast: bool = True,
        jobs: int = 0,
        env: Sequence[str] = (),
        build_log: pathlib.Path | None = None,
        catalog_format: str | None = None,
    ) -> models.Artifact:
        """Build the project in the project directory.

        :returns: The kernels and root filesystems that were produced.
        """
        project_service = self._services.get("project")
        catalog_service = self._services.get("catalog")
        token = CancellationToken()
        ctx = BuildContext(
            workdir=project_service.project_dir,
            catalog=catalog_service.client(catalog_format),
            resolver=catalog_service.resolver(
                catalog_format=catalog_format,
                update=force_pull or not no_update,
                token=token,
            ),
            driver=self._driver,
            project=project_service.get_optional(),
            architecture=architecture,
            platform=platform,
            target_name=target_name,
            rootfs=rootfs,
            all_targets=all_targets,
            force_pull=force_pull,
            no_configure=no_configure,
            fast=fast,
            jobs=jobs or self._services.get("config").get("jobs"),
            env=list(env),
            build_log=build_log,
            interactive=self._interactive,
            parallel=self._parallel,
            render=self._render,
            token=token,
        )

        builder = choose([builder() for builder in self._builders], ctx, "build")
        builder.prepare(ctx)
        builder.build(ctx)
        ctx.artifact.statistics.update(builder.statistics(ctx))
        if ctx.project is not None:
            project_service.set(ctx.project)

        if ctx.project is not None and ctx.project.embeds_initrd():
            emit.debug("The root filesystem is embedded in the kernel")
        else:
            for arch in dict.fromkeys(target.architecture for target in ctx.targets):
                result = initrd.build_rootfs(ctx.rootfs, ctx.workdir, architecture=arch)
                if result.path is not None:
                    ctx.artifact.initramfs.append(result.path)

        for path in ctx.artifact.files():
            emit.progress(f"Built {path}", permanent=True)
        return ctx.artifact
