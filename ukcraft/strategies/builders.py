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
"""Builders, in the order they are tried."""

from __future__ import annotations

import abc
import pathlib
from typing import ClassVar

from craft_cli import emit
from typing_extensions import override

from ukcraft import driver, errors, targets
from ukcraft.scheduler import Phase, ProcessModel, UnitContext, WorkUnit
from ukcraft.strategies.base import (
    DEFAULT_RUNTIME,
    BuildContext,
    Strategy,
    find_runtime,
    is_dockerfile,
    rootfs_of,
    runtime_target,
)


class Builder(Strategy[BuildContext]):
    """A way of producing kernels for a project's targets."""

    def prepare(self, ctx: BuildContext) -> None:
        """Resolve what the build needs and choose the targets to build."""

    @abc.abstractmethod
    def build(self, ctx: BuildContext) -> None:
        """Produce a kernel for each of ``ctx.targets``."""

    def statistics(self, ctx: BuildContext) -> dict[str, str]:  # noqa: ARG002
        """Describe what was built."""
        return {}


class CoreBuilder(Builder):
    """Build the unikernel from its core, libraries and application sources."""

    name: ClassVar[str] = "kraftfile-unikraft"

    @override
    def capable(self, ctx: BuildContext) -> tuple[bool, str]:
        if ctx.project is None:
            return False, "no Kraftfile was found"
        if ctx.project.unikraft is None and ctx.project.template is None:
            return False, "cannot build without unikraft core specification"
        return True, ""

    @override
    def prepare(self, ctx: BuildContext) -> None:
        assert ctx.project is not None
        ctx.rootfs = rootfs_of(ctx.rootfs, ctx.project)
        project = ctx.resolver.resolve_template(ctx.project, force=ctx.force_pull)

        if not project.targets:
            raise errors.NoTargetsSelectedError(
                details="The project does not declare any targets."
            )
        if ctx.all_targets:
            selected = list(project.targets)
        else:
            selected = targets.select_targets(
                project.targets,
                ctx.architecture,
                ctx.platform,
                ctx.target_name,
                interactive=ctx.interactive,
            )

        ctx.resolver.resolve_components(project, force=ctx.force_pull)
        ctx.project = project
        ctx.targets = selected

    @override
    def build(self, ctx: BuildContext) -> None:
        project = ctx.project
        assert project is not None
        env = driver.collect_env(project.env, ctx.env)
        extra_config = driver.environ_kconfig(env, project.kconfig)
        kernel_driver = ctx.driver

        def _units() -> list[WorkUnit]:
            units: list[WorkUnit] = []
            for target in ctx.targets:
                if not ctx.no_configure:
                    units.append(
                        WorkUnit(
                            f"configuring {target}",
                            lambda context, target=target: kernel_driver.configure(
                                project, target, extra_config, token=context.token
                            ),
                        )
                    )
                units.append(
                    WorkUnit(
                        f"building {target}",
                        lambda context, target=target: kernel_driver.build(
                            project,
                            target,
                            jobs=ctx.jobs,
                            fast=ctx.fast,
                            log_file=ctx.build_log,
                            token=context.token,
                        ),
                    )
                )
            return units

        process = ProcessModel(
            parallel=ctx.parallel, render=ctx.render, token=ctx.token
        )
        # Targets may share intermediate build outputs.
        process.run_phase(Phase("build", _units, sequential=True))

        ctx.artifact.binaries.extend(project.kernel_path(target) for target in ctx.targets)

    @override
    def statistics(self, ctx: BuildContext) -> dict[str, str]:
        assert ctx.project is not None
        stats: dict[str, str] = {}
        for target in ctx.targets:
            kernel = ctx.project.kernel_path(target)
            if kernel.is_file():
                stats[f"{target.name} kernel size"] = f"{kernel.stat().st_size} bytes"
        return stats


class RuntimeBuilder(Builder):
    """Use a pre-built runtime from the catalog instead of compiling."""

    name: ClassVar[str] = "kraftfile-runtime"

    @override
    def capable(self, ctx: BuildContext) -> tuple[bool, str]:
        if ctx.project is None:
            return False, "no Kraftfile was found"
        if ctx.project.runtime is None:
            return False, "the project does not declare a runtime"
        return True, ""

    def _reference(self, ctx: BuildContext) -> str:
        runtime = ctx.project.runtime if ctx.project is not None else None
        if runtime is None:
            return DEFAULT_RUNTIME
        if runtime.version:
            return f"{runtime.name}:{runtime.version}"
        return runtime.name

    @override
    def prepare(self, ctx: BuildContext) -> None:
        ctx.rootfs = rootfs_of(ctx.rootfs, ctx.project)
        package = find_runtime(
            ctx.catalog,
            self._reference(ctx),
            architecture=ctx.architecture,
            platform=ctx.platform,
            interactive=ctx.interactive,
        )
        (unit,) = ctx.resolver.fetch([package], ctx.workdir, use_cache=not ctx.force_pull)
        target = runtime_target(package, unit.result)
        emit.debug(f"Using runtime {package} as target {target}")
        ctx.targets = [target]

    @override
    def build(self, ctx: BuildContext) -> None:
        ctx.artifact.binaries.extend(
            pathlib.Path(target.kernel) for target in ctx.targets if target.kernel
        )


class DockerfileBuilder(RuntimeBuilder):
    """Repackage a Dockerfile root filesystem on a pre-built runtime."""

    name: ClassVar[str] = "dockerfile"

    @override
    def capable(self, ctx: BuildContext) -> tuple[bool, str]:
        rootfs = rootfs_of(ctx.rootfs, ctx.project)
        if not is_dockerfile(rootfs):
            return False, f"{rootfs or 'the root filesystem'} is not a Dockerfile"
        return True, ""


BUILDERS: tuple[type[Builder], ...] = (CoreBuilder, RuntimeBuilder, DockerfileBuilder)
"""Builders in priority order."""
