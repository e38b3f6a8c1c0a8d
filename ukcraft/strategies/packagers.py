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
"""Packagers, in the order they are tried."""

from __future__ import annotations

import abc
import contextlib
import pathlib
import tempfile
from collections.abc import Iterable, Mapping
from typing import ClassVar

from craft_cli import CraftError, emit
from typing_extensions import override

from ukcraft import driver, errors, initrd, models, targets, util
from ukcraft.strategies.base import (
    DEFAULT_RUNTIME,
    PackContext,
    Strategy,
    find_runtime,
    is_dockerfile,
    rootfs_of,
    runtime_target,
)

KERNEL_VERSION_KCONFIG = "CONFIG_UK_FULLVERSION"


def parse_labels(labels: Mapping[str, str], overrides: Iterable[str]) -> dict[str, str]:
    """Merge ``key=value`` labels over a project's labels."""
    result = dict(labels)
    for label in overrides:
        key, value = util.split_key_value(label)
        if not key or value is None:
            raise errors.IncompatibleArgumentsError(
                f"Invalid label format: {label!r}",
                resolution="Give labels as 'key=value'.",
            )
        result[key] = value
    return result


def pack_target(
    ctx: PackContext,
    target: models.Target,
    strategy: models.MergeStrategy,
    *,
    embedded_initrd: bool = False,
) -> list[models.Package]:
    """Package a single target whose kernel is already built.

    :param embedded_initrd: the kernel carries the root filesystem, so it is
        not packaged separately.
    """
    project = ctx.project
    if embedded_initrd:
        rootfs = initrd.RootfsResult(None)
    else:
        rootfs = initrd.build_rootfs(
            ctx.rootfs, ctx.workdir, architecture=target.architecture
        )

    args = list(ctx.args)
    if not args:
        if project is not None and project.cmd:
            args = list(project.cmd)
        elif target.command:
            args = list(target.command)
        else:
            args = list(rootfs.command)

    env = {
        **rootfs.env,
        **driver.collect_env(project.env if project is not None else {}, ctx.env),
    }
    labels = parse_labels(project.labels if project is not None else {}, ctx.labels)

    options = models.PackOptions(
        name=ctx.name,
        output=ctx.output,
        args=args,
        initrd=rootfs.path,
        env=env,
        labels=labels,
        kconfig=ctx.kconfig,
        kernel_version=target.kconfig.get(KERNEL_VERSION_KCONFIG),
        strategy=strategy,
    )
    emit.progress(f"Packaging {target} as {ctx.name} ({strategy})")
    try:
        return ctx.catalog.pack(target, options)
    except CraftError:
        raise
    except OSError as exc:
        raise errors.ExternalToolError.from_error("package", str(target), exc) from exc


class Packager(Strategy[PackContext]):
    """A way of turning built kernels into packages."""

    @abc.abstractmethod
    def pack(self, ctx: PackContext) -> list[models.Package]:
        """Create the packages."""


class CorePackager(Packager):
    """Package the kernels built from the project's unikraft core."""

    name: ClassVar[str] = "kraftfile-unikraft"

    @override
    def capable(self, ctx: PackContext) -> tuple[bool, str]:
        if ctx.project is None:
            return False, "no Kraftfile was found"
        if ctx.project.unikraft is None:
            return False, "cannot package without unikraft core specification"
        return True, ""

    def _select(self, ctx: PackContext, project: models.Project) -> list[models.Target]:
        selected = list(project.targets)
        if ctx.target_name or ctx.architecture or ctx.platform:
            selected = targets.filter_targets(
                selected, ctx.architecture, ctx.platform, ctx.target_name
            )

        if len(selected) > 1 and ctx.interactive:
            built = [
                target for target in selected if project.kernel_path(target).is_file()
            ]
            if not built:
                raise errors.NoTargetsSelectedError(
                    "package", details="No target has a compiled kernel."
                )
            if len(built) == 1:
                selected = built
            else:
                selected = util.select_many("Select built kernels to package", built)

        if not selected:
            raise errors.NoTargetsSelectedError("package")
        return selected

    @override
    def pack(self, ctx: PackContext) -> list[models.Package]:
        project = ctx.project
        assert project is not None
        ctx.rootfs = rootfs_of(ctx.rootfs, project)

        packages: list[models.Package] = []
        for index, target in enumerate(self._select(ctx, project)):
            # Later targets join the package the first one created.
            strategy = ctx.strategy if index == 0 else models.MergeStrategy.MERGE
            built = target.model_copy(update={"kernel": str(project.kernel_path(target))})
            packages.extend(
                pack_target(
                    ctx, built, strategy, embedded_initrd=project.embeds_initrd()
                )
            )
        return packages


class RuntimePackager(Packager):
    """Package the root filesystem on a pre-built runtime from the catalog."""

    name: ClassVar[str] = "kraftfile-runtime"

    @override
    def capable(self, ctx: PackContext) -> tuple[bool, str]:
        if ctx.project is None:
            return False, "no Kraftfile was found"
        if ctx.project.runtime is None and not ctx.runtime:
            return False, "the project does not declare a runtime"
        return True, ""

    def _reference(self, ctx: PackContext) -> str:
        if ctx.runtime:
            return ctx.runtime
        runtime = ctx.project.runtime if ctx.project is not None else None
        if runtime is None:
            return DEFAULT_RUNTIME
        if runtime.version:
            return f"{runtime.name}:{runtime.version}"
        return runtime.name

    def _target(self, ctx: PackContext) -> models.Target | None:
        declared = ctx.project.targets if ctx.project is not None else []
        if len(declared) <= 1:
            return declared[0] if declared else None
        selected = targets.select_targets(
            declared,
            ctx.architecture,
            ctx.platform,
            ctx.target_name,
            interactive=ctx.interactive,
            verb="package",
        )
        if len(selected) > 1:
            raise errors.ResolutionAmbiguousError(
                "target", candidates=[str(target) for target in selected]
            )
        return selected[0]

    @override
    def pack(self, ctx: PackContext) -> list[models.Package]:
        ctx.rootfs = rootfs_of(ctx.rootfs, ctx.project)
        target = self._target(ctx)
        architecture, platform, kconfig = ctx.architecture, ctx.platform, {}
        if target is not None:
            architecture, platform = target.architecture, target.platform
            kconfig = dict(target.kconfig)

        package = find_runtime(
            ctx.catalog,
            self._reference(ctx),
            architecture=architecture,
            platform=platform,
            kconfig=kconfig,
            interactive=ctx.interactive,
        )

        with contextlib.ExitStack() as stack:
            workdir = ctx.workdir
            if not ctx.pull:
                workdir = pathlib.Path(
                    stack.enter_context(tempfile.TemporaryDirectory(prefix="ukcraft-pkg-"))
                )
                emit.debug(f"Using runtime {package} from a temporary directory")
            (unit,) = ctx.resolver.fetch([package], workdir)
            return pack_target(ctx, runtime_target(package, unit.result), ctx.strategy)


class DockerfilePackager(RuntimePackager):
    """Package a Dockerfile root filesystem on a pre-built runtime."""

    name: ClassVar[str] = "dockerfile"

    @override
    def capable(self, ctx: PackContext) -> tuple[bool, str]:
        rootfs = rootfs_of(ctx.rootfs, ctx.project)
        if not is_dockerfile(rootfs):
            return False, f"{rootfs or 'the root filesystem'} is not a Dockerfile"
        return True, ""


class KernelPackager(Packager):
    """Package a kernel given directly on the command line."""

    name: ClassVar[str] = "cli-kernel"

    @override
    def capable(self, ctx: PackContext) -> tuple[bool, str]:
        if ctx.project is not None:
            return False, "a project is present"
        if not (ctx.kernel and ctx.architecture and ctx.platform):
            return False, "cannot package without a kernel, architecture and platform"
        return True, ""

    @override
    def pack(self, ctx: PackContext) -> list[models.Package]:
        kernel = pathlib.Path(ctx.kernel).expanduser()
        if not kernel.is_absolute():
            kernel = ctx.workdir / kernel
        target = models.Target(
            architecture=ctx.architecture,
            platform=ctx.platform,
            kernel=str(kernel),
            command=ctx.args,
        )
        return pack_target(ctx, target, ctx.strategy)


PACKAGERS: tuple[type[Packager], ...] = (
    CorePackager,
    RuntimePackager,
    DockerfilePackager,
    KernelPackager,
)
"""Packagers in priority order."""
