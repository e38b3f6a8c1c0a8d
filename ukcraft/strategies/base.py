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
"""Capability-probed strategies and the contexts they act on."""

from __future__ import annotations

import abc
import dataclasses
import pathlib
from collections.abc import Sequence
from typing import TYPE_CHECKING, ClassVar, Generic, TypeVar

from craft_cli import emit

from ukcraft import catalog, errors, models
from ukcraft.scheduler import CancellationToken

if TYPE_CHECKING:
    from ukcraft.catalog import CatalogClient
    from ukcraft.driver import KernelDriver
    from ukcraft.resolver import DependencyResolver

DEFAULT_RUNTIME = "base:latest"
"""The runtime used to package a Dockerfile when the project names none."""

ContextT = TypeVar("ContextT")


@dataclasses.dataclass
class BuildContext:
    """Everything a builder needs, and what it leaves behind."""

    workdir: pathlib.Path
    catalog: CatalogClient
    resolver: DependencyResolver
    driver: KernelDriver
    project: models.Project | None = None
    architecture: str = ""
    platform: str = ""
    target_name: str = ""
    rootfs: str | None = None
    all_targets: bool = False
    force_pull: bool = False
    no_configure: bool = False
    fast: bool = True
    jobs: int = 0
    env: list[str] = dataclasses.field(default_factory=list)
    build_log: pathlib.Path | None = None
    interactive: bool = False
    parallel: bool = True
    render: bool = True
    token: CancellationToken = dataclasses.field(default_factory=CancellationToken)

    targets: list[models.Target] = dataclasses.field(default_factory=list)
    """The targets chosen while preparing."""
    artifact: models.Artifact = dataclasses.field(default_factory=models.Artifact)


@dataclasses.dataclass
class PackContext:
    """Everything a packager needs."""

    workdir: pathlib.Path
    catalog: CatalogClient
    resolver: DependencyResolver
    name: str
    project: models.Project | None = None
    architecture: str = ""
    platform: str = ""
    target_name: str = ""
    kernel: str = ""
    output: pathlib.Path | None = None
    rootfs: str | None = None
    strategy: models.MergeStrategy = models.MergeStrategy.MERGE
    args: list[str] = dataclasses.field(default_factory=list)
    env: list[str] = dataclasses.field(default_factory=list)
    labels: list[str] = dataclasses.field(default_factory=list)
    kconfig: bool = True
    pull: bool = True
    runtime: str = ""
    """A runtime to use instead of the one the project declares."""
    interactive: bool = False
    token: CancellationToken = dataclasses.field(default_factory=CancellationToken)


class Strategy(abc.ABC, Generic[ContextT]):
    """One way of doing something, tried in priority order."""

    name: ClassVar[str]

    @abc.abstractmethod
    def capable(self, ctx: ContextT) -> tuple[bool, str]:
        """Whether this strategy applies, and if not, why.

        This must not change ``ctx`` or anything on disk.
        """

    def __str__(self) -> str:
        return self.name


StrategyT = TypeVar("StrategyT", bound=Strategy)  # type: ignore[type-arg]


def choose(strategies: Sequence[StrategyT], ctx: object, action: str) -> StrategyT:
    """Get the first strategy capable of acting on ``ctx``.

    :raises StrategyUnavailableError: if none is.
    """
    reasons: dict[str, str] = {}
    for strategy in strategies:
        capable, reason = strategy.capable(ctx)
        if capable:
            emit.debug(f"Using {strategy.name!r} to {action}")
            return strategy
        emit.trace(f"Cannot {action} with {strategy.name!r}: {reason}")
        reasons[strategy.name] = reason
    raise errors.StrategyUnavailableError(action, reasons)


def rootfs_of(rootfs: str | None, project: models.Project | None) -> str | None:
    """Get the root filesystem to use, preferring an explicit one."""
    if rootfs:
        return rootfs
    return project.rootfs if project is not None else None


def is_dockerfile(rootfs: str | None) -> bool:
    """Whether a root filesystem names a Dockerfile."""
    return bool(rootfs) and "dockerfile" in pathlib.Path(rootfs or "").name.lower()


def rewrap_kraftcloud(name: str) -> str:
    """Move a runtime name into the KraftCloud registry namespace."""
    name = name.replace("unikarft.org/", "index.unikraft.io/")
    if name.startswith("unikraft.io"):
        return "index." + name
    if "/" in name and "unikraft.io" not in name:
        return "index.unikraft.io/" + name
    if not name.startswith("index.unikraft.io"):
        return "index.unikraft.io/official/" + name
    return name


def split_reference(reference: str) -> tuple[str, str]:
    """Split a ``name:version`` runtime reference."""
    name, sep, version = reference.rpartition(":")
    if not sep or "/" in version:
        return reference, ""
    return name, version


def find_runtime(
    client: CatalogClient,
    reference: str,
    *,
    architecture: str = "",
    platform: str = "",
    kconfig: dict[str, str] | None = None,
    interactive: bool = False,
) -> models.Package:
    """Find the single runtime package for an architecture and platform."""
    if platform == "kraftcloud":
        reference = rewrap_kraftcloud(reference)
    name, version = split_reference(reference)
    query = models.CatalogQuery(
        name=name,
        version=version,
        types=(models.ComponentType.RUNTIME,),
        architecture=architecture,
        platform=platform,
        kconfig=kconfig or {},
    )
    subject = f"runtime {reference!r}"
    if platform and architecture:
        subject += f" ({platform}/{architecture})"
    elif architecture:
        subject += f" with {architecture!r} architecture"
    elif platform:
        subject += f" with {platform!r} platform"

    packages = catalog.query_catalog(client, query)
    return catalog.select_package(
        packages, subject, interactive=interactive, kind="runtime"
    )


def runtime_target(package: models.Package, location: pathlib.Path) -> models.Target:
    """Use a pulled runtime package as a target.

    :param location: the directory the package was pulled into.
    """
    if not package.is_target:
        raise errors.CatalogError(
            f"Runtime {package} does not provide a kernel for a target.",
            resolution="Use a runtime package that declares a kernel, architecture and platform.",
        )
    target = package.as_target()
    return target.model_copy(update={"kernel": str(location / (package.kernel or ""))})
