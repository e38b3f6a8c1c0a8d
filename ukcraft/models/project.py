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
"""Project model for ukcraft.

This defines the structure of the Kraftfile, the project's input file.
"""

from __future__ import annotations

import enum
import pathlib
import shlex
from typing import Annotated, Any

import pydantic
from typing_extensions import Self

from ukcraft import util
from ukcraft.models import base
from ukcraft.util import paths

_EINITRD_KCONFIG_KEYS = (
    "CONFIG_LIBVFSCORE_ROOTFS_EINITRD",  # Deprecated
    "CONFIG_LIBVFSCORE_AUTOMOUNT_EINITRD",
    "CONFIG_LIBVFSCORE_AUTOMOUNT_CI_EINITRD",
)


class ComponentType(str, enum.Enum):
    """The kinds of component a project can depend on."""

    APPLICATION = "application"
    LIBRARY = "library"
    CORE = "core"
    TEMPLATE = "template"
    RUNTIME = "runtime"

    def __str__(self) -> str:
        return self.value


def _kconfig_value(value: Any) -> str:  # noqa: ANN401
    if isinstance(value, bool):
        return "y" if value else "n"
    if value is None:
        return ""
    return str(value)


def _expand_kconfig(value: Any) -> Any:  # noqa: ANN401
    """Expand kconfig given as a list of ``KEY=VALUE`` strings or a mapping."""
    if isinstance(value, list):
        mapping: dict[str, Any] = {}
        for item in value:
            key, val = util.split_key_value(str(item))
            mapping[key] = "y" if val is None else val
        value = mapping
    if isinstance(value, dict):
        return {
            (key if key.startswith("CONFIG_") else f"CONFIG_{key}"): _kconfig_value(val)
            for key, val in value.items()
        }
    return value


def _expand_key_values(value: Any) -> Any:  # noqa: ANN401
    """Expand a list of ``KEY=VALUE`` strings into a mapping."""
    if isinstance(value, list):
        mapping: dict[str, str] = {}
        for item in value:
            key, val = util.split_key_value(str(item))
            mapping[key] = val or ""
        return mapping
    if isinstance(value, dict):
        return {key: "" if val is None else str(val) for key, val in value.items()}
    return value


def _expand_command(value: Any) -> Any:  # noqa: ANN401
    if isinstance(value, str):
        return shlex.split(value)
    return value


KConfig = Annotated[dict[str, str], pydantic.BeforeValidator(_expand_kconfig)]
KeyValues = Annotated[dict[str, str], pydantic.BeforeValidator(_expand_key_values)]
Command = Annotated[list[str], pydantic.BeforeValidator(_expand_command)]


class Component(base.CraftBaseModel):
    """A named, versioned unit of source that a project depends on."""

    name: str
    type: ComponentType
    version: str | None = None
    source: str | None = None
    path: str | None = None
    """Where the component lives on disk, relative to the project directory."""
    kconfig: KConfig = {}

    @property
    def is_local_override(self) -> bool:
        """Whether the component is a directory on disk that is never fetched."""
        return self.path is not None and self.path == self.source

    def type_name_version(self) -> str:
        """Get a unique, human readable identifier such as ``library/musl:stable``."""
        subject = f"{self.type}/{self.name}"
        if self.version:
            subject += f":{self.version}"
        return subject

    def __str__(self) -> str:
        return self.type_name_version()


class Target(base.CraftBaseModel):
    """A concrete architecture and platform pair that produces one kernel."""

    architecture: str
    platform: str
    name: str = ""
    kernel: str | None = None
    kconfig: KConfig = {}
    command: Command = []

    @pydantic.model_validator(mode="before")
    @classmethod
    def _expand_shorthand(cls, values: Any) -> Any:  # noqa: ANN401
        """Expand ``plat/arch`` shorthands and short key names."""
        if isinstance(values, str):
            platform, _, architecture = values.partition("/")
            values = {"platform": platform, "architecture": architecture}
        if isinstance(values, dict):
            values = dict(values)
            if "arch" in values:
                values.setdefault("architecture", values.pop("arch"))
            if "plat" in values:
                values.setdefault("platform", values.pop("plat"))
        return values

    @pydantic.field_validator("platform", mode="after")
    @classmethod
    def _canonical_platform(cls, value: str) -> str:
        return util.canonical_platform(value)

    @pydantic.field_validator("architecture", "platform", mode="after")
    @classmethod
    def _not_empty(cls, value: str) -> str:
        if not value:
            raise ValueError("must not be empty")
        return value

    @property
    def key(self) -> tuple[str, str, str]:
        """The identity of this target within a project."""
        return (self.architecture, self.platform, self.name)

    @property
    def plat_arch(self) -> str:
        """The ``plat/arch`` name of this target."""
        return f"{self.platform}/{self.architecture}"

    def __str__(self) -> str:
        if self.name:
            return f"{self.name} ({self.plat_arch})"
        return self.plat_arch


def _split_name_version(value: str) -> dict[str, str]:
    """Split ``name:version`` without confusing a registry port for a version."""
    name, sep, version = value.rpartition(":")
    if not sep or "/" in version:
        return {"name": value}
    return {"name": name, "version": version}


def _looks_like_source(value: str, workdir: pathlib.Path) -> bool:
    return util.is_url(value) or util.is_local_directory(value, workdir)


def default_component_path(component_type: ComponentType, name: str) -> str:
    if component_type == ComponentType.CORE:
        return str(paths.CORE_DIR)
    if component_type in (ComponentType.TEMPLATE, ComponentType.APPLICATION):
        return str(paths.APPS_DIR / name)
    if component_type == ComponentType.RUNTIME:
        return str(paths.VENDOR_DIR / "runtimes" / name)
    return str(paths.LIBS_DIR / name)


def _expand_component(
    value: Any,  # noqa: ANN401
    component_type: ComponentType,
    workdir: pathlib.Path,
    name: str | None = None,
) -> Any:  # noqa: ANN401
    """Expand the shorthand forms a Kraftfile allows for a component."""
    if value is None or isinstance(value, Component):
        return value
    if isinstance(value, str):
        if _looks_like_source(value, workdir):
            data: dict[str, Any] = {"source": value}
        elif name is not None:
            data = {"version": value}
        else:
            data = _split_name_version(value)
    elif isinstance(value, dict):
        data = dict(value)
    else:
        return value

    if name is not None:
        data.setdefault("name", name)
    elif "name" not in data and "source" in data:
        data["name"] = pathlib.PurePosixPath(str(data["source"]).rstrip("/")).name
    data["type"] = component_type

    source = data.get("source")
    if "path" not in data and "name" in data:
        if source and util.is_local_directory(str(source), workdir):
            data["path"] = source
        else:
            data["path"] = default_component_path(component_type, str(data["name"]))
    return data


class Project(base.CraftBaseModel):
    """The class that defines the project model."""

    workdir: pathlib.Path = pydantic.Field(default=pathlib.Path(), exclude=True)
    spec: str | None = None
    name: str | None = None
    unikraft: Component | None = None
    runtime: Component | None = None
    template: Component | None = None
    libraries: dict[str, Component] = {}
    targets: list[Target] = []
    rootfs: str | None = None
    cmd: Command = []
    env: KeyValues = {}
    labels: KeyValues = {}
    kconfig: KConfig = {}

    @pydantic.model_validator(mode="before")
    @classmethod
    def _expand_kraftfile(cls, values: Any) -> Any:  # noqa: ANN401
        """Expand the shorthand forms of the Kraftfile into full models."""
        if not isinstance(values, dict):
            return values
        values = dict(values)
        if "specification" in values:
            values.setdefault("spec", values.pop("specification"))
        if values.get("spec") is not None:
            values["spec"] = str(values["spec"])
        workdir = pathlib.Path(values.get("workdir") or ".")

        if "unikraft" in values:
            values["unikraft"] = _expand_component(
                values["unikraft"], ComponentType.CORE, workdir, name="unikraft"
            )
        if "runtime" in values:
            values["runtime"] = _expand_component(
                values["runtime"], ComponentType.RUNTIME, workdir
            )
        if "template" in values:
            values["template"] = _expand_component(
                values["template"], ComponentType.TEMPLATE, workdir
            )
        libraries = values.get("libraries")
        if isinstance(libraries, dict):
            values["libraries"] = {
                lib_name: _expand_component(
                    lib, ComponentType.LIBRARY, workdir, name=lib_name
                )
                for lib_name, lib in libraries.items()
            }

        targets = values.get("targets")
        if isinstance(targets, list):
            values["targets"] = [
                _expand_target_defaults(target, values.get("name")) for target in targets
            ]
        return values

    @pydantic.model_validator(mode="after")
    def _validate_unique_targets(self) -> Self:
        seen: set[tuple[str, str, str]] = set()
        for target in self.targets:
            if target.key in seen:
                raise ValueError(
                    f"duplicate target {target.plat_arch!r} named {target.name!r}"
                )
            seen.add(target.key)
        return self

    def components(self) -> list[Component]:
        """Get the components that must be on disk to build the project.

        The template and runtime are handled separately and are not included.
        """
        components: list[Component] = []
        if self.unikraft is not None:
            components.append(self.unikraft)
        components.extend(self.libraries.values())
        return components

    def component_path(self, component: Component) -> pathlib.Path:
        """Get the on-disk location of a component."""
        path = component.path or default_component_path(component.type, component.name)
        return self.workdir / path

    def kernel_path(self, target: Target) -> pathlib.Path:
        """Get the on-disk location of a target's kernel."""
        kernel = target.kernel or _default_kernel(self.name, target)
        return self.workdir / kernel

    def embeds_initrd(self) -> bool:
        """Whether the project's kconfig compiles the initrd into the kernel."""
        return any(self.kconfig.get(key) == "y" for key in _EINITRD_KCONFIG_KEYS)

    def merge_template(self, template: Project) -> Project:
        """Merge a template project into this one.

        Entries present in this project take precedence. Entries only present
        in the template are added.
        """
        keys = {target.key for target in self.targets}
        targets = list(self.targets) + [
            target for target in template.targets if target.key not in keys
        ]
        return self.model_copy(
            update={
                "name": self.name or template.name,
                "unikraft": self.unikraft or _rebase(template.unikraft, template),
                "runtime": self.runtime or _rebase(template.runtime, template),
                "libraries": {
                    **{
                        name: _rebase(lib, template)
                        for name, lib in template.libraries.items()
                    },
                    **self.libraries,
                },
                "targets": targets,
                "rootfs": self.rootfs or _rebase_path(template.rootfs, template),
                "cmd": self.cmd or template.cmd,
                "env": {**template.env, **self.env},
                "labels": {**template.labels, **self.labels},
                "kconfig": {**template.kconfig, **self.kconfig},
            }
        )


def _default_kernel(project_name: str | None, target: Target) -> str:
    name = project_name or "kernel"
    return str(paths.BUILD_DIR / f"{name}_{target.platform}-{target.architecture}")


def _expand_target_defaults(target: Any, project_name: Any) -> Any:  # noqa: ANN401
    if isinstance(target, str):
        platform, _, architecture = target.partition("/")
        target = {"platform": platform, "architecture": architecture}
    if not isinstance(target, dict):
        return target
    target = dict(target)
    architecture = target.get("architecture", target.get("arch", ""))
    platform = util.canonical_platform(str(target.get("platform", target.get("plat", ""))))
    target.setdefault("name", f"{platform}-{architecture}")
    if "kernel" not in target:
        name = str(project_name) if project_name else "kernel"
        target["kernel"] = str(paths.BUILD_DIR / f"{name}_{platform}-{architecture}")
    return target


def _rebase_path(location: str | None, template: Project) -> str | None:
    """Make a template-relative local path usable from the merged project."""
    if location and util.is_local_directory(location, template.workdir):
        return str((template.workdir / location).resolve())
    if location and (template.workdir / location).is_file():
        return str((template.workdir / location).resolve())
    return location


def _rebase(component: Component | None, template: Project) -> Component | None:
    if component is None or not component.is_local_override:
        return component
    location = str((template.workdir / (component.source or "")).resolve())
    return component.model_copy(update={"source": location, "path": location})
