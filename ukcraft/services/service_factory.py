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
"""Lazy registry of ukcraft's services."""

from __future__ import annotations

import dataclasses
import importlib
from typing import TYPE_CHECKING, Any, ClassVar, Literal, cast, overload

from ukcraft.services import base

if TYPE_CHECKING:
    from ukcraft.application import AppMetadata
    from ukcraft.services.build import BuildService
    from ukcraft.services.catalog import CatalogService
    from ukcraft.services.config import ConfigService
    from ukcraft.services.package import PackageService
    from ukcraft.services.project import ProjectService

_ServiceRef = tuple[str, str] | type[base.AppService]

# Each default service lives in ``ukcraft.services.<name>``.
_DEFAULT_SERVICES = {
    "build": "BuildService",
    "catalog": "CatalogService",
    "config": "ConfigService",
    "package": "PackageService",
    "project": "ProjectService",
}


@dataclasses.dataclass
class ServiceFactory:
    """Create services on first use, once per factory.

    Services registered by name are only imported when first requested, so a
    command that never touches the catalog never imports it. Services are also
    reachable as attributes, e.g. ``factory.catalog``.
    """

    _registry: ClassVar[dict[str, _ServiceRef]] = {}

    app: AppMetadata

    if TYPE_CHECKING:
        build: BuildService = None  # type: ignore[assignment]
        catalog: CatalogService = None  # type: ignore[assignment]
        config: ConfigService = None  # type: ignore[assignment]
        package: PackageService = None  # type: ignore[assignment]
        project: ProjectService = None  # type: ignore[assignment]

    def __post_init__(self) -> None:
        self._kwargs: dict[str, dict[str, Any]] = {}
        self._instances: dict[str, base.AppService] = {}

    @classmethod
    def register(
        cls,
        name: str,
        service_class: type[base.AppService] | str,
        *,
        module: str | None = None,
    ) -> None:
        """Register a service class, or the name of one in ``module``."""
        by_name = isinstance(service_class, str)
        if by_name and module is None:
            raise KeyError("Must set module if service_class is set by name.")
        if not by_name and module is not None:
            raise KeyError("Must not set module if service_class is passed by value.")
        cls._registry[name] = (
            (cast(str, module), cast(str, service_class)) if by_name else service_class
        )

    @classmethod
    def reset(cls) -> None:
        """Forget registered services and register the defaults again."""
        cls._registry.clear()
        for name, class_name in _DEFAULT_SERVICES.items():
            cls.register(name, class_name, module=f"ukcraft.services.{name}")

    @classmethod
    def get_class(cls, name: str) -> type[base.AppService]:
        try:
            ref = cls._registry[name]
        except KeyError:
            raise AttributeError(f"Not a registered service: {name}") from None
        if isinstance(ref, tuple):
            module_name, class_name = ref
            return getattr(importlib.import_module(module_name), class_name)
        return ref

    def update_kwargs(self, service: str, **kwargs: Any) -> None:
        """Add keyword arguments for creating ``service``, replacing earlier ones."""
        self._kwargs.setdefault(service, {}).update(kwargs)

    @overload
    def get(self, service: Literal["build"]) -> BuildService: ...
    @overload
    def get(self, service: Literal["catalog"]) -> CatalogService: ...
    @overload
    def get(self, service: Literal["config"]) -> ConfigService: ...
    @overload
    def get(self, service: Literal["package"]) -> PackageService: ...
    @overload
    def get(self, service: Literal["project"]) -> ProjectService: ...
    @overload
    def get(self, service: str) -> base.AppService: ...
    def get(self, service: str) -> base.AppService:
        """Get the factory's instance of a service, creating and setting it up once."""
        instance = self._instances.get(service)
        if instance is None:
            service_class = self.get_class(service)
            instance = service_class(
                app=self.app, services=self, **self._kwargs.get(service, {})
            )
            instance.setup()
            self._instances[service] = instance
        return instance

    def __getattr__(self, name: str) -> base.AppService:
        if name.startswith("_"):
            raise AttributeError(name)
        instance = self.get(name)
        setattr(self, name, instance)
        return instance


ServiceFactory.reset()
