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
"""Shared data for all ukcraft tests."""

from __future__ import annotations

import pathlib
from collections.abc import Callable
from typing import Any

import pytest
from typing_extensions import override

from ukcraft import application, models, util
from ukcraft.catalog import CatalogClient, CatalogRegistry
from ukcraft.driver import KernelDriver
from ukcraft.models.project import default_component_path
from ukcraft.services import service_factory

FAKE_KRAFTFILE = """\
spec: v0.6
name: helloworld
unikraft: stable
libraries:
  musl: stable
targets:
  - qemu/x86_64
  - qemu/arm64
  - fc/x86_64
"""


class FakeCatalog(CatalogClient):
    """An in-memory catalog that records how it is used."""

    format = "fake"

    def __init__(
        self,
        local: list[models.Package] | None = None,
        remote: list[models.Package] | None = None,
    ) -> None:
        self.local = list(local or [])
        self.remote = list(remote or [])
        self.queries: list[models.CatalogQuery] = []
        self.pulled: list[models.Package] = []
        self.packed: list[tuple[models.Target, models.PackOptions]] = []
        self.pushed: list[models.Package] = []
        self.updates = 0
        self._sources: list[str] = []

    @override
    def catalog(self, query: models.CatalogQuery) -> list[models.Package]:
        self.queries.append(query)
        packages = self.local + self.remote if query.remote else self.local
        return [package for package in packages if query.matches(package)]

    @override
    def pull(
        self,
        package: models.Package,
        workdir: pathlib.Path,
        *,
        dest: pathlib.Path | None = None,
        use_cache: bool = True,
    ) -> pathlib.Path:
        self.pulled.append(package)
        dest = dest or workdir / default_component_path(package.type, package.name)
        dest.mkdir(parents=True, exist_ok=True)
        if package.kernel:
            (dest / package.kernel).write_bytes(b"kernel")
        return dest

    @override
    def push(self, package: models.Package) -> None:
        self.pushed.append(package)

    @override
    def update(self) -> None:
        self.updates += 1

    @override
    def add_source(self, source: str) -> None:
        self._sources.append(source)

    @override
    def remove_source(self, source: str) -> None:
        self._sources.remove(source)

    @override
    def pack(
        self, target: models.Target, options: models.PackOptions
    ) -> list[models.Package]:
        self.packed.append((target, options))
        return [
            models.Package(
                name=options.name,
                type=models.ComponentType.APPLICATION,
                format=self.format,
                architecture=target.architecture,
                platform=target.platform,
                kernel="kernel",
                location=str(target.kernel),
            )
        ]

    @override
    def is_compatible(self, source: str) -> bool:
        return source.endswith(".yaml")

    @property
    @override
    def sources(self) -> list[str]:
        return list(self._sources)


class FakeDriver(KernelDriver):
    """A kernel driver that writes a placeholder kernel instead of compiling."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, str]] = []

    @override
    def configure(self, project, target, extra_config, *, token=None) -> None:
        self.calls.append(("configure", target.plat_arch))

    @override
    def build(
        self, project, target, *, jobs=0, fast=True, log_file=None, token=None
    ) -> None:
        self.calls.append(("build", target.plat_arch))
        kernel = project.kernel_path(target)
        kernel.parent.mkdir(parents=True, exist_ok=True)
        kernel.write_bytes(b"\x7fELF" + target.plat_arch.encode())


def make_package(name: str, **kwargs: Any) -> models.Package:
    kwargs.setdefault("format", FakeCatalog.format)
    return models.Package(name=name, **kwargs)


@pytest.fixture(autouse=True)
def reset_services():
    yield
    service_factory.ServiceFactory.reset()


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    for item in ("NO_PROMPT", "NO_PARALLEL", "LOG_TYPE", "JOBS", "MANIFESTS"):
        monkeypatch.delenv(f"UKCRAFT_{item}", raising=False)
        monkeypatch.delenv(f"CRAFT_{item}", raising=False)


@pytest.fixture
def app_metadata() -> application.AppMetadata:
    return application.AppMetadata(name="ukcraft", summary="A test ukcraft")


@pytest.fixture
def project_path(tmp_path) -> pathlib.Path:
    path = tmp_path / "project"
    path.mkdir()
    return path


@pytest.fixture
def write_kraftfile(project_path) -> Callable[[str], pathlib.Path]:
    def _write(content: str = FAKE_KRAFTFILE, name: str = "Kraftfile") -> pathlib.Path:
        path = project_path / name
        path.write_text(content)
        return path

    return _write


@pytest.fixture
def fake_project(project_path) -> models.Project:
    return models.Project.unmarshal(
        {**util.safe_yaml_load(FAKE_KRAFTFILE), "workdir": project_path}
    )


@pytest.fixture
def fake_catalog() -> FakeCatalog:
    return FakeCatalog()


@pytest.fixture
def fake_driver() -> FakeDriver:
    return FakeDriver()


@pytest.fixture
def fake_services(
    tmp_path, app_metadata, project_path, fake_catalog, fake_driver, monkeypatch
) -> service_factory.ServiceFactory:
    monkeypatch.setenv("UKCRAFT_CATALOG_FORMAT", FakeCatalog.format)
    monkeypatch.setenv("UKCRAFT_LOG_TYPE", "basic")
    factory = service_factory.ServiceFactory(app_metadata)
    factory.update_kwargs("config", config_file=tmp_path / "config.yaml")
    factory.update_kwargs("project", project_dir=project_path)
    factory.update_kwargs(
        "catalog",
        registry=CatalogRegistry({FakeCatalog.format: lambda: fake_catalog}),
        cache_dir=tmp_path / "cache",
    )
    factory.update_kwargs("build", driver=fake_driver)
    return factory


@pytest.fixture
def fake_catalog_class() -> type[FakeCatalog]:
    return FakeCatalog


@pytest.fixture
def package_factory() -> Callable[..., models.Package]:
    return make_package
