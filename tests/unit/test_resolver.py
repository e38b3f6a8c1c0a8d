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
"""Tests for the dependency resolver."""

import pytest
from craft_cli import CraftError

from ukcraft import errors, models
from ukcraft.resolver import DependencyResolver, is_materialized, merge_local_template
from ukcraft.scheduler import UnitState

LIBRARY = models.ComponentType.LIBRARY
CORE = models.ComponentType.CORE


@pytest.fixture
def project(project_path):
    (project_path / ".unikraft" / "unikraft").mkdir(parents=True)
    return models.Project.unmarshal(
        {
            "workdir": project_path,
            "name": "helloworld",
            "unikraft": "stable",
            "libraries": {"musl": "stable"},
            "targets": ["qemu/x86_64"],
        }
    )


@pytest.fixture
def resolver(fake_catalog):
    return DependencyResolver(fake_catalog, parallel=False, render=False)


def test_resolve_missing_library(project, project_path, resolver, fake_catalog, package_factory):
    musl = package_factory("musl", version="stable", type=LIBRARY)
    fake_catalog.remote = [musl]

    resolver.resolve(project)

    # One local query found nothing, so the remote one ran.
    assert [query.remote for query in fake_catalog.queries] == [False, True]
    assert fake_catalog.pulled == [musl]
    assert (project_path / ".unikraft" / "libs" / "musl").is_dir()


def test_resolve_is_idempotent(project, resolver, fake_catalog, package_factory):
    fake_catalog.local = [package_factory("musl", version="stable", type=LIBRARY)]
    resolver.resolve(project)
    queries, pulls = len(fake_catalog.queries), len(fake_catalog.pulled)

    resolver.resolve(project)

    assert len(fake_catalog.queries) == queries
    assert len(fake_catalog.pulled) == pulls


def test_resolve_into_declared_path(project_path, resolver, fake_catalog, package_factory):
    (project_path / ".unikraft" / "unikraft").mkdir(parents=True)
    project = models.Project.unmarshal(
        {
            "workdir": project_path,
            "name": "helloworld",
            "unikraft": "stable",
            "libraries": {"musl": {"version": "stable", "path": "vendor/musl"}},
            "targets": ["qemu/x86_64"],
        }
    )
    fake_catalog.local = [package_factory("musl", version="stable", type=LIBRARY)]

    resolver.resolve(project)
    resolver.resolve(project)

    assert (project_path / "vendor" / "musl").is_dir()
    assert not (project_path / ".unikraft" / "libs" / "musl").exists()
    assert len(fake_catalog.pulled) == 1


def test_resolve_scoped_by_source(project_path, resolver, fake_catalog, package_factory):
    (project_path / ".unikraft" / "unikraft").mkdir(parents=True)
    project = models.Project.unmarshal(
        {
            "workdir": project_path,
            "name": "helloworld",
            "unikraft": "stable",
            "libraries": {
                "musl": {"version": "stable", "source": "https://b.example/index.yaml"}
            },
            "targets": ["qemu/x86_64"],
        }
    )
    musl_a, musl_b = (
        package_factory("musl", version="stable", type=LIBRARY, source=source)
        for source in ("https://a.example/index.yaml", "https://b.example/index.yaml")
    )
    fake_catalog.local = [musl_a, musl_b]

    resolver.resolve(project)

    assert fake_catalog.pulled == [musl_b]


def test_resolve_nothing_missing(project, project_path, resolver, fake_catalog, emitter):
    (project_path / ".unikraft" / "libs" / "musl").mkdir(parents=True)

    resolver.resolve(project)

    assert fake_catalog.queries == []
    assert fake_catalog.pulled == []
    emitter.assert_debug("All components are available locally")


def test_resolve_local_source_never_fetched(project_path, resolver, fake_catalog):
    (project_path / "unikraft-src").mkdir()
    (project_path / "musl-src").mkdir()
    project = models.Project.unmarshal(
        {
            "workdir": project_path,
            "unikraft": {"source": "unikraft-src"},
            "libraries": {"musl": {"source": "musl-src"}},
        }
    )

    resolver.resolve(project, force=True)

    assert fake_catalog.queries == []
    assert fake_catalog.pulled == []


def test_resolve_force_queries_remote(project, project_path, fake_catalog, package_factory, mocker):
    (project_path / ".unikraft" / "libs" / "musl").mkdir(parents=True)
    fake_catalog.remote = [
        package_factory("unikraft", version="stable", type=CORE),
        package_factory("musl", version="stable", type=LIBRARY),
    ]
    spy_pull = mocker.spy(fake_catalog, "pull")
    resolver = DependencyResolver(fake_catalog, parallel=False, render=False)

    resolver.resolve(project, force=True)

    assert [query.remote for query in fake_catalog.queries] == [True, True]
    assert len(fake_catalog.pulled) == 2
    for call in spy_pull.call_args_list:
        assert call.kwargs["use_cache"] is False


def test_resolve_not_found(project, resolver):
    with pytest.raises(errors.ResolutionNotFoundError) as raised:
        resolver.resolve(project)

    assert raised.value.subject == "library/musl:stable"


def test_resolve_ambiguous_non_interactive(project, resolver, fake_catalog, package_factory):
    fake_catalog.local = [
        package_factory("musl", version="stable", type=LIBRARY, location="a"),
        package_factory("musl", version="stable", type=LIBRARY, location="b"),
    ]

    with pytest.raises(errors.ResolutionAmbiguousError) as raised:
        resolver.resolve(project)

    assert len(raised.value.candidates) == 2
    assert fake_catalog.pulled == []


def test_resolve_ambiguous_interactive(project, fake_catalog, package_factory, mocker):
    first = package_factory("musl", version="stable", type=LIBRARY, location="a")
    second = package_factory("musl", version="stable", type=LIBRARY, location="b")
    fake_catalog.local = [first, second]
    mock_select = mocker.patch("ukcraft.util.select", return_value=second)
    resolver = DependencyResolver(
        fake_catalog, interactive=True, parallel=False, render=False
    )

    resolver.resolve(project)

    mock_select.assert_called_once()
    assert fake_catalog.pulled == [second]


def test_resolve_updates_once(project_path, fake_catalog, package_factory):
    project = models.Project.unmarshal(
        {
            "workdir": project_path,
            "unikraft": "stable",
            "libraries": {"musl": "stable", "lwip": "stable"},
        }
    )
    fake_catalog.local = [
        package_factory("unikraft", version="stable", type=CORE),
        package_factory("musl", version="stable", type=LIBRARY),
        package_factory("lwip", version="stable", type=LIBRARY),
    ]
    resolver = DependencyResolver(fake_catalog, update=True, render=False)

    resolver.resolve(project)
    resolver.search([models.CatalogQuery(name="musl")])

    assert fake_catalog.updates == 1
    assert len(fake_catalog.pulled) == 3


def test_fetch_failure_stops_resolution(project, resolver, fake_catalog, package_factory, mocker):
    fake_catalog.local = [package_factory("musl", version="stable", type=LIBRARY)]
    mocker.patch.object(fake_catalog, "pull", side_effect=CraftError("broken archive"))

    with pytest.raises(CraftError, match="broken archive"):
        resolver.resolve(project)


def test_fetch_wraps_os_errors(project, fake_catalog, package_factory, mocker):
    mocker.patch("time.sleep")
    package = package_factory("musl", version="stable", type=LIBRARY)
    mocker.patch.object(fake_catalog, "pull", side_effect=OSError("connection reset"))
    resolver = DependencyResolver(fake_catalog, render=False, fail_fast=False)

    (unit,) = resolver.fetch([package], project.workdir)

    assert unit.state == UnitState.FAILED
    assert isinstance(unit.error, errors.ExternalToolError)
    assert unit.error.operation == "pull"
    assert isinstance(unit.error.__cause__, OSError)


def test_resolve_template(project_path, resolver, fake_catalog, package_factory):
    template_dir = project_path / ".unikraft" / "apps" / "base-app"
    (project_path / ".unikraft" / "unikraft").mkdir(parents=True)
    (project_path / ".unikraft" / "libs" / "musl").mkdir(parents=True)
    template_dir.mkdir(parents=True)
    (template_dir / "Kraftfile").write_text(
        "name: base-app\n"
        "unikraft: stable\n"
        "libraries:\n  musl: stable\n"
        "targets:\n  - qemu/x86_64\n  - fc/x86_64\n"
        "env:\n  GREETING: hello\n"
    )
    project = models.Project.unmarshal(
        {
            "workdir": project_path,
            "name": "mine",
            "template": "base-app:latest",
            "targets": ["qemu/x86_64"],
            "env": {"GREETING": "hi"},
        }
    )

    merged = resolver.resolve(project)

    assert fake_catalog.queries == []
    assert merged.name == "mine"
    assert merged.unikraft is not None
    assert list(merged.libraries) == ["musl"]
    assert [target.plat_arch for target in merged.targets] == ["qemu/x86_64", "fc/x86_64"]
    assert merged.env == {"GREETING": "hi"}


def test_merge_local_template_does_not_fetch(project_path):
    project = models.Project.unmarshal(
        {"workdir": project_path, "template": "base-app:latest"}
    )

    assert merge_local_template(project) is project
    assert not is_materialized(project, project.template)
