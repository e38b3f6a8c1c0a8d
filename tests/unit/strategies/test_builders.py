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
"""Tests for the builders."""

import pytest

from ukcraft import errors, models
from ukcraft.resolver import DependencyResolver
from ukcraft.strategies import (
    BUILDERS,
    BuildContext,
    CoreBuilder,
    DockerfileBuilder,
    RuntimeBuilder,
    choose,
)


@pytest.fixture
def materialized(project_path):
    (project_path / ".unikraft" / "unikraft").mkdir(parents=True)
    (project_path / ".unikraft" / "libs" / "musl").mkdir(parents=True)


@pytest.fixture
def make_context(project_path, fake_catalog, fake_driver):
    def _make(project=None, **kwargs):
        return BuildContext(
            workdir=project_path,
            catalog=fake_catalog,
            resolver=DependencyResolver(fake_catalog, parallel=False, render=False),
            driver=fake_driver,
            project=project,
            render=False,
            **kwargs,
        )

    return _make


@pytest.fixture
def runtime_package(package_factory):
    return package_factory(
        "nginx",
        version="latest",
        type=models.ComponentType.RUNTIME,
        architecture="x86_64",
        platform="qemu",
        kernel="kernel",
    )


@pytest.mark.usefixtures("materialized")
def test_core_builder_architecture_filter(fake_project, make_context, fake_driver, project_path):
    ctx = make_context(fake_project, architecture="x86_64")
    builder = choose([builder() for builder in BUILDERS], ctx, "build")

    builder.prepare(ctx)
    builder.build(ctx)

    assert isinstance(builder, CoreBuilder)
    assert [target.plat_arch for target in ctx.targets] == ["qemu/x86_64", "fc/x86_64"]
    assert fake_driver.calls == [
        ("configure", "qemu/x86_64"),
        ("build", "qemu/x86_64"),
        ("configure", "fc/x86_64"),
        ("build", "fc/x86_64"),
    ]
    assert ctx.artifact.binaries == [
        project_path / ".unikraft" / "build" / "helloworld_qemu-x86_64",
        project_path / ".unikraft" / "build" / "helloworld_fc-x86_64",
    ]


@pytest.mark.usefixtures("materialized")
def test_core_builder_all_targets_no_configure(fake_project, make_context, fake_driver):
    ctx = make_context(fake_project, all_targets=True, no_configure=True)
    builder = CoreBuilder()

    builder.prepare(ctx)
    builder.build(ctx)

    assert [call[0] for call in fake_driver.calls] == ["build", "build", "build"]
    assert set(builder.statistics(ctx)) == {
        "qemu-x86_64 kernel size",
        "qemu-arm64 kernel size",
        "fc-x86_64 kernel size",
    }


@pytest.mark.usefixtures("materialized")
def test_core_builder_nothing_selected(fake_project, make_context, fake_driver):
    ctx = make_context(fake_project, architecture="riscv64")

    with pytest.raises(errors.NoTargetsSelectedError):
        CoreBuilder().prepare(ctx)

    assert fake_driver.calls == []


def test_core_builder_no_targets(project_path, make_context):
    project = models.Project.unmarshal({"workdir": project_path, "unikraft": "stable"})

    with pytest.raises(errors.NoTargetsSelectedError, match="No targets selected"):
        CoreBuilder().prepare(make_context(project))


def test_core_builder_selects_before_fetching(fake_project, make_context, fake_catalog):
    ctx = make_context(fake_project, architecture="riscv64")

    with pytest.raises(errors.NoTargetsSelectedError):
        CoreBuilder().prepare(ctx)

    assert fake_catalog.queries == []


def test_core_builder_compiles_env(project_path, make_context, fake_driver, mocker):
    (project_path / ".unikraft" / "unikraft").mkdir(parents=True)
    project = models.Project.unmarshal(
        {
            "workdir": project_path,
            "unikraft": "stable",
            "env": {"A": "1"},
            "targets": ["qemu/x86_64"],
        }
    )
    spy = mocker.spy(fake_driver, "configure")
    ctx = make_context(project, env=["B=2"])
    builder = CoreBuilder()

    builder.prepare(ctx)
    builder.build(ctx)

    assert spy.call_args.args[2] == {
        "CONFIG_LIBPOSIX_ENVIRON_ENVP1": "A=1",
        "CONFIG_LIBPOSIX_ENVIRON_ENVP2": "B=2",
    }


def test_chain_prefers_core(project_path, make_context):
    project = models.Project.unmarshal(
        {"workdir": project_path, "unikraft": "stable", "runtime": "nginx:latest"}
    )

    chosen = choose([builder() for builder in BUILDERS], make_context(project), "build")

    assert isinstance(chosen, CoreBuilder)


def test_chain_without_project(make_context):
    with pytest.raises(errors.StrategyUnavailableError) as raised:
        choose([builder() for builder in BUILDERS], make_context(), "build")

    assert list(raised.value.reasons) == [
        "kraftfile-unikraft",
        "kraftfile-runtime",
        "dockerfile",
    ]


def test_runtime_builder(project_path, make_context, fake_catalog, runtime_package):
    fake_catalog.local = [runtime_package]
    project = models.Project.unmarshal(
        {"workdir": project_path, "runtime": "nginx:latest"}
    )
    ctx = make_context(project, architecture="x86_64", platform="qemu")
    builder = choose([builder() for builder in BUILDERS], ctx, "build")

    builder.prepare(ctx)
    builder.build(ctx)

    assert isinstance(builder, RuntimeBuilder)
    kernel = project_path / ".unikraft" / "runtimes" / "nginx" / "kernel"
    assert ctx.targets[0].kernel == str(kernel)
    assert ctx.artifact.binaries == [kernel]


def test_dockerfile_builder_without_project(project_path, make_context, fake_catalog, package_factory):
    fake_catalog.local = [
        package_factory(
            "base",
            version="latest",
            type=models.ComponentType.RUNTIME,
            architecture="x86_64",
            platform="qemu",
            kernel="kernel",
        )
    ]
    ctx = make_context(rootfs="Dockerfile", architecture="x86_64", platform="qemu")
    builder = choose([builder() for builder in BUILDERS], ctx, "build")

    builder.prepare(ctx)

    assert isinstance(builder, DockerfileBuilder)
    assert ctx.targets[0].plat_arch == "qemu/x86_64"
