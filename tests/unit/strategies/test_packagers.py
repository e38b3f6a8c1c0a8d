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
"""Tests for the packagers."""

import pathlib

import pytest

from ukcraft import errors, models
from ukcraft.resolver import DependencyResolver
from ukcraft.strategies import (
    PACKAGERS,
    CorePackager,
    KernelPackager,
    PackContext,
    RuntimePackager,
    choose,
    pack_target,
    parse_labels,
)

MERGE = models.MergeStrategy.MERGE
OVERWRITE = models.MergeStrategy.OVERWRITE


@pytest.fixture
def make_context(project_path, fake_catalog):
    def _make(project=None, **kwargs):
        kwargs.setdefault("name", "helloworld")
        return PackContext(
            workdir=project_path,
            catalog=fake_catalog,
            resolver=DependencyResolver(fake_catalog, parallel=False, render=False),
            project=project,
            **kwargs,
        )

    return _make


@pytest.fixture
def target():
    return models.Target(
        architecture="x86_64",
        platform="qemu",
        kernel="/kernel",
        command=["/target-cmd"],
        kconfig={"CONFIG_UK_FULLVERSION": "0.17.0"},
    )


def test_parse_labels():
    labels = parse_labels({"owner": "me", "tier": "dev"}, ["tier=prod", "note=a=b"])

    assert labels == {"owner": "me", "tier": "prod", "note": "a=b"}


@pytest.mark.parametrize("label", ["novalue", "=value"])
def test_parse_labels_malformed(label):
    with pytest.raises(errors.IncompatibleArgumentsError, match="Invalid label format"):
        parse_labels({}, [label])


@pytest.mark.parametrize(
    ("args", "cmd", "expected"),
    [
        (["/explicit"], ["/project-cmd"], ["/explicit"]),
        ([], ["/project-cmd"], ["/project-cmd"]),
        ([], [], ["/target-cmd"]),
    ],
)
def test_pack_target_args_precedence(make_context, fake_catalog, target, args, cmd, expected):
    project = models.Project.unmarshal({"cmd": cmd, "labels": {"owner": "me"}})
    ctx = make_context(project, args=args, labels=["tier=prod"], env=["A=1"])

    pack_target(ctx, target, OVERWRITE)

    ((packed_target, options),) = fake_catalog.packed
    assert packed_target is target
    assert options.args == expected
    assert options.labels == {"owner": "me", "tier": "prod"}
    assert options.env == {"A": "1"}
    assert options.kernel_version == "0.17.0"
    assert options.strategy == OVERWRITE
    assert options.initrd is None


def test_pack_target_rootfs_defaults(make_context, fake_catalog, target, project_path, mocker):
    mocker.patch(
        "ukcraft.initrd.build_rootfs",
        return_value=mocker.Mock(
            path=pathlib.Path("/initramfs.cpio"),
            command=["/rootfs-cmd"],
            env={"FROM_ROOTFS": "1", "A": "rootfs"},
        ),
    )
    ctx = make_context(rootfs="Dockerfile", env=["A=cli"])
    no_command = target.model_copy(update={"command": []})

    pack_target(ctx, no_command, MERGE)

    ((_, options),) = fake_catalog.packed
    assert options.args == ["/rootfs-cmd"]
    assert options.env == {"FROM_ROOTFS": "1", "A": "cli"}
    assert options.initrd == pathlib.Path("/initramfs.cpio")


def test_pack_target_embedded_initrd(make_context, fake_catalog, target, mocker):
    mock_rootfs = mocker.patch("ukcraft.initrd.build_rootfs")

    pack_target(make_context(rootfs="rootfs"), target, MERGE, embedded_initrd=True)

    mock_rootfs.assert_not_called()
    assert fake_catalog.packed[0][1].initrd is None


def test_core_packager_merges_later_targets(fake_project, make_context, fake_catalog, project_path):
    ctx = make_context(fake_project, strategy=OVERWRITE)
    packager = choose([packager() for packager in PACKAGERS], ctx, "package")

    packages = packager.pack(ctx)

    assert isinstance(packager, CorePackager)
    assert len(packages) == 3
    assert [options.strategy for _, options in fake_catalog.packed] == [
        OVERWRITE,
        MERGE,
        MERGE,
    ]
    assert fake_catalog.packed[0][0].kernel == str(
        project_path / ".unikraft" / "build" / "helloworld_qemu-x86_64"
    )


def test_core_packager_filters(fake_project, make_context, fake_catalog):
    ctx = make_context(fake_project, platform="fc")

    CorePackager().pack(ctx)

    assert [target.plat_arch for target, _ in fake_catalog.packed] == ["fc/x86_64"]


def test_core_packager_nothing_selected(fake_project, make_context):
    with pytest.raises(errors.NoTargetsSelectedError, match="to package"):
        CorePackager().pack(make_context(fake_project, architecture="riscv64"))


def test_core_packager_interactive_only_offers_built(fake_project, make_context, fake_catalog, mocker):
    kernel = fake_project.kernel_path(fake_project.targets[1])
    kernel.parent.mkdir(parents=True)
    kernel.write_bytes(b"kernel")
    mock_select = mocker.patch("ukcraft.util.select_many")

    CorePackager().pack(make_context(fake_project, interactive=True))

    mock_select.assert_not_called()
    assert [target.plat_arch for target, _ in fake_catalog.packed] == ["qemu/arm64"]


def test_core_packager_interactive_nothing_built(fake_project, make_context):
    with pytest.raises(errors.NoTargetsSelectedError, match="compiled kernel"):
        CorePackager().pack(make_context(fake_project, interactive=True))


def test_core_packager_embedded_initrd(project_path, make_context, fake_catalog, mocker):
    mock_rootfs = mocker.patch("ukcraft.initrd.build_rootfs")
    project = models.Project.unmarshal(
        {
            "workdir": project_path,
            "unikraft": "stable",
            "rootfs": "rootfs",
            "kconfig": {"CONFIG_LIBVFSCORE_AUTOMOUNT_EINITRD": "y"},
            "targets": ["qemu/x86_64"],
        }
    )

    CorePackager().pack(make_context(project))

    mock_rootfs.assert_not_called()


@pytest.fixture
def runtime_project(project_path, fake_catalog, package_factory):
    fake_catalog.local = [
        package_factory(
            "nginx",
            version="latest",
            type=models.ComponentType.RUNTIME,
            architecture="x86_64",
            platform="qemu",
            kernel="kernel",
        )
    ]
    return models.Project.unmarshal(
        {"workdir": project_path, "runtime": "nginx:latest", "targets": ["qemu/x86_64"]}
    )


def test_runtime_packager(runtime_project, make_context, fake_catalog, project_path):
    ctx = make_context(runtime_project)
    packager = choose([packager() for packager in PACKAGERS], ctx, "package")

    packager.pack(ctx)

    assert isinstance(packager, RuntimePackager)
    ((target, _),) = fake_catalog.packed
    assert target.kernel == str(project_path / ".unikraft" / "runtimes" / "nginx" / "kernel")


def test_runtime_packager_no_pull(runtime_project, make_context, fake_catalog, project_path):
    RuntimePackager().pack(make_context(runtime_project, pull=False))

    ((target, _),) = fake_catalog.packed
    assert not pathlib.Path(target.kernel).is_relative_to(project_path)
    assert not pathlib.Path(target.kernel).exists()
    assert not (project_path / ".unikraft" / "runtimes").exists()


def test_runtime_packager_ambiguous_target(project_path, make_context):
    project = models.Project.unmarshal(
        {
            "workdir": project_path,
            "runtime": "nginx:latest",
            "targets": ["qemu/x86_64", "fc/x86_64"],
        }
    )

    with pytest.raises(errors.ResolutionAmbiguousError):
        RuntimePackager().pack(make_context(project))


def test_runtime_packager_override(make_context, fake_catalog, package_factory, project_path):
    fake_catalog.local = [
        package_factory(
            "python",
            version="3.12",
            type=models.ComponentType.RUNTIME,
            architecture="arm64",
            platform="fc",
            kernel="kernel",
        )
    ]
    project = models.Project.unmarshal({"workdir": project_path, "runtime": "nginx"})
    ctx = make_context(project, runtime="python:3.12", architecture="arm64", platform="fc")

    RuntimePackager().pack(ctx)

    assert fake_catalog.packed[0][0].plat_arch == "fc/arm64"


def test_kernel_packager(make_context, fake_catalog, project_path):
    ctx = make_context(kernel="build/kernel", architecture="x86_64", platform="qemu", args=["-v"])
    packager = choose([packager() for packager in PACKAGERS], ctx, "package")

    packager.pack(ctx)

    assert isinstance(packager, KernelPackager)
    ((target, options),) = fake_catalog.packed
    assert target.kernel == str(project_path / "build" / "kernel")
    assert options.args == ["-v"]


def test_kernel_packager_needs_everything(make_context):
    capable, reason = KernelPackager().capable(make_context(kernel="kernel"))

    assert not capable
    assert reason == "cannot package without a kernel, architecture and platform"
