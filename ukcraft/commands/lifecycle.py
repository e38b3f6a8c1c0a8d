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
"""Commands that build and package unikernels."""

from __future__ import annotations

import argparse
import pathlib
import shlex
import textwrap

from craft_cli import CommandGroup, emit
from typing_extensions import override

from ukcraft import models
from ukcraft.commands import base


def get_lifecycle_command_group() -> CommandGroup:
    """Return the lifecycle related command group."""
    return CommandGroup(
        "Lifecycle",
        [BuildCommand, PackageCommand],
        ordered=True,
    )


class BuildCommand(base.ProjectCommand):
    """Build the unikernel for a project."""

    name = "build"
    help_msg = "Configure and build the project's unikernel"
    overview = textwrap.dedent(
        """
        Resolve the project's components, fetching the ones that are missing,
        then configure and build a kernel for the selected targets. Targets
        are built one after the other.
        """
    )
    common = True

    @override
    def _fill_parser(self, parser: argparse.ArgumentParser) -> None:
        self.add_project_arguments(parser)
        self.add_target_arguments(parser)
        parser.add_argument(
            "-j", "--jobs", type=int, default=0, help="Number of jobs to pass to make"
        )
        parser.add_argument(
            "--no-fast",
            dest="fast",
            action="store_false",
            help="Do not use the maximum parallelism when compiling",
        )
        parser.add_argument(
            "--force-pull",
            action="store_true",
            help="Fetch components again even if they are present",
        )
        parser.add_argument(
            "--no-update",
            action="store_true",
            help="Do not refresh the catalog before resolving",
        )
        parser.add_argument(
            "--no-configure",
            action="store_true",
            help="Do not configure the kernel before building",
        )
        parser.add_argument(
            "--build-log",
            type=pathlib.Path,
            default=None,
            help="Save the build output to this file",
        )
        parser.add_argument(
            "--all",
            dest="all_targets",
            action="store_true",
            help="Build every target",
        )

    @override
    def _run(self, parsed_args: argparse.Namespace) -> None:
        artifact = self._services.get("build").build(
            architecture=parsed_args.architecture,
            platform=parsed_args.platform,
            target_name=parsed_args.target_name,
            rootfs=parsed_args.rootfs,
            all_targets=parsed_args.all_targets,
            force_pull=parsed_args.force_pull,
            no_update=parsed_args.no_update,
            no_configure=parsed_args.no_configure,
            fast=parsed_args.fast,
            jobs=parsed_args.jobs,
            env=parsed_args.env,
            build_log=parsed_args.build_log,
            catalog_format=parsed_args.catalog_format,
        )
        for key, value in artifact.statistics.items():
            emit.message(f"{key}: {value}")


class PackageCommand(base.ProjectCommand):
    """Package a built unikernel."""

    name = "pkg"
    help_msg = "Package the project's unikernel"
    overview = textwrap.dedent(
        """
        Package the kernels of the selected targets, together with the root
        filesystem, into the catalog. Without a Kraftfile, a kernel can be
        packaged directly by giving '--kernel', '--arch' and '--plat'.
        """
    )
    common = True

    @override
    def _fill_parser(self, parser: argparse.ArgumentParser) -> None:
        self.add_project_arguments(parser)
        self.add_target_arguments(parser)
        parser.add_argument("-n", "--name", default="", help="Name of the package")
        parser.add_argument(
            "-k", "--kernel", default="", help="Kernel to package without a project"
        )
        parser.add_argument(
            "-o", "--output", type=pathlib.Path, default=None, help="Output directory"
        )
        parser.add_argument(
            "-s",
            "--strategy",
            type=models.MergeStrategy,
            choices=list(models.MergeStrategy),
            default=models.MergeStrategy.OVERWRITE,
            help="What to do if the package already exists",
        )
        parser.add_argument(
            "--push", action="store_true", help="Push the packages once created"
        )
        parser.add_argument(
            "-a",
            "--args",
            default="",
            help="Default command-line arguments of the unikernel",
        )
        parser.add_argument(
            "-l",
            "--label",
            dest="labels",
            action="append",
            default=[],
            metavar="KEY=VALUE",
            help="Label to attach to the package (repeatable)",
        )
        parser.add_argument(
            "--no-kconfig",
            dest="kconfig",
            action="store_false",
            help="Do not include the kernel configuration in the package",
        )
        parser.add_argument(
            "--no-pull",
            dest="pull",
            action="store_false",
            help="Do not keep the runtime in the project once packaged",
        )
        parser.add_argument(
            "--runtime", default="", help="Use this runtime instead of the project's"
        )

    @override
    def _run(self, parsed_args: argparse.Namespace) -> None:
        packages = self._services.get("package").pack(
            parsed_args.name,
            architecture=parsed_args.architecture,
            platform=parsed_args.platform,
            target_name=parsed_args.target_name,
            kernel=parsed_args.kernel,
            output=parsed_args.output,
            rootfs=parsed_args.rootfs,
            strategy=parsed_args.strategy,
            push=parsed_args.push,
            args=shlex.split(parsed_args.args),
            env=parsed_args.env,
            labels=parsed_args.labels,
            kconfig=parsed_args.kconfig,
            pull=parsed_args.pull,
            runtime=parsed_args.runtime,
            catalog_format=parsed_args.catalog_format,
        )
        for package in packages:
            emit.message(f"Packaged {package} at {package.location}")
