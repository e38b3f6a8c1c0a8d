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
"""Drivers that configure and compile kernels."""

from __future__ import annotations

import abc
import os
import pathlib
import shlex
import subprocess
from collections.abc import Iterable, Mapping, Sequence
from typing import IO, TYPE_CHECKING

from craft_cli import emit
from typing_extensions import override

from ukcraft import errors, util
from ukcraft.util import paths

if TYPE_CHECKING:
    from ukcraft.models import Project, Target
    from ukcraft.scheduler import CancellationToken

ENVIRON_KCONFIG_LIMIT = 16
"""The most environment variables that can be compiled into a kernel."""
_ENVIRON_KCONFIG_KEY = "CONFIG_LIBPOSIX_ENVIRON_ENVP{index}"
_POLL_INTERVAL = 0.5


def collect_env(
    project_env: Mapping[str, str], overrides: Iterable[str] = ()
) -> dict[str, str]:
    """Merge the project's environment with ``KEY=VALUE`` overrides.

    Entries without a value take it from the current environment.
    """
    env = {key: value or os.environ.get(key, "") for key, value in project_env.items()}
    for item in overrides:
        key, value = util.split_key_value(item)
        env[key] = os.environ.get(key, "") if value is None else value
    return env


def environ_kconfig(env: Mapping[str, str], kconfig: Mapping[str, str]) -> dict[str, str]:
    """Get the kconfig entries that compile environment variables into a kernel.

    Indexes already used by ``kconfig`` are skipped.
    """
    result: dict[str, str] = {}
    index = 1
    for key, value in env.items():
        while index <= ENVIRON_KCONFIG_LIMIT and kconfig.get(
            _ENVIRON_KCONFIG_KEY.format(index=index)
        ):
            index += 1
        if index > ENVIRON_KCONFIG_LIMIT:
            emit.progress(
                f"Cannot compile in more than {ENVIRON_KCONFIG_LIMIT} "
                f"environment variables, skipping {key}",
                permanent=True,
            )
            continue
        result[_ENVIRON_KCONFIG_KEY.format(index=index)] = f"{key}={value}"
        index += 1
    return result


class KernelDriver(abc.ABC):
    """Configure and compile the kernel for a target."""

    @abc.abstractmethod
    def configure(
        self,
        project: Project,
        target: Target,
        extra_config: Mapping[str, str],
        *,
        token: CancellationToken | None = None,
    ) -> None:
        """Generate the kernel configuration for a target."""

    @abc.abstractmethod
    def build(
        self,
        project: Project,
        target: Target,
        *,
        jobs: int = 0,
        fast: bool = True,
        log_file: pathlib.Path | None = None,
        token: CancellationToken | None = None,
    ) -> None:
        """Compile the kernel for a target."""


class MakeDriver(KernelDriver):
    """Drive the Unikraft build system with ``make``."""

    def __init__(self, make: str = "make") -> None:
        self._make = make

    def _base_command(self, project: Project, target: Target) -> list[str]:
        if project.unikraft is None:
            raise errors.ExternalToolError(
                "configure",
                str(target),
                details="The project does not declare a unikraft core.",
            )
        libraries = ":".join(
            str(project.component_path(lib)) for lib in project.libraries.values()
        )
        command = [
            self._make,
            "-C",
            str(project.component_path(project.unikraft)),
            f"A={project.workdir.resolve()}",
            f"O={(project.workdir / paths.BUILD_DIR).resolve()}",
            f"P={target.platform}",
            f"ARCH={target.architecture}",
        ]
        if libraries:
            command.append(f"L={libraries}")
        return command

    def defconfig_path(self, project: Project, target: Target) -> pathlib.Path:
        """Get where the generated defconfig for a target is written."""
        return project.workdir / paths.VENDOR_DIR / f"defconfig.{target.platform}-{target.architecture}"

    @override
    def configure(
        self,
        project: Project,
        target: Target,
        extra_config: Mapping[str, str],
        *,
        token: CancellationToken | None = None,
    ) -> None:
        kconfig: dict[str, str] = {}
        for component in project.components():
            kconfig.update(component.kconfig)
        kconfig.update(project.kconfig)
        kconfig.update(target.kconfig)
        kconfig.update(extra_config)
        kconfig[f"CONFIG_PLAT_{target.platform.upper()}"] = "y"

        defconfig = self.defconfig_path(project, target)
        try:
            defconfig.parent.mkdir(parents=True, exist_ok=True)
            defconfig.write_text(
                "".join(f"{key}={value}\n" for key, value in sorted(kconfig.items()))
            )
        except OSError as exc:
            raise errors.CacheWriteError.from_os_error(exc) from exc

        command = [
            *self._base_command(project, target),
            f"UK_DEFCONFIG={defconfig.resolve()}",
            "defconfig",
        ]
        self._run(command, operation="configure", subject=str(target), token=token)

    @override
    def build(
        self,
        project: Project,
        target: Target,
        *,
        jobs: int = 0,
        fast: bool = True,
        log_file: pathlib.Path | None = None,
        token: CancellationToken | None = None,
    ) -> None:
        command = self._base_command(project, target)
        if jobs > 0:
            command.append(f"-j{jobs}")
        elif fast:
            command.append(f"-j{os.cpu_count() or 1}")
        self._run(
            command,
            operation="build",
            subject=str(target),
            token=token,
            log_file=log_file,
        )

    def _run(
        self,
        command: Sequence[str],
        *,
        operation: str,
        subject: str,
        token: CancellationToken | None,
        log_file: pathlib.Path | None = None,
    ) -> None:
        emit.debug(f"Running {shlex.join(command)}")
        try:
            if log_file is not None:
                log_file.parent.mkdir(parents=True, exist_ok=True)
                with log_file.open("w") as log:
                    returncode = self._wait(command, log, token, subject)
            else:
                with emit.open_stream(f"Running make to {operation} {subject}") as stream:
                    returncode = self._wait(command, stream, token, subject)
        except FileNotFoundError as exc:
            raise errors.ExternalToolError(
                operation,
                subject,
                details=f"{self._make!r} is not installed.",
                resolution="Install make and a cross-compiling toolchain.",
            ) from exc
        if returncode != 0:
            raise errors.ExternalToolError.from_error(
                operation,
                subject,
                subprocess.CalledProcessError(returncode, list(command)),
            )

    @staticmethod
    def _wait(
        command: Sequence[str],
        output: IO[str] | int,
        token: CancellationToken | None,
        subject: str,
    ) -> int:
        with subprocess.Popen(
            command, stdout=output, stderr=output, stdin=subprocess.DEVNULL
        ) as process:
            while True:
                try:
                    return process.wait(timeout=_POLL_INTERVAL)
                except subprocess.TimeoutExpired:
                    if token is not None and token.cancelled:
                        process.terminate()
                        process.wait()
                        raise errors.CancelledError(subject) from None
