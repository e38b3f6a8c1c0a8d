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
"""Materialise a root filesystem into an initramfs."""

from __future__ import annotations

import dataclasses
import gzip
import hashlib
import json
import os
import pathlib
import shlex
import shutil
import subprocess
import tarfile
import tempfile
from collections.abc import Callable
from typing import TYPE_CHECKING, BinaryIO, Literal

from craft_cli import emit

from ukcraft import errors
from ukcraft.cpio import CpioWriter
from ukcraft.util import paths

if TYPE_CHECKING:
    from hashlib import _Hash

RootfsKind = Literal["directory", "dockerfile", "cpio", "tar"]

_DOCKER_PLATFORMS = {
    "x86_64": "linux/amd64",
    "arm64": "linux/arm64",
    "arm": "linux/arm/v7",
}
_IGNORED_CONTEXT_DIRS = frozenset({".unikraft", ".git"})


@dataclasses.dataclass
class RootfsResult:
    """The initramfs and the defaults embedded in its specification."""

    path: pathlib.Path | None
    command: list[str] = dataclasses.field(default_factory=list)
    env: dict[str, str] = dataclasses.field(default_factory=dict)


def initramfs_path(workdir: pathlib.Path, architecture: str) -> pathlib.Path:
    """Get where the initramfs for an architecture is written."""
    return workdir / paths.BUILD_DIR / paths.INITRAMFS_ARCH_FILE_NAME.format(
        arch=architecture
    )


def _hash_tree(digest: _Hash, root: pathlib.Path) -> None:
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(d for d in dirnames if d not in _IGNORED_CONTEXT_DIRS)
        for filename in sorted(filenames):
            path = pathlib.Path(dirpath, filename)
            digest.update(path.relative_to(root).as_posix().encode() + b"\0")
            if path.is_symlink():
                digest.update(os.readlink(path).encode())
            elif path.is_file():
                digest.update(oct(path.stat().st_mode & 0o7777).encode())
                digest.update(path.read_bytes())
            digest.update(b"\0")


def _parse_instruction_args(value: str) -> list[str]:
    value = value.strip()
    if value.startswith("["):
        try:
            parsed = json.loads(value)
        except json.JSONDecodeError:
            parsed = None
        if isinstance(parsed, list):
            return [str(item) for item in parsed]
    return ["/bin/sh", "-c", value]


def _parse_env(value: str) -> dict[str, str]:
    parts = shlex.split(value)
    if len(parts) >= 2 and "=" not in parts[0]:  # noqa: PLR2004 (legacy "ENV KEY value")
        return {parts[0]: " ".join(parts[1:])}
    env: dict[str, str] = {}
    for part in parts:
        key, _, val = part.partition("=")
        env[key] = val
    return env


def parse_dockerfile(text: str) -> tuple[list[str], dict[str, str]]:
    """Extract the default command and environment of a Dockerfile's final stage."""
    lines: list[str] = []
    current = ""
    for raw in text.splitlines():
        stripped = raw.strip()
        if not current and (not stripped or stripped.startswith("#")):
            continue
        if stripped.endswith("\\"):
            current += stripped[:-1] + " "
            continue
        lines.append(current + stripped)
        current = ""
    if current:
        lines.append(current)

    entrypoint: list[str] = []
    cmd: list[str] = []
    env: dict[str, str] = {}
    for line in lines:
        instruction, _, value = line.partition(" ")
        match instruction.upper():
            case "FROM":
                entrypoint, cmd, env = [], [], {}
            case "ENTRYPOINT":
                entrypoint = _parse_instruction_args(value)
                cmd = []
            case "CMD":
                cmd = _parse_instruction_args(value)
            case "ENV":
                env.update(_parse_env(value))
    return entrypoint + cmd, env


def classify(source: pathlib.Path) -> RootfsKind:
    """Determine what kind of root filesystem specification a path is."""
    if source.is_dir():
        return "directory"
    if "dockerfile" in source.name.lower():
        return "dockerfile"
    if source.suffix == ".cpio":
        return "cpio"
    if tarfile.is_tarfile(source):
        return "tar"
    raise errors.RootfsError(
        f"Cannot use {str(source)!r} as a root filesystem.",
        resolution="Use a directory, a Dockerfile, a cpio archive or a tar archive.",
    )


class InitramfsBuilder:
    """Build an initramfs from a directory, a Dockerfile or an archive.

    Results are cached by content in ``cache_dir``. The output path is scoped
    by architecture so targets sharing a project do not collide.
    """

    def __init__(
        self,
        workdir: pathlib.Path,
        *,
        architecture: str,
        cache_dir: pathlib.Path | None = None,
        output: pathlib.Path | None = None,
        compress: bool = False,
        docker: str = "docker",
    ) -> None:
        self.workdir = workdir
        self.architecture = architecture
        self.cache_dir = cache_dir or workdir / paths.ROOTFS_CACHE_DIR
        self.output = output or initramfs_path(workdir, architecture)
        self.compress = compress
        self.docker = docker

    def _source(self, rootfs: str) -> pathlib.Path:
        source = pathlib.Path(rootfs).expanduser()
        if not source.is_absolute():
            source = self.workdir / source
        if not source.exists():
            raise errors.RootfsError(
                f"Root filesystem {rootfs!r} does not exist.",
                resolution="Check the 'rootfs' entry of the Kraftfile or the '--rootfs' parameter.",
            )
        return source

    def digest(self, kind: RootfsKind, source: pathlib.Path) -> str:
        """Get the cache key for a root filesystem specification."""
        digest = hashlib.sha256()
        digest.update(f"{kind}\0{self.compress}\0".encode())
        if kind == "dockerfile":
            digest.update(f"{self.architecture}\0".encode())
            digest.update(source.read_bytes())
            _hash_tree(digest, source.parent)
        elif kind == "directory":
            _hash_tree(digest, source)
        else:
            digest.update(source.read_bytes())
        return digest.hexdigest()

    def build(self, rootfs: str | None) -> RootfsResult:
        """Build the initramfs, or do nothing if there is no root filesystem."""
        if not rootfs:
            return RootfsResult(None)

        source = self._source(rootfs)
        kind = classify(source)
        key = self.digest(kind, source)
        cached = self.cache_dir / f"{key}.cpio"
        cached_meta = self.cache_dir / f"{key}.json"

        try:
            if cached.is_file() and cached_meta.is_file():
                emit.debug(f"Using cached initramfs for {rootfs!r}")
                meta = json.loads(cached_meta.read_text())
            else:
                emit.progress(f"Building initramfs from {rootfs}")
                self.cache_dir.mkdir(parents=True, exist_ok=True)
                partial = cached.with_suffix(".partial")
                try:
                    with partial.open("wb") as stream:
                        command, env = self._materialize(kind, source, stream)
                except BaseException:
                    partial.unlink(missing_ok=True)
                    raise
                partial.replace(cached)
                meta = {"command": command, "env": env}
                cached_meta.write_text(json.dumps(meta, sort_keys=True))

            self.output.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(cached, self.output)
        except OSError as exc:
            raise errors.CacheWriteError.from_os_error(exc) from exc

        return RootfsResult(self.output, list(meta["command"]), dict(meta["env"]))

    def _materialize(
        self, kind: RootfsKind, source: pathlib.Path, stream: BinaryIO
    ) -> tuple[list[str], dict[str, str]]:
        """Write the initramfs for a specification to ``stream``.

        :returns: The default command and environment of the specification.
        """
        if kind == "cpio":
            with source.open("rb") as archive:
                self._write(stream, lambda out: shutil.copyfileobj(archive, out))
            return [], {}
        if kind == "directory":

            def _write_tree(out: BinaryIO) -> None:
                with CpioWriter(out) as writer:
                    writer.add_tree(source)

            self._write(stream, _write_tree)
            return [], {}

        command: list[str] = []
        env: dict[str, str] = {}
        with tempfile.TemporaryDirectory(prefix="ukcraft-rootfs-") as temp_dir:
            tarball = source
            if kind == "dockerfile":
                command, env = parse_dockerfile(source.read_text())
                tarball = pathlib.Path(temp_dir, "rootfs.tar")
                self._docker_build(source, tarball)

            with tarfile.open(tarball) as archive:

                def _write_tar(out: BinaryIO) -> None:
                    with CpioWriter(out) as writer:
                        writer.add_tarfile(archive)

                self._write(stream, _write_tar)
        return command, env

    def _docker_build(self, dockerfile: pathlib.Path, tarball: pathlib.Path) -> None:
        build_command = [
            self.docker,
            "build",
            "--platform",
            _DOCKER_PLATFORMS.get(self.architecture, f"linux/{self.architecture}"),
            "--output",
            f"type=tar,dest={tarball}",
            "--file",
            str(dockerfile),
            str(dockerfile.parent),
        ]
        emit.debug(f"Running {shlex.join(build_command)}")
        try:
            with emit.open_stream(f"Building {dockerfile.name}") as stream:
                subprocess.run(
                    build_command,
                    check=True,
                    stdout=stream,
                    stderr=stream,
                    stdin=subprocess.DEVNULL,
                )
        except FileNotFoundError as exc:
            raise errors.ExternalToolError(
                "build",
                str(dockerfile),
                details=f"{self.docker!r} is not installed.",
                resolution="Install a container builder to build Dockerfile root filesystems.",
            ) from exc
        except subprocess.CalledProcessError as exc:
            raise errors.ExternalToolError.from_error("build", str(dockerfile), exc) from exc

    def _write(
        self, stream: BinaryIO, writer: Callable[[BinaryIO], None]
    ) -> None:
        if not self.compress:
            writer(stream)
            return
        with gzip.GzipFile(filename="", mode="wb", fileobj=stream, mtime=0) as compressed:
            writer(compressed)  # type: ignore[arg-type]


def build_rootfs(
    rootfs: str | None,
    workdir: pathlib.Path,
    *,
    architecture: str,
    cache_dir: pathlib.Path | None = None,
    compress: bool = False,
) -> RootfsResult:
    """Build the initramfs for a target architecture."""
    return InitramfsBuilder(
        workdir, architecture=architecture, cache_dir=cache_dir, compress=compress
    ).build(rootfs)
