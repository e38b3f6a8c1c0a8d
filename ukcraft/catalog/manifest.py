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
"""A catalog backend driven by YAML index files.

An index lists packages and where their archives live::

    packages:
      - name: musl
        version: stable
        type: library
        location: musl-stable.tar.gz
      - name: nginx
        version: latest
        type: runtime
        architecture: x86_64
        platform: qemu
        kernel: kernel
        location: https://example.com/nginx_qemu-x86_64.tar.gz

Relative locations are relative to the index itself.
"""

from __future__ import annotations

import hashlib
import io
import pathlib
import shutil
import tarfile
import urllib.parse
from collections.abc import Iterable
from typing import Any, ClassVar

import requests
from craft_cli import emit
from typing_extensions import override

from ukcraft import errors, models, util
from ukcraft.catalog._client import CatalogClient
from ukcraft.models.project import default_component_path

INDEX_FILE_NAME = "index.yaml"
METADATA_FILE_NAME = "metadata.yaml"
_INDEX_SUFFIXES = (".yaml", ".yml")
_REQUEST_TIMEOUT = 30


def _split_reference(reference: str) -> tuple[str, str]:
    name, sep, version = reference.rpartition(":")
    if not sep or "/" in version:
        return reference, ""
    return name, version


def _slug(value: str) -> str:
    return value.replace("/", "_").replace(":", "_")


class ManifestCatalog(CatalogClient):
    """Index packages from local or remote YAML manifests."""

    format: ClassVar[str] = "manifest"

    def __init__(
        self,
        sources: Iterable[str] = (),
        *,
        cache_dir: pathlib.Path,
        user_agent: str = "ukcraft",
    ) -> None:
        self._sources = list(dict.fromkeys(sources))
        self._cache_dir = cache_dir
        self._session = requests.Session()
        self._session.headers["User-Agent"] = user_agent

    @property
    def local_index(self) -> pathlib.Path:
        """The index of packages created on this machine."""
        return self._cache_dir / "local" / INDEX_FILE_NAME

    @property
    @override
    def sources(self) -> list[str]:
        return list(self._sources)

    def _cached_index(self, source: str) -> pathlib.Path:
        digest = hashlib.sha256(source.encode()).hexdigest()[:16]
        return self._cache_dir / "indexes" / f"{digest}.yaml"

    def _index_path(self, source: str) -> pathlib.Path:
        if util.is_url(source):
            return self._cached_index(source)
        path = pathlib.Path(source).expanduser()
        if path.is_dir():
            return path / INDEX_FILE_NAME
        return path

    def _read_entries(self, index: pathlib.Path) -> list[dict[str, Any]]:
        if not index.is_file():
            return []
        with index.open() as file:
            data = util.safe_yaml_load(file) or {}
        entries = data.get("packages") if isinstance(data, dict) else None
        if not isinstance(entries, list):
            raise errors.CatalogError(
                f"Invalid catalog index {str(index)!r}.",
                details="The index must be a mapping with a 'packages' list.",
            )
        return entries

    def _resolve_location(self, location: str, base: str) -> str:
        if not location or util.is_url(location) or pathlib.Path(location).is_absolute():
            return location
        if util.is_url(base):
            return urllib.parse.urljoin(base, location)
        return str(self._index_path(base).parent / location)

    def _to_package(self, entry: dict[str, Any], base: str) -> models.Package:
        try:
            return models.Package(
                name=str(entry["name"]),
                version=str(entry.get("version") or ""),
                type=models.ComponentType(entry.get("type", "library")),
                format=self.format,
                architecture=str(entry.get("architecture") or ""),
                platform=util.canonical_platform(str(entry.get("platform") or "")),
                kconfig={str(k): str(v) for k, v in (entry.get("kconfig") or {}).items()},
                kernel=entry.get("kernel"),
                command=[str(arg) for arg in entry.get("command") or []],
                location=self._resolve_location(str(entry.get("location") or ""), base),
                source=str(entry.get("source") or base),
                metadata=dict(entry.get("metadata") or {}),
            )
        except (KeyError, ValueError, AttributeError) as exc:
            raise errors.CatalogError(
                f"Invalid package entry in catalog index {base!r}.",
                details=f"{exc.__class__.__name__}: {exc}",
            ) from exc

    def _all_packages(self) -> list[models.Package]:
        packages = [
            self._to_package(entry, str(self.local_index))
            for entry in self._read_entries(self.local_index)
        ]
        for source in self._sources:
            packages.extend(
                self._to_package(entry, source)
                for entry in self._read_entries(self._index_path(source))
            )
        return packages

    @override
    def catalog(self, query: models.CatalogQuery) -> list[models.Package]:
        if query.remote:
            self.update()
        packages = [package for package in self._all_packages() if query.matches(package)]
        emit.debug(
            f"Found {len(packages)} package(s) matching {query} "
            f"({'remote' if query.remote else 'local'})"
        )
        return packages

    def _download(self, url: str, dest: pathlib.Path) -> pathlib.Path:
        dest.parent.mkdir(parents=True, exist_ok=True)
        with self._session.get(url, stream=True, timeout=_REQUEST_TIMEOUT) as response:
            response.raise_for_status()
            partial = dest.with_name(dest.name + ".partial")
            with partial.open("wb") as file:
                for chunk in response.iter_content(None):
                    file.write(chunk)
            partial.replace(dest)
        return dest

    @override
    def update(self) -> None:
        for source in self._sources:
            if not util.is_url(source):
                continue
            emit.debug(f"Updating catalog index from {source}")
            self._download(source, self._cached_index(source))

    def _cached_archive(self, url: str) -> pathlib.Path:
        digest = hashlib.sha256(url.encode()).hexdigest()[:16]
        name = util.get_filename_from_url_path(url)
        return self._cache_dir / "archives" / f"{digest}-{name}"

    @override
    def pull(
        self,
        package: models.Package,
        workdir: pathlib.Path,
        *,
        dest: pathlib.Path | None = None,
        use_cache: bool = True,
    ) -> pathlib.Path:
        if not package.location:
            raise errors.CatalogError(f"Package {package} has no location to pull from.")
        dest = dest or workdir / default_component_path(package.type, package.name)

        location = package.location
        if util.is_url(location):
            archive = self._cached_archive(location)
            if not (use_cache and archive.is_file()):
                emit.debug(f"Downloading {location}")
                self._download(location, archive)
            source = archive
        else:
            source = pathlib.Path(location).expanduser()

        if dest.exists():
            shutil.rmtree(dest)
        if source.is_dir():
            shutil.copytree(source, dest)
        elif tarfile.is_tarfile(source):
            dest.mkdir(parents=True)
            with tarfile.open(source) as archive_file:
                archive_file.extractall(dest, filter="data")
        else:
            raise errors.CatalogError(
                f"Cannot unpack {package}.",
                details=f"{str(source)!r} is neither a directory nor a tar archive.",
            )
        emit.debug(f"Pulled {package} into {str(dest)!r}")
        return dest

    @override
    def push(self, package: models.Package) -> None:
        raise errors.CatalogError(
            f"Cannot push {package}.",
            details="The manifest catalog only indexes packages, it cannot publish them.",
            resolution="Upload the package archive and add its index with 'ukcraft source'.",
        )

    @override
    def pack(
        self, target: models.Target, options: models.PackOptions
    ) -> list[models.Package]:
        kernel = pathlib.Path(target.kernel or "")
        if not kernel.is_file():
            raise errors.CatalogError(
                f"Cannot package {target}: kernel {str(kernel)!r} does not exist.",
                resolution="Build the target before packaging it.",
            )
        name, version = _split_reference(options.name)
        entries = self._read_entries(self.local_index)
        existing = [entry for entry in entries if entry.get("name") == name]

        match options.strategy:
            case models.MergeStrategy.OVERWRITE:
                entries = [entry for entry in entries if entry not in existing]
            case models.MergeStrategy.MERGE:
                entries = [
                    entry
                    for entry in entries
                    if entry not in existing
                    or (entry.get("architecture"), entry.get("platform"))
                    != (target.architecture, target.platform)
                ]
            case _:
                if existing:
                    raise errors.PackageExistsError(name, str(options.strategy))

        output = options.output or self._cache_dir / "packages"
        output.mkdir(parents=True, exist_ok=True)
        archive = output / f"{_slug(name)}_{target.platform}-{target.architecture}.tar.gz"
        metadata: dict[str, Any] = {
            "name": name,
            "version": version,
            "architecture": target.architecture,
            "platform": target.platform,
            "args": options.args,
            "env": options.env,
            "labels": options.labels,
        }
        if options.kernel_version:
            metadata["kernel-version"] = options.kernel_version
        if options.kconfig:
            metadata["kconfig"] = target.kconfig
        encoded = util.dump_yaml(metadata).encode()

        emit.debug(f"Writing package {str(archive)!r}")
        with tarfile.open(archive, "w:gz") as archive_file:
            archive_file.add(kernel, arcname="kernel")
            if options.initrd:
                archive_file.add(options.initrd, arcname="initrd")
            info = tarfile.TarInfo(METADATA_FILE_NAME)
            info.size = len(encoded)
            archive_file.addfile(info, io.BytesIO(encoded))

        entry: dict[str, Any] = {
            "name": name,
            "version": version,
            "type": str(models.ComponentType.APPLICATION),
            "architecture": target.architecture,
            "platform": target.platform,
            "kconfig": target.kconfig if options.kconfig else {},
            "kernel": "kernel",
            "command": options.args,
            "location": str(archive.resolve()),
            "metadata": {"labels": options.labels, "env": options.env},
        }
        entries.append(entry)
        self.local_index.parent.mkdir(parents=True, exist_ok=True)
        with self.local_index.open("w") as file:
            util.dump_yaml({"packages": entries}, stream=file)

        return [self._to_package(entry, str(self.local_index))]

    @override
    def add_source(self, source: str) -> None:
        if not self.is_compatible(source):
            raise errors.CatalogError(
                f"{source!r} is not a catalog index.",
                resolution=f"Use a YAML index file or a directory containing {INDEX_FILE_NAME!r}.",
            )
        if source not in self._sources:
            self._sources.append(source)

    @override
    def remove_source(self, source: str) -> None:
        if source not in self._sources:
            emit.debug(f"Source {source!r} is not indexed")
            return
        self._sources.remove(source)
        self._cached_index(source).unlink(missing_ok=True)

    @override
    def is_compatible(self, source: str) -> bool:
        if util.is_url(source):
            return util.get_filename_from_url_path(source).endswith(_INDEX_SUFFIXES)
        path = pathlib.Path(source).expanduser()
        if path.is_dir():
            return (path / INDEX_FILE_NAME).is_file()
        return path.suffix in _INDEX_SUFFIXES
