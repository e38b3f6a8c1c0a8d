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
"""Utility functions and helpers related to path handling."""

from __future__ import annotations

import pathlib
import urllib.parse

VENDOR_DIR = pathlib.Path(".unikraft")
"""Directory, relative to the project, where fetched components are placed."""

BUILD_DIR = VENDOR_DIR / "build"
"""Directory, relative to the project, for build outputs."""

ROOTFS_CACHE_DIR = VENDOR_DIR / "rootfs-cache"
"""Directory, relative to the project, for cached root filesystem archives."""

CORE_DIR = VENDOR_DIR / "unikraft"
LIBS_DIR = VENDOR_DIR / "libs"
APPS_DIR = VENDOR_DIR / "apps"

INITRAMFS_ARCH_FILE_NAME = "initramfs-{arch}.cpio"


def get_filename_from_url_path(url: str) -> str:
    """Get just the filename of a URL path."""
    return pathlib.PurePosixPath(urllib.parse.urlparse(url).path).name


def is_url(location: str) -> bool:
    """Determine whether a location is a remote http(s) URL."""
    return urllib.parse.urlparse(location).scheme in ("http", "https")


def is_local_directory(location: str | None, base: pathlib.Path) -> bool:
    """Determine whether a location names an existing directory on disk.

    Relative locations are resolved against ``base``.
    """
    if not location or is_url(location):
        return False
    return (base / pathlib.Path(location).expanduser()).is_dir()
