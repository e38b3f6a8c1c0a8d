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
"""A writer for reproducible ``newc`` cpio archives."""

from __future__ import annotations

import os
import pathlib
import stat
import tarfile
from typing import BinaryIO

from typing_extensions import Self

_MAGIC = b"070701"
_TRAILER = "TRAILER!!!"


def _pad(length: int) -> bytes:
    return b"\0" * ((4 - length % 4) % 4)


class CpioWriter:
    """Write a cpio archive in the ``newc`` format.

    Timestamps and ownership are zeroed and inodes are numbered in the order
    entries are added, so identical input gives byte-identical output.
    """

    def __init__(self, stream: BinaryIO) -> None:
        self._stream = stream
        self._inode = 0
        self._names: set[str] = set()
        self._closed = False

    def __enter__(self) -> Self:
        return self

    def __exit__(self, *exc_info: object) -> None:
        if exc_info[0] is None:
            self.close()

    def _write_entry(self, name: str, mode: int, data: bytes = b"") -> None:
        name = name.strip("/")
        if name.startswith("./"):
            name = name[2:]
        if not name or name in self._names:
            return
        self._names.add(name)
        self._inode += 1
        encoded = name.encode() + b"\0"
        fields = (
            self._inode,  # ino
            mode,
            0,  # uid
            0,  # gid
            2 if stat.S_ISDIR(mode) else 1,  # nlink
            0,  # mtime
            len(data),
            0,  # devmajor
            0,  # devminor
            0,  # rdevmajor
            0,  # rdevminor
            len(encoded),
            0,  # check
        )
        header = _MAGIC + b"".join(f"{field:08X}".encode() for field in fields)
        self._stream.write(header + encoded + _pad(len(header) + len(encoded)))
        self._stream.write(data + _pad(len(data)))

    def add_directory(self, name: str, mode: int = 0o755) -> None:
        """Add a directory entry."""
        self._write_entry(name, stat.S_IFDIR | (mode & 0o7777))

    def add_file(self, name: str, data: bytes, mode: int = 0o644) -> None:
        """Add a regular file."""
        self._write_entry(name, stat.S_IFREG | (mode & 0o7777), data)

    def add_symlink(self, name: str, target: str) -> None:
        """Add a symbolic link."""
        self._write_entry(name, stat.S_IFLNK | 0o777, target.encode())

    def add_tree(self, root: pathlib.Path) -> None:
        """Add the contents of a directory, in sorted order."""
        for dirpath, dirnames, filenames in os.walk(root):
            dirnames.sort()
            base = pathlib.Path(dirpath)
            relative = base.relative_to(root).as_posix()
            if relative != ".":
                self.add_directory(relative, base.stat().st_mode)
            for filename in sorted(filenames + [d for d in dirnames if (base / d).is_symlink()]):
                path = base / filename
                name = path.relative_to(root).as_posix()
                if path.is_symlink():
                    self.add_symlink(name, os.readlink(path))
                elif path.is_file():
                    self.add_file(name, path.read_bytes(), path.stat().st_mode)

    def add_tarfile(self, archive: tarfile.TarFile) -> None:
        """Add the contents of a tar archive, in sorted order."""
        for member in sorted(archive.getmembers(), key=lambda m: m.name):
            if member.isdir():
                self.add_directory(member.name, member.mode)
            elif member.issym():
                self.add_symlink(member.name, member.linkname)
            elif member.isfile():
                extracted = archive.extractfile(member)
                data = extracted.read() if extracted else b""
                self.add_file(member.name, data, member.mode)

    def close(self) -> None:
        """Write the trailer entry. The stream is left open."""
        if self._closed:
            return
        self._closed = True
        self._inode += 1
        encoded = _TRAILER.encode() + b"\0"
        fields = (0, 0, 0, 0, 1, 0, 0, 0, 0, 0, 0, len(encoded), 0)
        header = _MAGIC + b"".join(f"{field:08X}".encode() for field in fields)
        self._stream.write(header + encoded + _pad(len(header) + len(encoded)))
