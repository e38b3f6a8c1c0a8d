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
"""OS and architecture helpers for ukcraft."""

from __future__ import annotations

import functools
import platform

# Translations from ``platform.machine()`` to Unikraft architecture names.
_ARCH_TRANSLATIONS_MACHINE_TO_UNIKRAFT = {
    "aarch64": "arm64",
    "arm64": "arm64",
    "armv7l": "arm",
    "armv6l": "arm",
    "x86_64": "x86_64",
    "AMD64": "x86_64",  # Windows support
    "amd64": "x86_64",
}

# Translations from friendly platform aliases to canonical platform names.
_PLATFORM_ALIASES = {
    "qemu": "qemu",
    "kvm": "qemu",
    "firecracker": "fc",
    "fc": "fc",
    "xen": "xen",
    "kraftcloud": "kraftcloud",
    "kc": "kraftcloud",
}


@functools.lru_cache(maxsize=1)
def get_host_architecture() -> str:
    """Get host architecture in Unikraft format."""
    machine = platform.machine()
    return _ARCH_TRANSLATIONS_MACHINE_TO_UNIKRAFT.get(machine, machine)


def canonical_platform(name: str) -> str:
    """Get the canonical name for a platform, accepting common aliases.

    Empty and unknown names are returned unchanged.
    """
    return _PLATFORM_ALIASES.get(name.lower(), name) if name else name
