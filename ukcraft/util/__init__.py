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
"""Utilities for ukcraft."""

from ukcraft.util.string import humanize_list, split_key_value, strtobool
from ukcraft.util.logging import setup_loggers
from ukcraft.util.paths import get_filename_from_url_path, is_local_directory, is_url
from ukcraft.util.platforms import canonical_platform, get_host_architecture
from ukcraft.util.prompt import select, select_many
from ukcraft.util.yaml import dump_yaml, safe_yaml_load

__all__ = [
    "setup_loggers",
    "get_filename_from_url_path",
    "is_local_directory",
    "is_url",
    "canonical_platform",
    "get_host_architecture",
    "select",
    "select_many",
    "humanize_list",
    "split_key_value",
    "strtobool",
    "dump_yaml",
    "safe_yaml_load",
]
