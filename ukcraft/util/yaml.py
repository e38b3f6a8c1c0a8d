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
"""YAML helpers for Kraftfiles, manifest indexes and the configuration file."""

from __future__ import annotations

import pathlib
from typing import Any, TextIO, overload

import yaml

from ukcraft import errors


class _KraftfileLoader(yaml.SafeLoader):
    """A safe loader that refuses mappings with repeated keys."""

    def construct_mapping(
        self, node: yaml.MappingNode, deep: bool = False  # noqa: FBT001, FBT002
    ) -> dict[Any, Any]:
        # Keys brought in through ``<<`` merges may be overridden, so only
        # the keys written in this mapping are checked.
        seen: set[str] = set()
        for key_node, _ in node.value:
            key = key_node.value
            if not isinstance(key, str):
                continue
            if key in seen:
                raise yaml.constructor.ConstructorError(
                    "while constructing a mapping",
                    node.start_mark,
                    f"found duplicate key {key!r}",
                    key_node.start_mark,
                )
            seen.add(key)
        return super().construct_mapping(node, deep=deep)


class _KraftfileDumper(yaml.SafeDumper):
    """A safe dumper that writes multi-line strings as literal blocks."""

    def represent_str(self, data: str) -> yaml.ScalarNode:
        style = "|" if "\n" in data else None
        return self.represent_scalar("tag:yaml.org,2002:str", data, style=style)


_KraftfileDumper.add_representer(str, _KraftfileDumper.represent_str)


def safe_yaml_load(stream: TextIO) -> Any:  # noqa: ANN401 - The YAML could be anything
    """Load YAML safely, rejecting duplicate keys.

    :raises YamlError: naming the stream's file if the YAML is malformed.
    """
    try:
        return yaml.load(stream, Loader=_KraftfileLoader)  # noqa: S506
    except yaml.YAMLError as error:
        name = pathlib.Path(getattr(stream, "name", "<stream>")).name
        raise errors.YamlError.from_yaml_error(name, error) from error


@overload
def dump_yaml(data: Any, stream: TextIO, **kwargs: Any) -> None: ...  # noqa: ANN401


@overload
def dump_yaml(data: Any, stream: None = None, **kwargs: Any) -> str: ...  # noqa: ANN401


def dump_yaml(data: Any, stream: TextIO | None = None, **kwargs: Any) -> str | None:
    """Dump data as YAML, keeping key order and non-ASCII text as written.

    Returns the YAML text when no ``stream`` is given.
    """
    kwargs.setdefault("sort_keys", False)
    kwargs.setdefault("allow_unicode", True)
    return yaml.dump(data, stream, Dumper=_KraftfileDumper, **kwargs)  # type: ignore[no-any-return]
