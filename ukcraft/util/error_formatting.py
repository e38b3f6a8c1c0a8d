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
"""Turn pydantic validation errors into Kraftfile-oriented messages."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, NamedTuple

if TYPE_CHECKING:
    from collections.abc import Iterable

_TOP_LEVEL = "top-level"


class FieldLocationTuple(NamedTuple):
    """A field name and the dotted path of the section holding it."""

    field: str
    location: str = _TOP_LEVEL

    @classmethod
    def from_str(cls, loc_str: str) -> FieldLocationTuple:
        """Split ``targets[0].platform`` into ``platform`` and ``targets[0]``."""
        location, _, field = loc_str.rpartition(".")
        return cls(field, location) if location else cls(field)


def _dotted_path(loc: Iterable[str | int]) -> str:
    """Join a pydantic location, writing list indexes as ``name[index]``."""
    path = ""
    for part in loc:
        if isinstance(part, int):
            path += f"[{part}]"
        else:
            path = f"{path}.{part}" if path else part
    return path.replace(".__root__", "")


def _sentence(message: str) -> str:
    message = message.removeprefix("Value error, ")
    return message[:1].lower() + message[1:]


def format_pydantic_error(loc: Iterable[str | int], message: str) -> str:
    """Format one pydantic error as a bullet point.

    :param loc: the error's ``loc``.
    :param message: the error's ``msg``.
    """
    path = _dotted_path(loc)
    message = _sentence(message)
    field, location = FieldLocationTuple.from_str(path)
    where = location if location == _TOP_LEVEL else repr(location)

    if message == "field required":
        return f"- field {field!r} required in {where} configuration"
    if message == "extra inputs are not permitted":
        return f"- extra field {field!r} not permitted in {where} configuration"
    if path in ("", "__root__"):
        return f"- {message}"
    return f"- {message} (in field {path!r})"


def format_pydantic_errors(
    errors: Iterable[Any], *, file_name: str = "yaml file"
) -> str:
    """Format all the errors of one file, for example::

        Bad Kraftfile content:
        - field 'name' required in top-level configuration
        - extra field 'foo' not permitted in 'targets[0]' configuration
    """
    lines = [f"Bad {file_name} content:"]
    lines.extend(format_pydantic_error(error["loc"], error["msg"]) for error in errors)
    return "\n".join(lines)
