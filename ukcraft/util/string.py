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
"""String parsing and formatting for options, labels and messages."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover
    from collections.abc import Iterable

_BOOLEANS = {
    **dict.fromkeys(("true", "t", "yes", "y", "on", "1"), True),
    **dict.fromkeys(("false", "f", "no", "n", "off", "0"), False),
}


def strtobool(value: str) -> bool:
    """Parse a boolean from an environment variable or option value.

    :raises TypeError: if ``value`` is not a string.
    :raises ValueError: if ``value`` is not a recognised boolean.
    """
    if not isinstance(value, str):  # pyright: ignore[reportUnnecessaryIsInstance]
        raise TypeError(f"Invalid str value: {value!s}")
    normalized = value.strip().lower()
    try:
        return _BOOLEANS[normalized]
    except KeyError:
        raise ValueError(f"Invalid boolean value: {normalized}") from None


def humanize_list(
    items: Iterable[str],
    conjunction: str,
    item_format: str = "{!r}",
    *,
    sort: bool = True,
) -> str:
    """Join items for a message, e.g. ``'fc', 'qemu', and 'xen'``.

    :param conjunction: the word before the last item, such as "and" or "or".
    :param item_format: format string applied to each item.
    :param sort: whether to sort the formatted items.
    """
    formatted = [item_format.format(item) for item in items]
    if sort:
        formatted.sort()
    *head, last = formatted or [""]
    if not head:
        return last
    joined = ", ".join(head)
    if len(head) > 1:
        joined += ","
    return f"{joined} {conjunction} {last}"


def split_key_value(item: str) -> tuple[str, str | None]:
    """Split ``KEY=VALUE`` on the first ``=``.

    A bare ``KEY`` has ``None`` as its value.
    """
    key, sep, value = item.partition("=")
    return key, value if sep else None
