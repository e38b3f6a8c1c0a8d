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
"""Tests for string utilities."""

import pytest
import pytest_check
from hypothesis import given, strategies
from ukcraft.util import string


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        *((value, True) for value in ["true", "T", "yes", "Y", "on", "1", " True "]),
        *((value, False) for value in ["false", "F", "no", "N", "off", "0"]),
    ],
)
def test_strtobool(value, expected):
    assert string.strtobool(value) is expected


@pytest.mark.parametrize("value", ["", "maybe", "2", "enabled"])
def test_strtobool_invalid(value):
    with pytest.raises(ValueError, match="Invalid boolean value"):
        string.strtobool(value)


@pytest.mark.parametrize("value", [1, None, b"true"])
def test_strtobool_not_a_string(value):
    with pytest.raises(TypeError, match="Invalid str value"):
        string.strtobool(value)  # type: ignore[arg-type]


@pytest.mark.parametrize(
    ("items", "conjunction", "expected"),
    [
        ([], "and", ""),
        (["musl"], "and", "'musl'"),
        (["musl", "lwip"], "or", "'lwip' or 'musl'"),
        (["qemu", "fc", "xen"], "and", "'fc', 'qemu', and 'xen'"),
    ],
)
def test_humanize_list(items, conjunction, expected):
    assert string.humanize_list(items, conjunction) == expected


def test_humanize_list_unsorted():
    assert (
        string.humanize_list(["qemu", "fc"], "or", "{}", sort=False) == "qemu or fc"
    )


@pytest.mark.parametrize(
    ("item", "expected"),
    [
        ("KEY=value", ("KEY", "value")),
        ("KEY=", ("KEY", "")),
        ("KEY", ("KEY", None)),
        ("KEY=a=b", ("KEY", "a=b")),
        ("=value", ("", "value")),
    ],
)
def test_split_key_value(item, expected):
    assert string.split_key_value(item) == expected


@given(
    key=strategies.text().filter(lambda text: "=" not in text),
    value=strategies.text(),
)
def test_split_key_value_any_text(key, value):
    parsed_key, parsed_value = string.split_key_value(f"{key}={value}")

    pytest_check.equal(parsed_key, key)
    pytest_check.equal(parsed_value, value)
