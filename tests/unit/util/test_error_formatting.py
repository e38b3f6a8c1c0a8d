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
"""Tests for error formatting."""

import pydantic
import pytest
from ukcraft import errors, models
from ukcraft.util.error_formatting import (
    FieldLocationTuple,
    format_pydantic_error,
    format_pydantic_errors,
)


@pytest.mark.parametrize(
    ("loc_str", "expected"),
    [
        ("name", FieldLocationTuple("name", "top-level")),
        ("targets[0].platform", FieldLocationTuple("platform", "targets[0]")),
        ("libraries.musl.version", FieldLocationTuple("version", "libraries.musl")),
    ],
)
def test_field_location_tuple_from_str(loc_str, expected):
    assert FieldLocationTuple.from_str(loc_str) == expected


@pytest.mark.parametrize(
    ("loc", "message", "expected"),
    [
        (["name"], "field required", "- field 'name' required in top-level configuration"),
        (
            ["targets", 0, "foo"],
            "extra inputs are not permitted",
            "- extra field 'foo' not permitted in 'targets[0]' configuration",
        ),
        (
            ["targets", 1, "architecture"],
            "Value error, Unknown architecture",
            "- unknown architecture (in field 'targets[1].architecture')",
        ),
        ([], "Value error, Duplicate target", "- duplicate target"),
        ([0], "bad", "- bad (in field '[0]')"),
    ],
)
def test_format_pydantic_error(loc, message, expected):
    assert format_pydantic_error(loc, message) == expected


def test_format_pydantic_errors():
    formatted = format_pydantic_errors(
        [
            {"loc": ["name"], "msg": "field required"},
            {"loc": ["cmd"], "msg": "Input should be a valid list"},
        ],
        file_name="Kraftfile",
    )

    assert formatted == (
        "Bad Kraftfile content:\n"
        "- field 'name' required in top-level configuration\n"
        "- input should be a valid list (in field 'cmd')"
    )


def test_validation_error_from_pydantic():
    with pytest.raises(pydantic.ValidationError) as exc_info:
        models.Project.unmarshal({"targets": [{"platform": "qemu"}], "extra": 1})

    error = errors.CraftValidationError.from_pydantic(exc_info.value, file_name="Kraftfile")

    assert str(error).startswith("Bad Kraftfile content:\n- ")
