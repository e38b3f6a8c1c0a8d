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
"""Finding and loading Kraftfiles."""

from __future__ import annotations

import pathlib
from typing import Any, cast

import pydantic
from craft_cli import emit

from ukcraft import errors, util
from ukcraft.models import Project

KRAFTFILE_NAMES = ("Kraftfile", "Kraftfile.yaml", "kraft.yaml", "kraft.yml")


def find_kraftfile(directory: pathlib.Path) -> pathlib.Path:
    """Get the path to the Kraftfile in a project directory.

    :raises ProjectFileMissingError: if the directory has no Kraftfile.
    """
    for name in KRAFTFILE_NAMES:
        path = directory / name
        if path.is_file():
            emit.trace(f"Project file found at {path}")
            return path
    raise errors.ProjectFileMissingError(directory)


def load_raw(path: pathlib.Path) -> dict[str, Any]:
    """Load the raw data of a Kraftfile."""
    with path.open() as project_file:
        emit.debug(f"Loading project file {str(path)!r}")
        raw_yaml = util.safe_yaml_load(project_file)
    if not isinstance(raw_yaml, dict):
        raise errors.ProjectFileInvalidError(raw_yaml)
    return cast(dict[str, Any], raw_yaml)


def load_project(
    directory: pathlib.Path, kraftfile: pathlib.Path | None = None
) -> Project:
    """Load the project in a directory.

    :param directory: the project's working directory.
    :param kraftfile: an explicit Kraftfile to use instead of searching for one.
    """
    if not directory.is_dir():
        raise errors.PathInvalidError(
            f"Project directory {str(directory)!r} does not exist or is not a directory."
        )
    path = kraftfile or find_kraftfile(directory)
    if not path.is_file():
        raise errors.ProjectFileMissingError(path.parent)
    raw = load_raw(path)
    try:
        return Project.unmarshal({**raw, "workdir": directory})
    except pydantic.ValidationError as err:
        raise errors.CraftValidationError.from_pydantic(err, file_name=path.name) from None
