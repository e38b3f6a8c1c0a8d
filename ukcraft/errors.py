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
"""Error classes for ukcraft.

All errors inherit from craft_cli.CraftError.
"""

from __future__ import annotations

import os
from typing import TYPE_CHECKING

import yaml
from craft_cli import CraftError

from ukcraft.util.error_formatting import format_pydantic_errors
from ukcraft.util.string import humanize_list

if TYPE_CHECKING:  # pragma: no cover
    import pathlib
    from collections.abc import Sequence

    import pydantic
    from typing_extensions import Self


class PathInvalidError(CraftError, OSError):
    """A path ukcraft needs to use exists but cannot be used."""


class ProjectFileError(CraftError):
    """The Kraftfile could not be found or read."""


class ProjectFileMissingError(ProjectFileError, FileNotFoundError):
    def __init__(self, directory: pathlib.Path) -> None:
        super().__init__(
            f"Could not find a Kraftfile in {str(directory)!r}.",
            resolution="Run from a project directory or pass the path to a Kraftfile.",
            logpath_report=False,
            reportable=False,
            retcode=os.EX_NOINPUT,
        )


class ProjectFileInvalidError(ProjectFileError):
    """The Kraftfile is YAML but its top level is not a mapping."""

    def __init__(self, project_data: object) -> None:
        kind = type(project_data).__name__
        super().__init__(
            "Invalid project file.",
            details=f"Kraftfile should be a YAML mapping, not {kind!r}",
            logpath_report=False,
            reportable=False,
            retcode=os.EX_NOINPUT,
        )


class YamlError(CraftError, yaml.YAMLError):
    """A Kraftfile, index or configuration file is not valid YAML."""

    @classmethod
    def from_yaml_error(cls, filename: str, error: yaml.YAMLError) -> Self:
        problem = getattr(error, "problem", None)
        message = f"error parsing {filename!r}"
        if problem:
            message = f"{message}: {problem}"
        return cls(
            message,
            details=str(error),
            resolution=f"Ensure {filename} contains valid YAML",
        )


class CraftValidationError(CraftError):
    """A Kraftfile or index entry does not match its model."""

    @classmethod
    def from_pydantic(
        cls,
        error: pydantic.ValidationError,
        *,
        file_name: str = "yaml file",
        **kwargs: str | bool | int | None,
    ) -> Self:
        """Summarise every validation failure of ``file_name`` in one error.

        Extra keyword arguments are passed to :class:`CraftError`.
        """
        return cls(
            format_pydantic_errors(error.errors(), file_name=file_name),
            **kwargs,  # type: ignore[arg-type]
        )


class ResolutionError(CraftError):
    """Errors resolving a component or package against the catalog."""

    def __init__(self, message: str, *, subject: str, **kwargs: object) -> None:
        super().__init__(message, **kwargs)  # type: ignore[arg-type]
        self.subject = subject


class ResolutionNotFoundError(ResolutionError):
    """The catalog returned no package for a component."""

    def __init__(self, subject: str, *, details: str | None = None) -> None:
        super().__init__(
            f"Could not find {subject}.",
            subject=subject,
            details=details,
            resolution="Check the catalog sources with 'ukcraft source' and "
            "refresh them with 'ukcraft update'.",
            retcode=os.EX_UNAVAILABLE,
        )


class ResolutionAmbiguousError(ResolutionError):
    """The catalog returned more than one package and no choice could be made."""

    def __init__(self, subject: str, candidates: Sequence[str] = ()) -> None:
        details = None
        if candidates:
            details = "Possible matches: " + humanize_list(candidates, "and")
        super().__init__(
            f"Too many options for {subject} and prompting has been disabled.",
            subject=subject,
            details=details,
            resolution="Pin the version, architecture or platform to select a "
            "single package.",
        )
        self.candidates = list(candidates)


class NoTargetsSelectedError(CraftError):
    """Filtering the project targets left nothing to work on."""

    def __init__(self, verb: str = "build", *, details: str | None = None) -> None:
        super().__init__(
            f"No targets selected to {verb}.",
            details=details,
            resolution="Check the '--arch', '--plat' and '--target' parameters "
            "against the targets declared in the Kraftfile.",
        )


class IncompatibleArgumentsError(CraftError):
    """Mutually exclusive arguments were given together."""

    def __init__(self, message: str, *, resolution: str | None = None) -> None:
        super().__init__(message, resolution=resolution, retcode=os.EX_USAGE)


class StrategyUnavailableError(CraftError):
    """No strategy in a chain reported itself capable."""

    def __init__(self, action: str, reasons: dict[str, str] | None = None) -> None:
        details = None
        if reasons:
            details = "\n".join(f"- {name}: {reason}" for name, reason in reasons.items())
        super().__init__(
            f"Could not determine how to {action}.",
            details=details,
        )
        self.action = action
        self.reasons = dict(reasons or {})


class ExternalToolError(CraftError):
    """A collaborator (kernel driver, catalog, container builder) failed."""

    def __init__(
        self,
        operation: str,
        subject: str,
        *,
        details: str | None = None,
        resolution: str | None = None,
    ) -> None:
        super().__init__(
            f"Failed to {operation} {subject}.",
            details=details,
            resolution=resolution,
        )
        self.operation = operation
        self.subject = subject

    @classmethod
    def from_error(cls, operation: str, subject: str, error: BaseException) -> Self:
        """Wrap an error from an external call, keeping it as the cause."""
        details = str(error) or error.__class__.__name__
        new = cls(operation, subject, details=details)
        new.__cause__ = error
        return new


class CacheWriteError(CraftError):
    """Writing to the project's vendor or cache directories failed."""

    @classmethod
    def from_os_error(cls, err: OSError) -> Self:
        """Describe a failed write by the file it was writing."""
        names = [repr(name) for name in (err.filename, err.filename2) if name]
        reason = err.strerror or str(err)
        message = f"{err.filename}: {reason}" if err.filename else reason
        details = type(err).__name__
        if names:
            details = f"{details} writing {' and '.join(names)}"
        return cls(message, details=details)


class CatalogError(CraftError):
    """Errors to do with the catalog backends themselves."""


class PackageExistsError(CatalogError):
    """A package already exists and the merge strategy forbids touching it."""

    def __init__(self, name: str, strategy: str) -> None:
        super().__init__(
            f"Package {name!r} already exists and merge strategy set to {strategy!r}.",
            resolution="Use '--strategy overwrite' or '--strategy merge'.",
        )


class RootfsError(CraftError):
    """Errors materialising a root filesystem."""


class CancelledError(CraftError):
    """Work was cancelled before it could complete."""

    def __init__(self, subject: str | None = None) -> None:
        message = f"Cancelled {subject}." if subject else "Cancelled."
        super().__init__(message, retcode=130)


class PromptError(CraftError):
    """An interactive choice was required but could not be made."""
