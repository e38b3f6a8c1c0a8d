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
"""Abstract base service class."""

from __future__ import annotations

import abc
import sys
import typing

from craft_cli import emit

if typing.TYPE_CHECKING:
    from ukcraft.application import AppMetadata
    from ukcraft.models import Project
    from ukcraft.services.service_factory import ServiceFactory


# This is abstract to prevent it from being used directly. Ignore the lack of
# abstract methods.
class AppService(metaclass=abc.ABCMeta):  # noqa: B024
    """A service class, containing application business logic."""

    def __init__(self, app: AppMetadata, services: ServiceFactory) -> None:
        self._app = app
        self._services = services

    def setup(self) -> None:
        """Service-specific setup to perform.

        Child classes should always call ``super().setup()``.
        """
        emit.debug(f"Setting up {self.__class__.__name__}")

    @property
    def _project(self) -> Project:
        """The project being worked on.

        This will error if there is no project.
        """
        return self._services.get("project").get()

    @property
    def _interactive(self) -> bool:
        """Whether the user can be asked to choose."""
        return not self._services.get("config").get("no_prompt") and sys.stdin.isatty()

    @property
    def _parallel(self) -> bool:
        return not self._services.get("config").get("no_parallel")

    @property
    def _render(self) -> bool:
        """Whether progress is shown as it changes rather than line by line."""
        return self._services.get("config").get("log_type") == "fancy"
