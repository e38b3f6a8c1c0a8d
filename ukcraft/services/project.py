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
"""Service that loads the project from its Kraftfile."""

from __future__ import annotations

import pathlib
from typing import TYPE_CHECKING

from craft_cli import emit

from ukcraft import errors, kraftfile
from ukcraft.services import base

if TYPE_CHECKING:
    from ukcraft import models
    from ukcraft.application import AppMetadata
    from ukcraft.services.service_factory import ServiceFactory


class ProjectService(base.AppService):
    """Load the project once and hand it out.

    :param project_dir: the project's working directory.
    :param kraftfile: a Kraftfile to use instead of searching ``project_dir``.
    """

    def __init__(
        self,
        app: AppMetadata,
        services: ServiceFactory,
        *,
        project_dir: pathlib.Path | None = None,
        kraftfile: pathlib.Path | None = None,
    ) -> None:
        super().__init__(app, services)
        self.project_dir = project_dir or pathlib.Path.cwd()
        self._kraftfile = kraftfile
        self._project_model: models.Project | None = None

    def is_present(self) -> bool:
        """Whether the project directory has a Kraftfile."""
        if self._kraftfile is not None:
            return self._kraftfile.is_file()
        try:
            kraftfile.find_kraftfile(self.project_dir)
        except errors.ProjectFileMissingError:
            return False
        return True

    def get(self) -> models.Project:
        """Get the project, loading it the first time.

        :raises ProjectFileMissingError: if there is no Kraftfile.
        """
        if self._project_model is None:
            self._project_model = kraftfile.load_project(
                self.project_dir, self._kraftfile
            )
            emit.debug(f"Loaded project {self._project_model.name or '(unnamed)'}")
        return self._project_model

    def get_optional(self) -> models.Project | None:
        """Get the project, or None if there is no Kraftfile."""
        if not self.is_present():
            emit.debug(f"No Kraftfile in {str(self.project_dir)!r}")
            return None
        return self.get()

    def set(self, project: models.Project) -> None:
        """Replace the loaded project, for instance once a template is merged."""
        self._project_model = project
