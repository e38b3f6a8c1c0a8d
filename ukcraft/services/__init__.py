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
"""Service classes for ukcraft."""

from ukcraft.services.base import AppService
from ukcraft.services.build import BuildService
from ukcraft.services.catalog import CatalogService
from ukcraft.services.config import ConfigService
from ukcraft.services.package import PackageService
from ukcraft.services.project import ProjectService
from ukcraft.services.service_factory import ServiceFactory

__all__ = [
    "AppService",
    "BuildService",
    "CatalogService",
    "ConfigService",
    "PackageService",
    "ProjectService",
    "ServiceFactory",
]
