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
"""Models for ukcraft."""

from ukcraft.models.base import CraftBaseModel
from ukcraft.models.project import Component, ComponentType, Project, Target
from ukcraft.models.catalog import CatalogQuery, MergeStrategy, Package, PackOptions
from ukcraft.models.artifact import Artifact

__all__ = [
    "Artifact",
    "CatalogQuery",
    "Component",
    "ComponentType",
    "CraftBaseModel",
    "MergeStrategy",
    "Package",
    "PackOptions",
    "Project",
    "Target",
]
