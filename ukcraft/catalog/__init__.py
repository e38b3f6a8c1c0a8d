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
"""Catalog backends and the rules for querying them."""

from ukcraft.catalog._client import CatalogClient
from ukcraft.catalog._registry import CatalogRegistry, UmbrellaCatalog
from ukcraft.catalog._policy import query_catalog, select_package
from ukcraft.catalog.manifest import ManifestCatalog

__all__ = [
    "CatalogClient",
    "CatalogRegistry",
    "ManifestCatalog",
    "UmbrellaCatalog",
    "query_catalog",
    "select_package",
]
