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
"""Rules for querying catalogs and choosing among their results."""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING

from craft_cli import CraftError, emit

from ukcraft import errors, util

if TYPE_CHECKING:
    from ukcraft import models
    from ukcraft.catalog._client import CatalogClient


def query_catalog(
    client: CatalogClient, query: models.CatalogQuery
) -> list[models.Package]:
    """Query the local view of a catalog, then the remote one if nothing was found.

    A query that already asks for remote results is only run once. Errors are
    never retried.
    """
    try:
        packages = client.catalog(query)
        if packages or query.remote:
            return packages
        emit.debug(f"No local packages match {query}, querying remote catalog")
        return client.catalog(query.with_remote())
    except CraftError:
        raise
    except OSError as exc:
        raise errors.ExternalToolError.from_error("query catalog for", str(query), exc) from exc


def select_package(
    packages: Sequence[models.Package],
    subject: str,
    *,
    interactive: bool,
    kind: str = "package",
) -> models.Package:
    """Choose exactly one package from a query result.

    No result is an error, a single result is accepted and more than one
    requires an interactive choice.
    """
    if not packages:
        raise errors.ResolutionNotFoundError(subject)
    if len(packages) == 1:
        return packages[0]
    if not interactive:
        for package in packages:
            emit.progress(f"Possible {kind}: {package}", permanent=True)
        raise errors.ResolutionAmbiguousError(
            subject, candidates=[str(package) for package in packages]
        )
    return util.select(f"Select possible {kind} for {subject}", list(packages))
