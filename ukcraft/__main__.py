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
"""Command-line entry point."""

import sys

from ukcraft.application import AppMetadata, Application
from ukcraft.services import ServiceFactory

UKCRAFT = AppMetadata(
    name="ukcraft",
    summary="Resolve, build and package unikernels",
)


def main() -> int:
    """Run ukcraft."""
    services = ServiceFactory(UKCRAFT)
    app = Application(UKCRAFT, services)
    return app.run()


if __name__ == "__main__":
    sys.exit(main())
