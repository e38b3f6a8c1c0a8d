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
"""Tests for the service factory."""

import pytest
import pytest_check
from ukcraft import services
from ukcraft.services import config, service_factory


class FakeService(services.AppService):
    """A fake service for testing."""

    def __init__(self, app, services, *, value=None):
        super().__init__(app, services)
        self.value = value
        self.setup_count = 0

    def setup(self):
        super().setup()
        self.setup_count += 1


@pytest.mark.parametrize(
    ("service_class", "module"),
    [
        ("ConfigService", "ukcraft.services.config"),
        ("CatalogService", "ukcraft.services.catalog"),
    ],
)
def test_register_service_by_path(service_class, module):
    services.ServiceFactory.register("testy", service_class, module=module)

    service = services.ServiceFactory.get_class("testy")
    pytest_check.equal(service.__module__, module)
    pytest_check.equal(service.__name__, service_class)


def test_register_service_by_reference():
    services.ServiceFactory.register("testy", FakeService)

    pytest_check.is_(services.ServiceFactory.get_class("testy"), FakeService)


def test_register_service_by_path_no_module():
    with pytest.raises(KeyError, match="Must set module"):
        services.ServiceFactory.register("testy", "FakeService")


def test_register_service_by_reference_with_module():
    with pytest.raises(KeyError, match="Must not set module"):
        services.ServiceFactory.register("testy", FakeService, module="__main__")


def test_get_unregistered(app_metadata):
    factory = services.ServiceFactory(app_metadata)

    with pytest.raises(AttributeError, match="Not a registered service: nope"):
        factory.get("nope")


def test_reset_restores_defaults():
    services.ServiceFactory.register("config", FakeService)

    services.ServiceFactory.reset()

    assert services.ServiceFactory.get_class("config") is config.ConfigService


@pytest.mark.parametrize(
    "kwargs",
    [
        {},
        {"value": "something"},
    ],
)
def test_update_kwargs(app_metadata, kwargs):
    services.ServiceFactory.register("testy", FakeService)
    factory = services.ServiceFactory(app_metadata)
    factory.update_kwargs("testy", value="replaced")
    factory.update_kwargs("testy", **kwargs)

    service = factory.get("testy")

    assert service.value == kwargs.get("value", "replaced")


def test_services_created_once(app_metadata):
    services.ServiceFactory.register("testy", FakeService)
    factory = services.ServiceFactory(app_metadata)

    first = factory.get("testy")

    pytest_check.is_(factory.get("testy"), first)
    pytest_check.is_(factory.testy, first)
    pytest_check.equal(first.setup_count, 1)


def test_getattr_private(app_metadata):
    factory = service_factory.ServiceFactory(app_metadata)

    with pytest.raises(AttributeError):
        factory._private  # noqa: B018


def test_default_services(fake_services):
    pytest_check.is_instance(fake_services.config, services.ConfigService)
    pytest_check.is_instance(fake_services.project, services.ProjectService)
    pytest_check.is_instance(fake_services.catalog, services.CatalogService)
    pytest_check.is_instance(fake_services.build, services.BuildService)
    pytest_check.is_instance(fake_services.package, services.PackageService)
