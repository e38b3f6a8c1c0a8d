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
"""Configuration service: layered lookup of ukcraft's settings.

Settings are looked up, in order, in ``UKCRAFT_*`` environment variables,
``CRAFT_*`` environment variables (general settings only), any extra handlers,
the user's configuration file and finally the defaults of the config model.
"""

from __future__ import annotations

import abc
import enum
import os
import pathlib
import typing
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any, final

import platformdirs
import pydantic
import pydantic_core
from craft_cli import emit
from typing_extensions import override

from ukcraft import _config, errors, util
from ukcraft.services import base

if TYPE_CHECKING:
    from ukcraft import application
    from ukcraft.services.service_factory import ServiceFactory

CONFIG_FILE_NAME = "config.yaml"


class ConfigHandler(abc.ABC):
    """A source of raw configuration values."""

    def __init__(self, app: application.AppMetadata) -> None:
        self._app = app

    @abc.abstractmethod
    def get_raw(self, item: str) -> Any:  # noqa: ANN401
        """Get the raw value of a configuration item.

        :raises KeyError: if this handler has no value for the item.
        """


class _EnvironmentHandler(ConfigHandler):
    prefix: str

    def _accepts(self, item: str) -> bool:
        return True

    @override
    def get_raw(self, item: str) -> str:
        if not self._accepts(item):
            raise KeyError(f"{item!r} not a general config item.")
        return os.environ[f"{self.prefix}_{item.upper()}"]


@final
class AppEnvironmentHandler(_EnvironmentHandler):
    """Read ``UKCRAFT_<ITEM>`` environment variables."""

    def __init__(self, app: application.AppMetadata) -> None:
        super().__init__(app)
        self.prefix = app.name.upper()


@final
class CraftEnvironmentHandler(_EnvironmentHandler):
    """Read ``CRAFT_<ITEM>`` environment variables for the general settings."""

    prefix = "CRAFT"

    @override
    def _accepts(self, item: str) -> bool:
        return item in _config.ConfigModel.model_fields


@final
class FileConfigHandler(ConfigHandler):
    """The user's configuration file, with dashed keys like the Kraftfile.

    Values can be changed with :meth:`set` and saved with :meth:`write`.
    """

    def __init__(
        self, app: application.AppMetadata, path: pathlib.Path | None = None
    ) -> None:
        super().__init__(app)
        self.path = path or platformdirs.user_config_path(app.name) / CONFIG_FILE_NAME
        self._data = self._load()

    def _load(self) -> dict[str, Any]:
        if not self.path.is_file():
            return {}
        with self.path.open() as file:
            data = util.safe_yaml_load(file)
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise errors.CraftError(
                f"Invalid configuration file {str(self.path)!r}.",
                resolution="The configuration file must be a YAML mapping.",
            )
        emit.debug(f"Loaded configuration from {str(self.path)!r}")
        return data

    @override
    def get_raw(self, item: str) -> Any:
        return self._data[item.replace("_", "-")]

    def set(self, item: str, value: Any) -> None:  # noqa: ANN401
        self._data[item.replace("_", "-")] = value

    def write(self) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("w") as file:
                util.dump_yaml(self._data, stream=file)
        except OSError as exc:
            raise errors.CacheWriteError.from_os_error(exc) from exc
        emit.debug(f"Wrote configuration to {str(self.path)!r}")


@final
class DefaultConfigHandler(ConfigHandler):
    """The defaults declared on the application's config model."""

    @override
    def get_raw(self, item: str) -> Any:
        default = self._app.ConfigModel.model_fields[item].get_default(
            call_default_factory=True
        )
        if default is pydantic_core.PydanticUndefined:
            raise KeyError(f"config item {item!r} has no default value.")
        return default


def _parse_string(value: str, field_type: Any) -> Any:  # noqa: ANN401
    """Parse a setting given as a string, as in an environment variable.

    Enums accept member names in any case, booleans accept ``yes``/``no`` and
    similar, and lists are comma separated.
    """
    if field_type is bool:
        return util.strtobool(value)
    if isinstance(field_type, type) and issubclass(field_type, enum.Enum):
        member = field_type.__members__.get(value) or field_type.__members__.get(
            value.upper()
        )
        if member is not None:
            return member
    if typing.get_origin(field_type) is list:
        items = [part.strip() for part in value.split(",") if part.strip()]
        return pydantic.TypeAdapter(field_type).validate_python(items)
    return pydantic.TypeAdapter(field_type).validate_strings(value)


class ConfigService(base.AppService):
    """Application-wide configuration access."""

    _handlers: list[ConfigHandler]

    def __init__(
        self,
        app: application.AppMetadata,
        services: ServiceFactory,
        *,
        config_file: pathlib.Path | None = None,
        extra_handlers: Iterable[type[ConfigHandler]] = (),
    ) -> None:
        super().__init__(app, services)
        self._config_file = config_file
        self._extra_handlers = extra_handlers
        self._default_handler = DefaultConfigHandler(self._app)

    @override
    def setup(self) -> None:
        super().setup()
        self._file_handler = FileConfigHandler(self._app, self._config_file)
        self._handlers = [
            AppEnvironmentHandler(self._app),
            CraftEnvironmentHandler(self._app),
            *(handler(self._app) for handler in self._extra_handlers),
            self._file_handler,
        ]

    def _adapter(self, item: str) -> pydantic.TypeAdapter[Any]:
        try:
            field_info = self._app.ConfigModel.model_fields[item]
        except KeyError:
            raise KeyError(f"unknown config item: {item!r}") from None
        return pydantic.TypeAdapter(field_info.annotation)

    def get(self, item: str) -> Any:  # noqa: ANN401
        """Get the value of a configuration item from the first handler that has it.

        :raises KeyError: if the item is not a configuration item.
        :raises ValueError: if the value found is not valid for the item.
        """
        adapter = self._adapter(item)
        for handler in self._handlers:
            try:
                value = handler.get_raw(item)
            except KeyError:
                continue
            if isinstance(value, str):
                field_type = self._app.ConfigModel.model_fields[item].annotation
                return _parse_string(value, field_type)
            return adapter.validate_python(value)
        return self._default_handler.get_raw(item)

    def set(self, item: str, value: Any) -> None:  # noqa: ANN401
        """Validate and set an item in the user's configuration file.

        Nothing is saved until :meth:`write` is called.
        """
        adapter = self._adapter(item)
        validated = adapter.validate_python(value)
        self._file_handler.set(item, adapter.dump_python(validated, mode="json"))

    def write(self) -> None:
        """Save the user's configuration file."""
        self._file_handler.write()
