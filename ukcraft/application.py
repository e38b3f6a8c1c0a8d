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
"""The ukcraft application: argument dispatch, service wiring and error reporting."""

from __future__ import annotations

import os
import pathlib
import sys
from dataclasses import dataclass, field
from functools import cached_property
from importlib import metadata
from typing import TYPE_CHECKING, Any, NoReturn, cast, final

import craft_cli
from platformdirs import user_cache_path

from ukcraft import _config, commands, errors, util
from ukcraft.util.logging import INTERRUPTED, handle_runtime_error

if TYPE_CHECKING:
    from ukcraft.services import service_factory

GLOBAL_VERSION = craft_cli.GlobalArgument(
    "version", "flag", "-V", "--version", "Show the application version and exit"
)

# Loggers whose records are shown through craft-cli.
CLI_LOGGERS = frozenset({"ukcraft", "requests", "urllib3"})

# craft-cli refuses to pre-parse without a command, so version requests are
# parsed as if they came with this one.
_VERSION_COMMAND = "update"


@final
@dataclass(frozen=True)
class AppMetadata:
    """Metadata about the application.

    ``version`` and a missing ``summary`` are read from the installed
    distribution named ``name``.
    """

    name: str
    summary: str | None = None
    version: str = field(init=False)
    ConfigModel: type[_config.ConfigModel] = _config.ConfigModel

    def __post_init__(self) -> None:
        try:
            dist = metadata.metadata(self.name)
        except metadata.PackageNotFoundError:
            version, summary = "dev", ""
        else:
            version, summary = dist["Version"], dist.get("Summary", "")
        object.__setattr__(self, "version", version)
        if self.summary is None:
            object.__setattr__(self, "summary", summary or "")


class Application:
    """Run ukcraft's commands.

    :ivar project_dir: the directory holding the Kraftfile, from
      ``--project-dir`` or the current directory.
    """

    def __init__(
        self, app: AppMetadata, services: service_factory.ServiceFactory
    ) -> None:
        self.app = app
        self.services = services
        self.project_dir = pathlib.Path.cwd()
        self._kraftfile: pathlib.Path | None = None

    @property
    def app_config(self) -> dict[str, Any]:
        """The configuration every command is loaded with."""
        return {"app": self.app, "services": self.services}

    @property
    def command_groups(self) -> list[craft_cli.CommandGroup]:
        return commands.get_command_groups()

    @cached_property
    def cache_dir(self) -> pathlib.Path:
        """The directory for downloaded indexes, packages and initramfs caches."""
        try:
            return user_cache_path(self.app.name, ensure_exists=True)
        except FileExistsError as err:
            raise errors.PathInvalidError(
                f"The cache path is not a directory: {err.strerror}"
            ) from err
        except OSError as err:
            raise errors.PathInvalidError(
                f"Unable to create/access cache directory: {err.strerror}"
            ) from err

    def _configure_services(self) -> None:
        self.services.update_kwargs(
            "project", project_dir=self.project_dir, kraftfile=self._kraftfile
        )
        self.services.update_kwargs("catalog", cache_dir=self.cache_dir)

    def _exit(self, code: int) -> NoReturn:
        craft_cli.emit.ended_ok()
        sys.exit(code)

    def _pre_parse(self, dispatcher: craft_cli.Dispatcher) -> dict[str, Any]:
        argv = sys.argv[1:]
        if "--version" in argv or "-V" in argv:
            try:
                return dispatcher.pre_parse_args(
                    [_VERSION_COMMAND, *argv], self.app_config
                )
            except craft_cli.ArgumentParsingError:
                pass
        return dispatcher.pre_parse_args(argv, self.app_config)

    def _get_dispatcher(self) -> craft_cli.Dispatcher:
        """Create the dispatcher and handle the global arguments.

        Exits the process for ``--version``, help requests and bad arguments.
        """
        dispatcher = craft_cli.Dispatcher(
            self.app.name,
            self.command_groups,
            summary=str(self.app.summary),
            extra_global_args=[GLOBAL_VERSION],
        )
        craft_cli.emit.trace("pre-parsing arguments...")
        try:
            global_args = self._pre_parse(dispatcher)
        except craft_cli.ProvideHelpException as err:
            print(err, file=sys.stderr)
            self._exit(os.EX_OK)
        except craft_cli.ArgumentParsingError as err:
            print(err, file=sys.stderr)
            self._exit(os.EX_USAGE)
        except KeyboardInterrupt as err:
            self._emit_error(craft_cli.CraftError("Interrupted."), cause=err)
            sys.exit(INTERRUPTED)
        except Exception as err:
            self._emit_error(
                craft_cli.CraftError(
                    f"Internal error while loading {self.app.name}: {err!r}"
                )
            )
            if self.services.get("config").get("debug"):
                raise
            sys.exit(os.EX_SOFTWARE)

        if global_args.get("version"):
            craft_cli.emit.message(f"{self.app.name} {self.app.version}")
            self._exit(os.EX_OK)
        return dispatcher

    def _pre_run(self, dispatcher: craft_cli.Dispatcher) -> None:
        """Take the project location from the loaded command's arguments."""
        args = dispatcher.parsed_args()
        if project_dir := getattr(args, "project_dir", None):
            self.project_dir = pathlib.Path(project_dir).expanduser().resolve()
            if self.project_dir.exists() and not self.project_dir.is_dir():
                raise errors.ProjectFileMissingError(self.project_dir)
        if kraftfile := getattr(args, "kraftfile", None):
            self._kraftfile = pathlib.Path(kraftfile).expanduser().resolve()

    def _run_inner(self) -> int:
        dispatcher = self._get_dispatcher()
        command = cast(commands.AppCommand, dispatcher.load_command(self.app_config))
        self._pre_run(dispatcher)
        self._configure_services()
        craft_cli.emit.debug(f"Running {self.app.name} {command.name}")
        return dispatcher.run() or os.EX_OK

    def run(self) -> int:
        """Run the command given on the command line and get its exit code."""
        self._setup_logging()
        craft_cli.emit.debug("Preparing application...")
        debug_mode = self.services.get("config").get("debug")

        try:
            return_code = self._run_inner()
        except (Exception, KeyboardInterrupt) as error:  # noqa: BLE001
            return handle_runtime_error(
                self.app, error, print_error=self._emit_error, debug_mode=debug_mode
            )
        craft_cli.emit.ended_ok()
        return return_code

    def _emit_error(
        self, error: craft_cli.CraftError, *, cause: BaseException | None = None
    ) -> None:
        if cause is not None:
            error.__cause__ = cause
        craft_cli.emit.error(error)

    def _setup_logging(self) -> None:
        util.setup_loggers(*CLI_LOGGERS)
        try:
            mode = self.services.get("config").get("verbosity_level")
            invalid_level = None
        except ValueError:
            mode = craft_cli.EmitterMode.BRIEF
            invalid_level = os.environ.get(
                f"{self.app.name.upper()}_VERBOSITY_LEVEL",
                os.environ.get("CRAFT_VERBOSITY_LEVEL", ""),
            )

        craft_cli.emit.init(
            mode=mode,
            appname=self.app.name,
            greeting=f"Starting {self.app.name}, version {self.app.version}",
            streaming_brief=True,
        )
        craft_cli.emit.debug(f"Log verbosity level set to {mode.name}")
        if invalid_level is not None:
            valid = ", ".join(level.name for level in craft_cli.EmitterMode)
            craft_cli.emit.progress(
                f"Invalid verbosity level '{invalid_level}', using default 'BRIEF'.\n"
                f"Valid levels are: {valid}",
                permanent=True,
            )
