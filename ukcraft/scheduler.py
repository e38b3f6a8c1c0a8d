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
"""Phased execution of units of work.

A :class:`ProcessModel` runs :class:`Phase` objects strictly one after the
other. Units within a phase run on a thread pool or one at a time. Search
phases gather facts without side effects; action phases fetch, configure,
build or package.
"""

from __future__ import annotations

import dataclasses
import enum
import os
import threading
from collections.abc import Callable, Sequence
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from typing import Any

from craft_cli import emit

from ukcraft import errors


class UnitState(enum.Enum):
    """The lifecycle of a unit of work."""

    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"
    CANCELLED = "cancelled"


class PhaseKind(enum.Enum):
    """Whether a phase only gathers facts or changes things on disk."""

    SEARCH = "search"
    ACTION = "action"


class CancellationToken:
    """A cancellation signal shared by every unit of a run."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        """Ask every unit sharing this token to stop."""
        self._event.set()

    @property
    def cancelled(self) -> bool:
        """Whether cancellation has been requested."""
        return self._event.is_set()

    def wait(self, timeout: float) -> bool:
        """Sleep for up to ``timeout`` seconds, waking early on cancellation."""
        return self._event.wait(timeout)

    def raise_if_cancelled(self, subject: str | None = None) -> None:
        """Stop the current unit if cancellation was requested."""
        if self.cancelled:
            raise errors.CancelledError(subject)


@dataclasses.dataclass
class UnitContext:
    """What a unit of work gets to talk back to the scheduler."""

    token: CancellationToken
    _on_progress: Callable[[float], None] = lambda _: None

    def report(self, progress: float) -> None:
        """Report progress as a fraction between 0 and 1."""
        self._on_progress(min(max(progress, 0.0), 1.0))

    def check(self) -> None:
        """Raise :class:`ukcraft.errors.CancelledError` if the run was cancelled."""
        self.token.raise_if_cancelled()


@dataclasses.dataclass
class WorkUnit:
    """A named unit of work and, once run, its outcome."""

    name: str
    func: Callable[[UnitContext], Any]
    state: UnitState = UnitState.PENDING
    progress: float = 0.0
    result: Any = None
    error: BaseException | None = None


@dataclasses.dataclass
class Phase:
    """An ordered group of units.

    ``units`` may be a callable so that a phase can be built from the results
    of the phases before it.
    """

    name: str
    units: Sequence[WorkUnit] | Callable[[], Sequence[WorkUnit]]
    kind: PhaseKind = PhaseKind.ACTION
    sequential: bool = False
    """Never run these units concurrently, even when parallelism is on."""

    def materialize(self) -> list[WorkUnit]:
        """Get the units of this phase, building them if necessary."""
        units = self.units() if callable(self.units) else self.units
        return list(units)


def aggregate_progress(units: Sequence[WorkUnit]) -> float:
    """Get the mean progress of a set of units."""
    if not units:
        return 1.0
    return sum(unit.progress for unit in units) / len(units)


class ProcessModel:
    """Run phases of work with bounded parallelism and fail-fast semantics.

    :param parallel: run the units of a phase on a thread pool.
    :param fail_fast: stop at the first failure. Otherwise failures are
        reported and the remaining units still run.
    :param render: show ephemeral progress. Otherwise each state change is
        a permanent line.
    :param max_workers: the size of the thread pool.
    :param token: a cancellation token shared with the caller.
    """

    def __init__(
        self,
        *,
        parallel: bool = True,
        fail_fast: bool = True,
        render: bool = True,
        max_workers: int | None = None,
        token: CancellationToken | None = None,
    ) -> None:
        self.parallel = parallel
        self.fail_fast = fail_fast
        self.render = render
        self.max_workers = max_workers or min(32, (os.cpu_count() or 1) + 4)
        self.token = token or CancellationToken()
        self.phases: list[Phase] = []
        self._lock = threading.Lock()

    def add_phase(self, phase: Phase) -> Phase:
        """Append a phase to run."""
        self.phases.append(phase)
        return phase

    def run(self) -> list[WorkUnit]:
        """Run every phase in order.

        :returns: Every unit that was scheduled, across all phases.
        """
        units: list[WorkUnit] = []
        for phase in self.phases:
            units.extend(self.run_phase(phase))
        return units

    def run_phase(self, phase: Phase) -> list[WorkUnit]:
        """Run a single phase until every unit is done or the run is aborted."""
        self.token.raise_if_cancelled(phase.name)
        units = phase.materialize()
        if not units:
            emit.debug(f"Nothing to do for {phase.name}")
            return units

        emit.debug(
            f"Running {phase.kind.value} phase {phase.name!r} with {len(units)} unit(s)"
        )
        try:
            if self.parallel and not phase.sequential and len(units) > 1:
                self._run_parallel(phase, units)
            else:
                self._run_sequential(phase, units)
        except KeyboardInterrupt:
            self.token.cancel()
            raise

        failures = [unit for unit in units if unit.state == UnitState.FAILED]
        if failures and not self.fail_fast:
            emit.progress(
                f"{phase.name}: {len(failures)} of {len(units)} failed and were skipped",
                permanent=True,
            )
        elif self.render:
            emit.progress(f"{phase.name}: done", permanent=True)
        return units

    def _run_sequential(self, phase: Phase, units: list[WorkUnit]) -> None:
        for index, unit in enumerate(units):
            if self.token.cancelled:
                self._mark(phase, units[index:], UnitState.CANCELLED)
                raise errors.CancelledError(phase.name)
            self._execute(phase, unit, units)
            if unit.state in (UnitState.FAILED, UnitState.CANCELLED) and self.fail_fast:
                self._mark(phase, units[index + 1 :], UnitState.SKIPPED)
                raise self._first_error(units)

    def _run_parallel(self, phase: Phase, units: list[WorkUnit]) -> None:
        with ThreadPoolExecutor(
            max_workers=min(self.max_workers, len(units)),
            thread_name_prefix=phase.name,
        ) as executor:
            futures: dict[Future[None], WorkUnit] = {
                executor.submit(self._execute, phase, unit, units): unit
                for unit in units
            }
            try:
                for future in as_completed(futures):
                    unit = futures[future]
                    if unit.state == UnitState.FAILED and self.fail_fast:
                        self.token.cancel()
                        for pending, pending_unit in futures.items():
                            if pending.cancel():
                                self._mark(phase, [pending_unit], UnitState.SKIPPED)
                        break
            except KeyboardInterrupt:
                self.token.cancel()
                for pending in futures:
                    pending.cancel()
                raise

        if self.fail_fast and any(unit.state == UnitState.FAILED for unit in units):
            raise self._first_error(units)
        if self.token.cancelled:
            raise errors.CancelledError(phase.name)

    def _execute(self, phase: Phase, unit: WorkUnit, siblings: list[WorkUnit]) -> None:
        def _on_progress(progress: float) -> None:
            unit.progress = progress
            if self.render:
                overall = aggregate_progress(siblings)
                emit.progress(f"[{overall:4.0%}] {phase.name}: {unit.name}")

        context = UnitContext(self.token, _on_progress)
        self._set_state(phase, unit, UnitState.RUNNING)
        try:
            context.check()
            unit.result = unit.func(context)
        except errors.CancelledError as exc:
            unit.error = exc
            self._set_state(phase, unit, UnitState.CANCELLED)
        except Exception as exc:  # noqa: BLE001 (recorded and raised by the phase)
            unit.error = exc
            self._set_state(phase, unit, UnitState.FAILED)
        else:
            unit.progress = 1.0
            self._set_state(phase, unit, UnitState.SUCCEEDED)

    def _set_state(self, phase: Phase, unit: WorkUnit, state: UnitState) -> None:
        with self._lock:
            unit.state = state
        message = f"{phase.name}: {unit.name} {state.value}"
        if state == UnitState.FAILED:
            message += f" ({unit.error})"
            emit.debug(f"{unit.name} failed: {unit.error!r}")
        if self.render and state == UnitState.RUNNING:
            emit.progress(message)
        elif not self.render or state == UnitState.FAILED:
            emit.progress(message, permanent=True)

    def _mark(self, phase: Phase, units: Sequence[WorkUnit], state: UnitState) -> None:
        for unit in units:
            if unit.state == UnitState.PENDING:
                self._set_state(phase, unit, state)

    @staticmethod
    def _first_error(units: Sequence[WorkUnit]) -> BaseException:
        for state in (UnitState.FAILED, UnitState.CANCELLED):
            for unit in units:
                if unit.state == state and unit.error is not None:
                    return unit.error
        return errors.CancelledError()
