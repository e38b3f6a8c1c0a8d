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
"""Tests for retry()."""

import time
from unittest.mock import call

import pytest
from ukcraft.util.retry import retry


class PullError(OSError):
    pass


def pulls(package, *, into):
    return f"{package} -> {into}"


def never_pulls(*_args, **_kwargs):
    raise PullError("registry unreachable")


@pytest.fixture
def mocked_sleep(mocker):
    return mocker.patch.object(time, "sleep")


def test_retry_success(mocked_sleep, emitter):
    assert retry("pull lib/musl", OSError, pulls, "musl", into="libs") == "musl -> libs"

    assert not mocked_sleep.called
    emitter.assert_debug("Trying to pull lib/musl (attempt 1/4)")


@pytest.mark.parametrize("exceptions", [PullError, (ValueError, OSError)])
def test_retry_failure(mocked_sleep, exceptions, emitter):
    attempts = 0

    def count_attempts(*_args, **_kwargs):
        nonlocal attempts
        attempts += 1
        return never_pulls()

    with pytest.raises(PullError, match="registry unreachable"):
        retry("pull lib/musl", exceptions, count_attempts)

    assert mocked_sleep.mock_calls == [call(2), call(4), call(8)]
    assert attempts == 4
    for attempt in range(1, 5):
        emitter.assert_debug(f"Trying to pull lib/musl (attempt {attempt}/4)")


def test_retry_eventual_success(mocked_sleep):
    outcomes = iter([PullError("timeout"), "pulled"])

    def flaky(*_args, **_kwargs):
        outcome = next(outcomes)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    assert retry("pull lib/musl", OSError, flaky) == "pulled"
    assert mocked_sleep.mock_calls == [call(2)]


def test_retry_other_exception(mocked_sleep):
    def corrupt(*_args, **_kwargs):
        raise ValueError("corrupt archive")

    with pytest.raises(ValueError, match="corrupt archive"):
        retry("pull lib/musl", OSError, corrupt)

    assert not mocked_sleep.called
