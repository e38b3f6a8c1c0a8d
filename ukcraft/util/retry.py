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
"""Retry flaky catalog operations such as pulls over the network."""

from __future__ import annotations

import itertools
import time
from typing import TYPE_CHECKING, Any, TypeVar

from craft_cli import emit

if TYPE_CHECKING:  # pragma: no cover
    from collections.abc import Callable

# Seconds to wait after each failed attempt. The attempt after the last wait
# is final and lets its error propagate.
BACKOFF = (2, 4, 8)

T = TypeVar("T")


def retry(
    action_message: str,
    retry_exception: type[Exception] | tuple[type[Exception], ...],
    call_to_retry: Callable[..., T],
    /,
    *call_args: Any,  # noqa: ANN401
    **call_kwargs: Any,  # noqa: ANN401
) -> T:
    """Call ``call_to_retry`` until it stops raising ``retry_exception``.

    :param action_message: what the call does, as ``<verb> <noun>``, for
      example "pull lib/musl".
    :param retry_exception: the exceptions that trigger another attempt. Other
      exceptions propagate at once.
    """
    attempts = len(BACKOFF) + 1
    waits = itertools.chain(BACKOFF, [None])
    for attempt, wait in enumerate(waits, start=1):
        emit.debug(f"Trying to {action_message} (attempt {attempt}/{attempts})")
        if wait is None:
            break
        try:
            return call_to_retry(*call_args, **call_kwargs)
        except retry_exception as err:
            emit.debug(f"Could not {action_message}: {err}")
            time.sleep(wait)
    return call_to_retry(*call_args, **call_kwargs)
