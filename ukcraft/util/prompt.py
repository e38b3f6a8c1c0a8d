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
"""Utility functions and helpers prompting."""

from __future__ import annotations

import sys
from collections.abc import Callable, Sequence
from typing import TypeVar

from craft_cli import emit

from ukcraft import errors

T = TypeVar("T")


def _parse_choice(answer: str, count: int) -> int | None:
    answer = answer.strip()
    if not answer.isdigit():
        return None
    index = int(answer) - 1
    if 0 <= index < count:
        return index
    return None


def select(
    prompt_text: str,
    choices: Sequence[T],
    *,
    formatter: Callable[[T], str] = str,
) -> T:
    """Ask the user to pick exactly one of ``choices``.

    The choices are printed as a numbered list and the user is asked for a
    number until a valid one is entered.
    """
    if not choices:
        raise errors.PromptError(f"Nothing to choose from: {prompt_text}")
    if not sys.stdin.isatty():
        raise errors.PromptError("prompting not possible with no tty")

    with emit.pause():
        print(prompt_text, file=sys.stderr)
        for number, choice in enumerate(choices, start=1):
            print(f"  {number}) {formatter(choice)}", file=sys.stderr)
        while True:
            index = _parse_choice(input("> "), len(choices))
            if index is not None:
                return choices[index]
            print(f"Enter a number from 1 to {len(choices)}.", file=sys.stderr)


def select_many(
    prompt_text: str,
    choices: Sequence[T],
    *,
    formatter: Callable[[T], str] = str,
) -> list[T]:
    """Ask the user to pick any number of ``choices``.

    An empty answer selects every choice. Otherwise the answer is a comma
    separated list of numbers.
    """
    if not sys.stdin.isatty():
        raise errors.PromptError("prompting not possible with no tty")

    with emit.pause():
        print(prompt_text, file=sys.stderr)
        for number, choice in enumerate(choices, start=1):
            print(f"  {number}) {formatter(choice)}", file=sys.stderr)
        while True:
            answer = input("> (all) ").strip()
            if not answer:
                return list(choices)
            indices = [_parse_choice(part, len(choices)) for part in answer.split(",")]
            if None not in indices:
                return [choices[i] for i in indices if i is not None]
            print(
                f"Enter numbers from 1 to {len(choices)}, separated by commas.",
                file=sys.stderr,
            )
