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
"""Tests for target filtering and selection."""

import pytest
import pytest_check
from hypothesis import given, strategies

from ukcraft import errors, models
from ukcraft.targets import filter_targets, select_targets

ARCHITECTURES = ["x86_64", "arm64", "arm"]
PLATFORMS = ["qemu", "fc", "xen"]


def _target(platform: str, architecture: str, name: str = "") -> models.Target:
    return models.Target(
        platform=platform, architecture=architecture, name=name or f"{platform}-{architecture}"
    )


target_lists = strategies.lists(
    strategies.builds(
        _target,
        strategies.sampled_from(PLATFORMS),
        strategies.sampled_from(ARCHITECTURES),
    ),
    max_size=6,
)


@given(
    targets=target_lists,
    architecture=strategies.sampled_from(["", *ARCHITECTURES]),
    platform=strategies.sampled_from(["", *PLATFORMS]),
)
def test_filter_targets_is_a_subset(targets, architecture, platform):
    selected = filter_targets(targets, architecture, platform)

    assert all(target in targets for target in selected)
    for target in selected:
        if architecture:
            pytest_check.equal(target.architecture, architecture)
        if platform:
            pytest_check.equal(target.platform, platform)


@given(targets=target_lists)
def test_filter_targets_no_constraints(targets):
    assert filter_targets(targets) == targets


@given(
    targets=target_lists,
    architecture=strategies.sampled_from(ARCHITECTURES),
)
def test_filter_targets_is_idempotent(targets, architecture):
    once = filter_targets(targets, architecture)

    assert filter_targets(once, architecture) == once


def test_filter_targets_by_architecture():
    targets = [
        _target("qemu", "x86_64"),
        _target("qemu", "arm64"),
        _target("fc", "x86_64"),
    ]

    selected = filter_targets(targets, architecture="x86_64")

    assert [target.plat_arch for target in selected] == ["qemu/x86_64", "fc/x86_64"]


def test_filter_targets_by_name():
    targets = [_target("qemu", "x86_64", "one"), _target("qemu", "x86_64", "two")]

    assert filter_targets(targets, name="two") == [targets[1]]


def test_filter_targets_platform_alias():
    targets = [_target("fc", "x86_64"), _target("qemu", "x86_64")]

    assert filter_targets(targets, platform="firecracker") == [targets[0]]


@pytest.mark.parametrize(
    ("architecture", "platform"), [("x86_64", ""), ("", "qemu"), ("x86_64", "qemu")]
)
def test_filter_targets_name_conflicts(architecture, platform):
    with pytest.raises(errors.IncompatibleArgumentsError):
        filter_targets([], architecture, platform, "name")


def test_select_targets_nothing_left():
    with pytest.raises(errors.NoTargetsSelectedError, match="No targets selected to build"):
        select_targets([_target("qemu", "x86_64")], "arm64", interactive=False)


def test_select_targets_non_interactive_keeps_all():
    targets = [_target("qemu", "x86_64"), _target("fc", "x86_64")]

    assert select_targets(targets, "x86_64", interactive=False) == targets


def test_select_targets_interactive_asks(mocker):
    targets = [_target("qemu", "x86_64"), _target("fc", "x86_64")]
    mock_select = mocker.patch("ukcraft.util.select", return_value=targets[1])

    assert select_targets(targets, interactive=True, verb="package") == [targets[1]]
    mock_select.assert_called_once_with("Select target to package", targets)
