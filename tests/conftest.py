"""Shared test fixtures for nested-edge tests."""

from __future__ import annotations

import io
import json
from typing import Callable, Optional
from unittest.mock import MagicMock

import pytest
from rich.console import Console

from nested_edge.core.activity_log import ActivityLog
from nested_edge.core.models import DeviceNode


@pytest.fixture
def sample_tree() -> DeviceNode:
    """root → A → C, root → B."""
    return DeviceNode(
        "root",
        (
            DeviceNode("A", (DeviceNode("C"),)),
            DeviceNode("B"),
        ),
    )


@pytest.fixture
def console_buffer() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def activity_log(tmp_path, console_buffer):
    """ActivityLog writing into tmp_path, console captured in console_buffer."""
    console = Console(file=console_buffer, width=200, color_system=None)
    log = ActivityLog.open(tmp_path / "out", verbose=False, console=console)
    yield log
    log.close()


def completed(returncode: int = 0, stdout: str = "", stderr: str = "") -> MagicMock:
    """A stand-in for subprocess.CompletedProcess."""
    return MagicMock(returncode=returncode, stdout=stdout, stderr=stderr)


def create_response(device_id: str) -> str:
    """JSON printed by `az iot hub device-identity create --edge-enabled`."""
    return json.dumps({
        "deviceId": device_id,
        "status": "enabled",
        "etag": "AAAAAAAAAAE=",
        "capabilities": {"iotEdge": True},
        "authentication": {"type": "sas"},
    })


def fake_az(
    fail_create: frozenset[str] = frozenset(),
    fail_link: frozenset[str] = frozenset(),
    fail_delete: Optional[dict[str, str]] = None,
) -> Callable:
    """Build a subprocess.run side effect that mimics the az CLI.

    fail_delete maps a device id to the stderr text its delete returns.
    """
    fail_delete = fail_delete or {}

    def run(args, **kwargs):
        device_id = args[args.index("--device-id") + 1]
        if "create" in args:
            if device_id in fail_create:
                return completed(1, "", f"ERROR: could not create {device_id}")
            return completed(0, create_response(device_id))
        if "parent" in args:
            if device_id in fail_link:
                return completed(1, "", f"ERROR: could not link {device_id}")
            return completed(0, "")
        if "delete" in args:
            if device_id in fail_delete:
                return completed(1, "", fail_delete[device_id])
            return completed(0, "")
        raise AssertionError(f"unexpected command: {args}")

    return run
