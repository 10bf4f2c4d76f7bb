"""Core data models for nested-edge."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


@dataclass(frozen=True)
class DeviceNode:
    device_id: str
    children: tuple[DeviceNode, ...] = ()


@dataclass(frozen=True)
class FlatPlan:
    nodes: tuple[str, ...]
    edges: tuple[tuple[str, str], ...]


@dataclass
class CommandResult:
    success: bool
    stdout: str = ""
    stderr: str = ""
    exit_code: int = 0
    error: str = ""


@dataclass
class OperationOutcome:
    """Result of one external call against one device.

    ``payload`` is only meaningful on success; the diagnostic fields are
    filled from the captured process output either way.
    """

    device_id: str
    success: bool
    parent_id: Optional[str] = None
    payload: Any = None
    stdout: str = ""
    stderr: str = ""
    error: str = ""

    @property
    def diagnostics(self) -> str:
        parts = [p.strip() for p in (self.error, self.stdout, self.stderr)]
        return "\n".join(p for p in parts if p)


@dataclass
class CreatedIdentity:
    device_id: str
    status: str = ""
    edge_enabled: bool = False
    etag: str = ""
    raw: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_json(cls, text: str) -> CreatedIdentity:
        """Parse the JSON printed by ``az iot hub device-identity create``.

        Raises ValueError when the text is not a JSON object carrying a
        ``deviceId``.
        """
        data = json.loads(text)
        if not isinstance(data, dict):
            raise ValueError("expected a JSON object")
        device_id = data.get("deviceId")
        if not device_id:
            raise ValueError("missing deviceId")
        capabilities = data.get("capabilities") or {}
        return cls(
            device_id=str(device_id),
            status=str(data.get("status") or ""),
            edge_enabled=bool(capabilities.get("iotEdge", False)),
            etag=str(data.get("etag") or ""),
            raw=data,
        )


@dataclass
class DeviceFailure:
    device_id: str
    diagnostics: str
    parent_id: Optional[str] = None


@dataclass
class ProvisioningReport:
    action: str  # "create", "link", "delete"
    attempted: int
    succeeded: int
    failures: list[DeviceFailure] = field(default_factory=list)

    @property
    def failed(self) -> int:
        return self.attempted - self.succeeded

    @property
    def ok(self) -> bool:
        return self.succeeded == self.attempted

    @classmethod
    def from_outcomes(
        cls, action: str, outcomes: list[OperationOutcome]
    ) -> ProvisioningReport:
        failures = [
            DeviceFailure(o.device_id, o.diagnostics, o.parent_id)
            for o in outcomes
            if not o.success
        ]
        return cls(
            action=action,
            attempted=len(outcomes),
            succeeded=len(outcomes) - len(failures),
            failures=failures,
        )


@dataclass
class CertificateReport:
    attempted: int
    succeeded: int
    failures: list[DeviceFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


class ProvisioningState(Enum):
    IDLE = "idle"
    CREATING_IDENTITIES = "creating_identities"
    LINKING_PARENTS = "linking_parents"
    DELETING_IDENTITIES = "deleting_identities"
    DONE = "done"
    FAILED = "failed"
