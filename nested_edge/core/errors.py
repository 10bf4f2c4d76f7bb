"""
Error taxonomy.

Per-call failures are returned as OperationOutcome values. These exceptions
are raised only when a whole workflow has to stop, and the CLI catches them
once at the top.
"""

from __future__ import annotations

from nested_edge.core.models import DeviceFailure, ProvisioningReport


class NestedEdgeError(Exception):
    """Base class for all nested-edge exceptions."""


class ConfigError(NestedEdgeError):
    """Raised when the device tree config cannot be read or is malformed."""


class ProvisioningError(NestedEdgeError):
    """Raised when a create workflow wave has at least one failed call."""

    def __init__(self, message: str, report: ProvisioningReport):
        super().__init__(message)
        self.report = report


class CertificateError(NestedEdgeError):
    """Raised when the root certificate or any device certificate fails."""

    def __init__(self, message: str, failures: list[DeviceFailure]):
        super().__init__(message)
        self.failures = failures

    @property
    def device_ids(self) -> list[str]:
        return [f.device_id for f in self.failures]
