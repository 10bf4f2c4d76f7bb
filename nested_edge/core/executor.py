"""External operation client — runs az / openssl and classifies the results."""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import Optional, Sequence

from nested_edge.core.activity_log import ActivityLog
from nested_edge.core.models import CommandResult, CreatedIdentity, OperationOutcome

logger = logging.getLogger(__name__)

DEVICE_NOT_FOUND_MARKER = "DeviceNotFound"
DEFAULT_CERT_SUBJECT = "/CN=Azure_IoT_Nested_Cert"


class CommandExecutor:
    """Runs one external command and captures its output."""

    def __init__(self, timeout: Optional[float] = None):
        self.timeout = timeout

    def run(self, args: Sequence[str]) -> CommandResult:
        logger.debug("Running %s", " ".join(args))
        try:
            result = subprocess.run(
                list(args),
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired:
            return CommandResult(
                success=False,
                error=f"Command timed out after {self.timeout} seconds",
            )
        except OSError as e:
            return CommandResult(
                success=False,
                error=f"Could not run {args[0]}: {e}",
            )
        return CommandResult(
            success=result.returncode == 0,
            stdout=result.stdout or "",
            stderr=result.stderr or "",
            exit_code=result.returncode,
        )


def _format_output(result: CommandResult) -> str:
    parts = [result.error, result.stdout, result.stderr]
    return "\n".join(p.rstrip() for p in parts if p and p.strip())


def _log_output(log: ActivityLog, result: CommandResult) -> None:
    output = _format_output(result)
    if output:
        log.print_verbose(output)


class HubClient:
    """Device-identity operations against one IoT hub via the ``az`` CLI."""

    def __init__(
        self,
        hub_name: str,
        executor: CommandExecutor,
        log: ActivityLog,
        az_command: Sequence[str] = ("az",),
    ):
        self.hub_name = hub_name
        self.executor = executor
        self.log = log
        self.az_command = tuple(az_command)

    def _hub_args(self, *args: str) -> list[str]:
        return [*self.az_command, "iot", "hub", *args, "--hub-name", self.hub_name]

    def create_identity(self, device_id: str) -> OperationOutcome:
        self.log.print_verbose(f"Creating device {device_id} on hub {self.hub_name}")
        result = self.executor.run(
            self._hub_args(
                "device-identity", "create", "--device-id", device_id
            ) + ["--edge-enabled"]
        )

        if not result.success:
            return self._failure(f"Failed to create {device_id}", device_id, result)

        try:
            identity = CreatedIdentity.from_json(result.stdout)
        except ValueError as e:
            return self._failure(
                f"Failed to parse create response for {device_id}: {e}",
                device_id,
                result,
                error=f"Invalid create response: {e}",
            )

        _log_output(self.log, result)
        self.log.print_verbose(f"Successfully created {device_id}")
        return OperationOutcome(
            device_id=device_id,
            success=True,
            payload=identity,
            stdout=result.stdout,
            stderr=result.stderr,
        )

    def set_parent(self, parent_id: str, child_id: str) -> OperationOutcome:
        self.log.print_verbose(f"Adding {child_id} as child of parent {parent_id}.")
        result = self.executor.run(
            self._hub_args(
                "device-identity", "parent", "set",
                "--device-id", child_id,
                "--parent-device-id", parent_id,
            )
        )

        if not result.success:
            return self._failure(
                f"Failed to add {child_id} as child of parent {parent_id}",
                child_id,
                result,
                parent_id=parent_id,
            )

        _log_output(self.log, result)
        self.log.print_verbose(
            f"Successfully added {child_id} as child of parent {parent_id}."
        )
        return OperationOutcome(
            device_id=child_id,
            parent_id=parent_id,
            success=True,
            stdout=result.stdout,
            stderr=result.stderr,
        )

    def delete_identity(self, device_id: str) -> OperationOutcome:
        """Delete one identity. A device the hub does not know counts as deleted."""
        self.log.print_verbose(f"Deleting device {device_id} on hub {self.hub_name}")
        result = self.executor.run(
            self._hub_args("device-identity", "delete", "--device-id", device_id)
        )

        if result.success or DEVICE_NOT_FOUND_MARKER in result.stderr:
            _log_output(self.log, result)
            self.log.print_verbose(f"Successfully deleted {device_id}")
            return OperationOutcome(
                device_id=device_id,
                success=True,
                stdout=result.stdout,
                stderr=result.stderr,
            )
        return self._failure(f"Failed to delete {device_id}", device_id, result)

    def _failure(
        self,
        headline: str,
        device_id: str,
        result: CommandResult,
        parent_id: Optional[str] = None,
        error: str = "",
    ) -> OperationOutcome:
        outcome = OperationOutcome(
            device_id=device_id,
            parent_id=parent_id,
            success=False,
            stdout=result.stdout,
            stderr=result.stderr,
            error=error or result.error,
        )
        self.log.print(f"{headline}:\n{outcome.diagnostics}", style="red")
        return outcome


class CertificateTool:
    """Issues self-signed certificates with ``openssl req -x509``."""

    def __init__(
        self,
        executor: CommandExecutor,
        log: ActivityLog,
        openssl_path: Optional[str | Path] = None,
        subject: str = DEFAULT_CERT_SUBJECT,
    ):
        self.executor = executor
        self.log = log
        self.openssl = str(openssl_path) if openssl_path else "openssl"
        self.subject = subject

    def build_args(self, key_path: Path, cert_path: Path) -> list[str]:
        return [
            self.openssl, "req",
            "-x509", "-new", "-newkey", "rsa:4096", "-days", "365", "-nodes",
            "-keyout", str(key_path),
            "-out", str(cert_path),
            "-subj", self.subject,
        ]

    def issue(self, device_id: str, key_path: Path, cert_path: Path) -> OperationOutcome:
        result = self.executor.run(self.build_args(key_path, cert_path))

        outcome = OperationOutcome(
            device_id=device_id,
            success=result.success,
            payload=cert_path if result.success else None,
            stdout=result.stdout,
            stderr=result.stderr,
            error=result.error,
        )
        if outcome.success:
            _log_output(self.log, result)
        else:
            self.log.print(
                f"Failed to make certificate for {device_id}:\n{outcome.diagnostics}",
                style="red",
            )
        return outcome
