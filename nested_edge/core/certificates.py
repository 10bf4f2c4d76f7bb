"""Certificate orchestrator — a root certificate, then one per device in parallel."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from nested_edge.core.activity_log import ActivityLog
from nested_edge.core.errors import CertificateError
from nested_edge.core.executor import CertificateTool
from nested_edge.core.models import (
    CertificateReport,
    DeviceFailure,
    DeviceNode,
    OperationOutcome,
)
from nested_edge.core.provisioner import run_wave
from nested_edge.core.tree import flatten

ROOT_FOLDER = "certs"
ROOT_KEY_FILE = "root.key.pem"
ROOT_CERT_FILE = "root.pem"
DEVICE_KEY_FILE = "key.pem"
DEVICE_CERT_FILE = "cert.pem"


class CertificateOrchestrator:
    """Issues certificates independently of the hub workflow.

    Device certificates do not read the root certificate, so they can be
    issued in any order. The root is made first by convention only.
    """

    def __init__(
        self,
        root: DeviceNode,
        tool: CertificateTool,
        log: ActivityLog,
        max_workers: Optional[int] = None,
    ):
        self.root = root
        self.tool = tool
        self.log = log
        self.max_workers = max_workers

    def make_root_certificate(self) -> Path:
        self.log.print("Making Root CA.")
        try:
            folder = self.log.create_folder(ROOT_FOLDER)
        except OSError as e:
            raise CertificateError(
                f"Failed to make Root CA: {e}", [DeviceFailure("root", str(e))]
            ) from e
        cert_path = folder / ROOT_CERT_FILE
        outcome = self.tool.issue("root", folder / ROOT_KEY_FILE, cert_path)
        if not outcome.success:
            failure = DeviceFailure(outcome.device_id, outcome.diagnostics)
            raise CertificateError("Failed to make Root CA.", [failure])
        self.log.print(f"Successfully made Root CA {cert_path}.")
        return cert_path

    def make_device_certificate(self, device_id: str) -> OperationOutcome:
        self.log.print_verbose(f"Making device CA for {device_id}.")
        try:
            folder = self.log.create_folder(device_id)
        except (OSError, ValueError) as e:
            self.log.print(
                f"Failed to create folder for {device_id}: {e}", style="red"
            )
            return OperationOutcome(
                device_id=device_id, success=False, error=f"Cannot create folder: {e}"
            )
        outcome = self.tool.issue(
            device_id, folder / DEVICE_KEY_FILE, folder / DEVICE_CERT_FILE
        )
        if outcome.success:
            self.log.print_verbose(f"Successfully made CA {outcome.payload}.")
        return outcome

    def make_all_device_certificates(self) -> CertificateReport:
        """Issue every device certificate; raise naming all devices that failed.

        Certificates already written for other devices are left on disk.
        """
        device_ids = flatten(self.root)
        self.log.print(f"Creating certs for {len(device_ids)} devices")
        outcomes = run_wave(self.make_device_certificate, device_ids, self.max_workers)

        failures = [
            DeviceFailure(o.device_id, o.diagnostics) for o in outcomes if not o.success
        ]
        report = CertificateReport(
            attempted=len(outcomes),
            succeeded=len(outcomes) - len(failures),
            failures=failures,
        )
        if not report.ok:
            message = (
                f"Failed to make certs for {len(failures)} of {report.attempted} "
                f"devices: {', '.join(f.device_id for f in failures)}"
            )
            self.log.print(message, style="red")
            raise CertificateError(message, failures)

        self.log.print("Created all device certs.")
        return report
