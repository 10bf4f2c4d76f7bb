"""Provisioning orchestrator — creates or deletes the whole device tree in the hub."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Optional, Sequence, TypeVar

from nested_edge.core.activity_log import ActivityLog
from nested_edge.core.errors import ProvisioningError
from nested_edge.core.executor import HubClient
from nested_edge.core.models import (
    CreatedIdentity,
    DeviceNode,
    OperationOutcome,
    ProvisioningReport,
    ProvisioningState,
)
from nested_edge.core.tree import build_plan

T = TypeVar("T")


def run_wave(
    call: Callable[[T], OperationOutcome],
    items: Sequence[T],
    max_workers: Optional[int] = None,
) -> list[OperationOutcome]:
    """Run ``call`` for every item concurrently and wait for all of them.

    Outcomes come back in the order of ``items``. A failing call never
    cancels its siblings.
    """
    if not items:
        return []
    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        return list(pool.map(call, items))


class ProvisioningOrchestrator:
    """Runs the create (identities, then parent links) and delete workflows."""

    def __init__(
        self,
        root: DeviceNode,
        hub: HubClient,
        log: ActivityLog,
        max_workers: Optional[int] = None,
    ):
        self.root = root
        self.hub = hub
        self.log = log
        self.max_workers = max_workers
        self.state = ProvisioningState.IDLE

    def create_devices(self) -> dict[str, CreatedIdentity]:
        """Create every identity, then link every parent/child pair.

        Linking starts only once every identity exists. Identities already
        created stay in the hub when a later step fails.
        """
        self.state = ProvisioningState.IDLE
        plan = build_plan(self.root)

        self.state = ProvisioningState.CREATING_IDENTITIES
        self.log.print(
            f"Creating {len(plan.nodes)} devices in hub {self.hub.hub_name}"
        )
        created = run_wave(self.hub.create_identity, plan.nodes, self.max_workers)
        report = ProvisioningReport.from_outcomes("create", created)
        if not report.ok:
            self._abort(
                f"Failed to create {report.failed} of {report.attempted} devices: "
                f"{', '.join(f.device_id for f in report.failures)}. "
                "No parent-child relationships were added.",
                report,
            )

        self.state = ProvisioningState.LINKING_PARENTS
        self.log.print(
            f"Created all devices. Adding {len(plan.edges)} parent-child relationships."
        )
        linked = run_wave(
            lambda edge: self.hub.set_parent(*edge), plan.edges, self.max_workers
        )
        report = ProvisioningReport.from_outcomes("link", linked)
        if not report.ok:
            self._abort(
                f"Failed to add {report.failed} of {report.attempted} "
                "parent-child relationships. Created devices were not removed.",
                report,
            )

        self.state = ProvisioningState.DONE
        self.log.print("Added all parent-child relationships.")
        return {o.device_id: o.payload for o in created}

    def delete_devices(self) -> ProvisioningReport:
        """Delete every identity, best effort. Never raises for per-device failures."""
        self.state = ProvisioningState.IDLE
        plan = build_plan(self.root)

        self.state = ProvisioningState.DELETING_IDENTITIES
        self.log.print(
            f"Deleting {len(plan.nodes)} devices from hub {self.hub.hub_name}"
        )
        outcomes = run_wave(self.hub.delete_identity, plan.nodes, self.max_workers)
        report = ProvisioningReport.from_outcomes("delete", outcomes)

        if report.ok:
            self.log.print("Deleted all devices.")
        else:
            self.log.print(
                f"Successfully deleted {report.succeeded} devices, {report.failed} failed. "
                "For more information use the -v flag.",
                style="yellow",
            )
        self.state = ProvisioningState.DONE
        return report

    def _abort(self, message: str, report: ProvisioningReport) -> None:
        self.state = ProvisioningState.FAILED
        self.log.print(message, style="red")
        raise ProvisioningError(message, report)
