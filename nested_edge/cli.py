"""CLI entry point for nested-edge."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.tree import Tree

import nested_edge
from nested_edge.core.models import DeviceNode

app = typer.Typer(
    name="nested-edge",
    help="Provision nested IoT Edge device hierarchies and their certificates.",
    no_args_is_help=True,
)
console = Console()


def _load(config_path: Optional[Path]):
    from nested_edge.config import load_config
    from nested_edge.core.errors import ConfigError

    console.print(f"[dim]Reading {config_path or 'default config'}...[/]")
    try:
        return load_config(config_path)
    except ConfigError as e:
        console.print(f"[red]Error: {escape(str(e))}[/]")
        raise typer.Exit(1)


@app.command()
def provision(
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Give more detailed output"
    ),
    delete: bool = typer.Option(
        False, "--delete", "-d", help="Delete the devices from the hub instead of creating them"
    ),
    output: Path = typer.Option(
        Path("./nested"), "--output", "-o", help="Directory for certificates and logs"
    ),
    config: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Config file (YAML or .toml). Default: ./templates/test1.yaml"
    ),
    openssl_path: Optional[Path] = typer.Option(
        None, "--openssl-path", help="Path to openssl. Only needed if openssl is not in PATH"
    ),
    az_path: Optional[Path] = typer.Option(
        None, "--az-path", help="Path to the az CLI. Only needed if az is not in PATH"
    ),
    certs_only: bool = typer.Option(
        False, "--certs-only", help="Skip the hub and only issue certificates"
    ),
    timeout: Optional[float] = typer.Option(
        None, "--timeout", help="Per-call timeout in seconds (default: wait forever)"
    ),
    jobs: Optional[int] = typer.Option(
        None, "--jobs", "-j", min=1, help="Maximum concurrent external calls"
    ),
) -> None:
    """Create (or delete) the device tree in the hub and issue certificates."""
    from nested_edge.core.activity_log import ActivityLog
    from nested_edge.core.certificates import CertificateOrchestrator
    from nested_edge.core.errors import NestedEdgeError
    from nested_edge.core.executor import CertificateTool, CommandExecutor, HubClient
    from nested_edge.core.provisioner import ProvisioningOrchestrator

    cfg = _load(config)
    executor = CommandExecutor(timeout=timeout)

    try:
        log = ActivityLog.open(output, verbose=verbose, console=console)
    except OSError as e:
        console.print(f"[red]Error: cannot write to {escape(str(output))}: {escape(str(e))}[/]")
        raise typer.Exit(1)

    with log:
        log.print_verbose(
            f"verbose={verbose} delete={delete} output={output} config={config} "
            f"openssl_path={openssl_path} az_path={az_path} certs_only={certs_only} "
            f"timeout={timeout} jobs={jobs}"
        )
        hub = HubClient(
            cfg.hub_name,
            executor,
            log,
            az_command=(str(az_path),) if az_path else ("az",),
        )
        provisioner = ProvisioningOrchestrator(cfg.root_device, hub, log, max_workers=jobs)

        try:
            if delete:
                report = provisioner.delete_devices()
                raise typer.Exit(0 if report.ok else 1)

            if not certs_only:
                provisioner.create_devices()

            certs = CertificateOrchestrator(
                cfg.root_device,
                CertificateTool(executor, log, openssl_path=openssl_path),
                log,
                max_workers=jobs,
            )
            certs.make_root_certificate()
            certs.make_all_device_certificates()
        except (NestedEdgeError, OSError) as e:
            console.print(f"[red]Error: {escape(str(e))}[/]")
            raise typer.Exit(1)

    console.print(f"\n[green]Output written to: {output}[/]")


def _add_children(branch: Tree, node: DeviceNode) -> None:
    for child in node.children:
        _add_children(branch.add(escape(child.device_id)), child)


@app.command()
def show(
    config: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Config file (YAML or .toml)"
    ),
) -> None:
    """Render the configured device tree."""
    from nested_edge.core.tree import build_plan

    cfg = _load(config)
    tree = Tree(f"[bold cyan]{escape(cfg.root_device.device_id)}[/]")
    _add_children(tree, cfg.root_device)

    console.print(f"[bold]Hub:[/] {cfg.hub_name}")
    console.print(tree)
    plan = build_plan(cfg.root_device)
    console.print(
        f"[dim]{len(plan.nodes)} devices, {len(plan.edges)} parent-child relationships[/]"
    )


@app.command()
def version() -> None:
    """Print version."""
    console.print(f"nested-edge {nested_edge.__version__}")


if __name__ == "__main__":
    app()
