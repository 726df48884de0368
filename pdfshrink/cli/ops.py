"""
CLI operations commands: health, metrics, scratch maintenance.
"""

from __future__ import annotations

import json

import click


STATUS_STYLE = {
    "healthy": ("✓", "green"),
    "degraded": ("⚠", "yellow"),
    "unhealthy": ("✗", "red"),
}


@click.command("health")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def health(ctx: click.Context, as_json: bool) -> None:
    """Report which codecs can run and whether scratch space is usable."""
    from ..config.validator import ConfigError
    from ..engine.service import build_service
    from ..observability.health import HealthStatus

    try:
        service = build_service(ctx.obj["config"])
    except ConfigError as e:
        click.secho(f"✗ {e}", fg="red", bold=True)
        raise SystemExit(1)
    report = service.health.check()
    unhealthy = report.status == HealthStatus.UNHEALTHY

    if as_json:
        click.echo(json.dumps(report.to_dict(), indent=2))
        if unhealthy:
            raise SystemExit(1)
        return

    mark, color = STATUS_STYLE[report.status.value]
    click.secho(f"\n{mark} {report.status.value.upper()}", fg=color, bold=True)

    click.echo("\n  codec        available  version")
    for name, info in report.codecs.items():
        click.secho(
            f"  {name:12} {'yes' if info['available'] else 'no':10} {info['version'] or '-'}",
            fg=None if info["available"] else "red",
        )

    click.echo("")
    for component in report.components:
        c_mark, c_color = STATUS_STYLE[component.status.value]
        click.secho(f"  {c_mark} {component.name:17}", fg=c_color, nl=False)
        click.echo(f" {component.message}")
    click.echo("")

    if unhealthy:
        raise SystemExit(1)


@click.command("metrics")
@click.option("--format", "output_format", type=click.Choice(["prometheus", "json"]), default="prometheus")
@click.pass_context
def metrics_cmd(ctx: click.Context, output_format: str) -> None:
    """Export this process's metrics."""
    from ..observability.metrics import metrics

    if output_format == "json":
        click.echo(json.dumps(metrics.export_json(), indent=2))
    else:
        click.echo(metrics.export_prometheus(), nl=False)


@click.command("sweep-scratch")
@click.option("--max-age", type=float, default=None, help="Seconds (default: release grace period)")
@click.pass_context
def sweep_scratch(ctx: click.Context, max_age: float) -> None:
    """Remove scratch files left behind by a crashed server."""
    from ..engine.scratch import ScratchManager

    config = ctx.obj["config"]
    max_age = config.release_grace_seconds if max_age is None else max_age

    scratch = ScratchManager(config.scratch_dir, config.release_grace_seconds)
    removed = scratch.sweep_stale(max_age)

    if removed:
        click.secho(f"✓ Removed {removed} stale file(s) from {scratch.root}", fg="green")
    else:
        click.echo(f"No stale files older than {max_age:.0f}s in {scratch.root}")
