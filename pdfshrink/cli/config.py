"""
CLI configuration commands: check-config, presets.
"""

from __future__ import annotations

import json

import click


@click.command("check-config")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def check_config(ctx: click.Context, as_json: bool) -> None:
    """Validate the effective configuration."""
    from ..config.validator import has_errors, validate_config

    config = ctx.obj["config"]
    issues = validate_config(config)

    if as_json:
        click.echo(json.dumps({
            "config": config.to_dict(),
            "issues": [i.to_dict() for i in issues],
        }, indent=2))
        if has_errors(issues):
            raise SystemExit(1)
        return

    click.echo("\n📋 Configuration\n")
    for key, value in config.to_dict().items():
        click.echo(f"  {key:26} {value}")
    click.echo()

    if not issues:
        click.secho("✓ Configuration is valid", fg="green", bold=True)
        return

    for issue in issues:
        color = "red" if issue.level == "error" else "yellow"
        mark = "✗" if issue.level == "error" else "⚠"
        click.secho(f"  {mark} {issue.field}", fg=color, nl=False)
        click.echo(f" — {issue.message}")
        if issue.guidance:
            click.echo(f"      → {issue.guidance}")

    errors = [i for i in issues if i.level == "error"]
    click.echo()
    click.secho(
        f"Summary: {len(errors)} error(s), {len(issues) - len(errors)} warning(s)",
        bold=True,
    )
    if errors:
        raise SystemExit(1)


@click.command("presets")
@click.pass_context
def presets_cmd(ctx: click.Context) -> None:
    """List presets and the plan each quality tier runs."""
    from ..models.request import QualityTier
    from ..presets.loader import load_presets

    config = ctx.obj["config"]
    table = load_presets(config.presets_file)

    click.echo("\nPresets:")
    for name, spec in table.presets.items():
        params = ", ".join(f"{k}={v}" for k, v in spec.params.items())
        click.secho(f"  {name:11}", bold=True, nl=False)
        click.echo(f" {spec.codec:12} {params}")

    click.echo(f"\nPlans ({config.strategy}):")
    for tier in QualityTier:
        plan = table.single_plan(tier) if config.strategy == "single" else table.best_of_plan(tier)
        click.echo(f"  {tier.value:11} → {', '.join(p.name for p in plan)}")
    click.echo()
