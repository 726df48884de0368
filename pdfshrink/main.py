"""
PDF Shrink: CLI Entry Point

Usage:
    python -m pdfshrink compress INPUT [-o OUTPUT] [-q TIER]
    python -m pdfshrink serve [--host HOST] [--port PORT]
    python -m pdfshrink health
"""

from __future__ import annotations

# Load .env file FIRST, before any other imports that might read env vars
from pathlib import Path
from dotenv import load_dotenv

load_dotenv(Path.cwd() / ".env")

from typing import Optional

import click

from .cli.config import check_config, presets_cmd
from .cli.ops import health, metrics_cmd, sweep_scratch
from .config.loader import STRATEGIES, load_config
from .config.validator import ConfigError
from .logging_config import setup_logging

# Initialize logging
setup_logging()


def _config_failure(error: ConfigError) -> None:
    click.secho("✗ Invalid configuration (run check-config for details)", fg="red", bold=True)
    for issue in error.issues:
        click.echo(f"    {issue.field}: {issue.message}")
    raise SystemExit(1)


@click.group()
@click.option("--mock", is_flag=True, help="Use mock codecs (no Ghostscript or pikepdf needed)")
@click.pass_context
def cli(ctx: click.Context, mock: bool) -> None:
    """PDF Shrink: best-of PDF compression service."""
    ctx.ensure_object(dict)
    config = load_config()
    if mock:
        config = config.with_overrides(mock_codecs=True)
    ctx.obj["config"] = config


@cli.command()
@click.argument("input_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("-o", "--output", "output_path", type=click.Path(dir_okay=False, path_type=Path),
              help="Output file (default: <input>-compressed.pdf)")
@click.option("-q", "--quality", default=None, help="structural, low, medium, high, extreme")
@click.option("--strategy", type=click.Choice(STRATEGIES), default=None, help="Override strategy")
@click.option("--mock", is_flag=True, help="Use mock codecs")
@click.pass_context
def compress(
    ctx: click.Context,
    input_path: Path,
    output_path: Optional[Path],
    quality: Optional[str],
    strategy: Optional[str],
    mock: bool,
) -> None:
    """Compress a PDF file."""
    from .engine.service import build_service
    from .errors import PdfShrinkError
    from .models.request import CompressionRequest

    config = ctx.obj["config"]
    if strategy:
        config = config.with_overrides(strategy=strategy)
    if mock:
        config = config.with_overrides(mock_codecs=True)

    try:
        service = build_service(config)
    except ConfigError as e:
        _config_failure(e)
    output_path = output_path or input_path.with_name(f"{input_path.stem}-compressed.pdf")

    try:
        tier = service.orchestrator.resolve_tier(quality)
        request = CompressionRequest(
            data=input_path.read_bytes(),
            filename=input_path.name,
            tier=tier,
        )
        click.echo(f"Compressing {input_path} ({request.original_size:,} bytes, tier={tier.value})...")
        outcome = service.orchestrator.compress(request)
    except PdfShrinkError as e:
        click.secho(f"✗ {e.message}", fg="red", bold=True)
        for attempt in getattr(e, "attempts", []):
            click.echo(f"    {attempt['preset']:11} {attempt['status']:8} {attempt['error_code'] or ''}")
        raise SystemExit(1)

    click.echo("")
    for candidate in outcome.candidates:
        size = f"{candidate.size_bytes:,} bytes" if candidate.size_bytes is not None else candidate.error_code
        marker = "★" if candidate.preset == outcome.preset else " "
        click.echo(f"  {marker} {candidate.preset:11} {candidate.status:8} {size}")
    click.echo("")

    output_path.write_bytes(outcome.data)

    if outcome.compressed:
        click.secho(
            f"✓ {outcome.original_size:,} → {outcome.output_size:,} bytes "
            f"({outcome.reduction_percent:.1f}% smaller, preset {outcome.preset})",
            fg="green",
        )
    else:
        click.secho("No preset beat the original; wrote the input unchanged", fg="yellow")
    click.echo(f"  Output: {output_path}")


@cli.command()
@click.option("--host", default="127.0.0.1", help="Bind address")
@click.option("--port", default=3000, type=int, help="Port to run on")
@click.option("--debug", is_flag=True, help="Enable Flask debug mode")
@click.pass_context
def serve(ctx: click.Context, host: str, port: int, debug: bool) -> None:
    """Run the HTTP compression server."""
    from .server import run_server

    if debug:
        setup_logging(level="DEBUG")
    try:
        run_server(host=host, port=port, debug=debug, config=ctx.obj["config"])
    except ConfigError as e:
        _config_failure(e)


# ── Operations ────────────────────────────────────────────────
cli.add_command(health)
cli.add_command(metrics_cmd)
cli.add_command(sweep_scratch)

# ── Configuration ─────────────────────────────────────────────
cli.add_command(check_config)
cli.add_command(presets_cmd)


if __name__ == "__main__":
    cli()
