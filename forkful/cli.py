"""
Flask CLI commands for operators.

Usage:
    flask moderate-text "some review text"    # Run text moderation and print the verdict
"""

from __future__ import annotations

import click
from flask import current_app
from flask.cli import with_appcontext


@click.command("moderate-text")
@click.argument("text")
@click.option("--show-normalized", is_flag=True, default=False,
              help="Also print the text after digit substitution and spelling correction.")
@with_appcontext
def moderate_text_command(text: str, show_normalized: bool) -> None:
    """Check TEXT with the configured toxicity provider (no review is saved)."""
    from forkful.services.moderation import build_text_moderator

    moderator = build_text_moderator(current_app.config)

    if show_normalized:
        click.echo(f"Normalized: {moderator.normalize(text)}")

    verdict = moderator.analyze_text(text)
    if verdict is None:
        click.echo("Nothing to check (empty text).")
        return

    if verdict.error:
        click.echo(f"UNSAFE: {verdict.error}")
        raise SystemExit(1)

    if verdict.safe:
        click.echo("SAFE")
        return

    click.echo("UNSAFE")
    for w in verdict.warnings:
        click.echo(f"  {w.category}: {w.score:.2f}")
    raise SystemExit(1)
