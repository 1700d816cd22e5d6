"""
userstamps CLI - project setup commands.

Commands:
    userstamps install    - Write userstamps_config.py and optionally patch your declarative base
    userstamps help       - Show usage

Usage:
    userstamps install --output app/userstamps_config.py --base-file app/db/base.py
"""
import logging
import sys
from pathlib import Path
from typing import Optional

import click
from dotenv import load_dotenv

from userstamps.cli import generator
from userstamps.logging_config import configure_logging

logger = logging.getLogger(__name__)


@click.group()
def cli():
    """userstamps - creator/updater/deleter tracking for SQLAlchemy models."""


@cli.command()
@click.option(
    "--output",
    "-o",
    default=generator.DEFAULT_CONFIG_PATH,
    show_default=True,
    help="Where to write the configuration module",
)
@click.option(
    "--base-file",
    default=None,
    help="Module declaring your DeclarativeBase (auto-detected if omitted)",
)
@click.option("--force", is_flag=True, help="Overwrite an existing configuration file")
@click.option("--yes", "-y", "assume_yes", is_flag=True, help="Patch the declarative base without asking")
@click.option("--skip-base", is_flag=True, help="Do not touch the declarative base")
def install(output: str, base_file: Optional[str], force: bool, assume_yes: bool, skip_base: bool):
    """Generate the userstamps configuration module."""
    root = Path.cwd()

    if not generator.is_python_project(root):
        click.secho("Error: this doesn't look like a Python project.", fg="red", err=True)
        click.echo("  Run this from the directory holding pyproject.toml, setup.py or setup.cfg.", err=True)
        sys.exit(1)

    config_file = root / output
    if config_file.exists() and not force:
        click.secho(f"{output} already exists!", fg="yellow")
        if not click.confirm("  Do you want to overwrite it?", default=False):
            click.echo("  Cancelled.")
            sys.exit(0)

    generator.write_config(config_file)
    click.secho(f"Generated {output}", fg="green")

    if not skip_base:
        _integrate_declarative_base(root, base_file, assume_yes)

    click.echo(generator.NEXT_STEPS.format(config_file=output))


def _integrate_declarative_base(root: Path, base_file: Optional[str], assume_yes: bool) -> None:
    path = generator.find_base_file(root, base_file)
    if path is None:
        click.secho("Declarative base module not found; pass --base-file to patch it.", fg="yellow")
        return

    content = path.read_text()
    if generator.mixin_already_included(content):
        click.secho(f"StampableMixin already included in {path.relative_to(root)}", fg="green")
        return

    if not assume_yes:
        click.echo("")
        click.echo(f"Add StampableMixin to the declarative base in {path.relative_to(root)}?")
        click.echo("  This enables stamping for ALL your models.")
        click.echo("  (You can mix it into specific models instead.)")
        if not click.confirm("  Add to Base?", default=True):
            return

    updated = generator.patch_declarative_base(content)
    if updated is None:
        click.secho("Could not modify the declarative base automatically.", fg="yellow")
        click.echo("  Add StampableMixin to your Base class bases manually:")
        click.echo("    class Base(StampableMixin, DeclarativeBase): ...")
        return

    path.write_text(updated)
    logger.info(f"Patched declarative base in {path}")
    click.secho(f"Added StampableMixin to {path.relative_to(root)}", fg="green")
    click.echo("  All your models will now be stamped.")


@cli.command(name="help")
@click.pass_context
def show_help(ctx):
    """Show this help message."""
    click.echo(ctx.parent.get_help())


def main():
    load_dotenv()
    configure_logging()
    cli()


if __name__ == "__main__":
    main()
