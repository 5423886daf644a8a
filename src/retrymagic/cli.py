"""CLI interface for retrymagic"""

import logging
from pathlib import Path
from typing import Optional

import click

from retrymagic.domain.backoff import delay_ms, schedule_ms
from retrymagic.domain.config.retry import RetrySettings
from retrymagic.domain.errors import ConfigurationError
from retrymagic.infrastructure.config.config_manager import ConfigManager
from retrymagic.infrastructure.jitter import apply_jitter

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False, level: Optional[str] = None) -> None:
    """Setup logging configuration"""
    if verbose:
        numeric_level = logging.DEBUG
    else:
        numeric_level = getattr(logging, (level or "INFO").upper(), logging.INFO)
    logging.basicConfig(
        level=numeric_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        force=True,
    )
    logging.getLogger().setLevel(numeric_level)


def _die(message: str, verbose: bool = False, exc: Optional[Exception] = None) -> None:
    """Exit with a user-friendly error message"""
    if exc is not None:
        logger.error(message, exc_info=verbose)
    else:
        logger.error(message)
    raise click.ClickException(message)


def _load_settings(ctx: click.Context) -> RetrySettings:
    """Load retry settings from config, exiting on validation errors"""
    verbose = ctx.obj.get("verbose", False)
    try:
        config_manager = ConfigManager(config_path=ctx.obj.get("config_path"))
    except ConfigurationError as e:
        _die(str(e), verbose=verbose, exc=e)
    if not verbose:
        setup_logging(level=config_manager.get_log_level())
    return config_manager.get_retry_settings()


def _format_settings(settings: RetrySettings) -> str:
    truncation = (
        f"at {settings.maximum_number_of_slots_when_truncated} slots"
        if settings.truncate_number_of_slots
        else "disabled"
    )
    return "\n".join(
        [
            f"Maximum number of attempts: {settings.maximum_number_of_attempts}",
            f"Milliseconds per slot: {settings.milliseconds_per_slot}",
            f"Truncation: {truncation}",
            f"Jitter: {settings.jitter_settings.percentage}%",
        ]
    )


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.option(
    "--config",
    type=click.Path(exists=True, path_type=Path),
    help="Path to .retrymagic.yml config file",
)
@click.pass_context
def cli(ctx, verbose: bool, config: Path):
    """retrymagic - truncated binary exponential back-off"""
    ctx.ensure_object(dict)
    setup_logging(verbose)
    ctx.obj["config_path"] = config
    ctx.obj["verbose"] = verbose


@cli.command()
@click.pass_context
def check(ctx):
    """Validate the configuration and print the resulting settings."""
    settings = _load_settings(ctx)
    click.echo(_format_settings(settings))
    click.echo("\nConfiguration is valid")


@cli.command()
@click.option("--attempts", type=int, help="Maximum number of attempts. Overrides config.")
@click.option("--jitter", is_flag=True, help="Show one sampled jittered delay per retry")
@click.pass_context
def schedule(ctx, attempts: Optional[int], jitter: bool):
    """Print the back-off delay waited before each retry."""
    settings = _load_settings(ctx)
    if attempts is not None:
        try:
            settings = settings.with_changes(maximum_number_of_attempts=attempts)
        except ConfigurationError as e:
            _die(str(e), verbose=ctx.obj.get("verbose", False), exc=e)

    delays = schedule_ms(settings)
    if not delays:
        click.echo("Single attempt: no retries, no back-off")
        return

    click.echo(f"{'Retry':>5}  {'Base (ms)':>12}" + (f"  {'Jittered (ms)':>14}" if jitter else ""))
    for index, base in enumerate(delays):
        line = f"{index + 1:>5}  {base:>12}"
        if jitter:
            line += f"  {delay_ms(index, settings, apply_jitter):>14}"
        click.echo(line)

    click.echo(f"\nTotal base wait: {sum(delays)} ms over {len(delays)} retries")


def main():
    """Main entry point"""
    cli(obj={})


if __name__ == "__main__":
    main()
