"""pricetrigger CLI."""

import asyncio
import sys

import click

from pricetrigger.app import PriceTriggerApp
from pricetrigger.constants import DEFAULT_CONFIG_PATH


@click.group()
def cli():
    """Price-triggered limit sell dispatcher."""
    pass


@cli.command()
@click.option(
    "--config",
    type=click.Path(exists=True),
    default=DEFAULT_CONFIG_PATH,
    help="Path to configuration file",
)
@click.option("--dry-run", is_flag=True, help="Log orders instead of submitting them")
@click.option("--symbol", help="Override the monitored market (e.g. BTC-USDT)")
@click.option(
    "--exchange",
    "exchange_mode",
    type=click.Choice(["kucoin", "sim"], case_sensitive=False),
    help="Override the exchange client",
)
def run(config, dry_run, symbol, exchange_mode):
    """Poll the ticker and sell once the price threshold is reached."""
    try:
        app = PriceTriggerApp(
            config_path=config, dry_run=dry_run, symbol=symbol, exchange_mode=exchange_mode
        )
        asyncio.run(app.run())
    except KeyboardInterrupt:
        pass
    except Exception as e:
        click.echo(f"Fatal error: {e}", err=True)
        import traceback

        traceback.print_exc()
        sys.exit(1)


@cli.command()
@click.option(
    "--config",
    type=click.Path(exists=True),
    default=DEFAULT_CONFIG_PATH,
    help="Path to configuration file",
)
@click.option("--dry-run", is_flag=True, help="Log the order instead of submitting it")
@click.option(
    "--exchange",
    "exchange_mode",
    type=click.Choice(["kucoin", "sim"], case_sensitive=False),
    help="Override the exchange client",
)
def check(config, dry_run, exchange_mode):
    """Run a single tick and print its outcome."""
    try:
        app = PriceTriggerApp(config_path=config, dry_run=dry_run, exchange_mode=exchange_mode)
        result = asyncio.run(app.check_once())
    except Exception as e:
        click.echo(f"Check failed: {e}", err=True)
        sys.exit(1)

    click.echo(result.summary())
    if result.failed:
        sys.exit(1)


@cli.command()
@click.option(
    "--config",
    type=click.Path(exists=True),
    default=DEFAULT_CONFIG_PATH,
    help="Path to configuration file",
)
def smoke_test(config):
    """Run a smoke test (initialize components and exit)."""
    try:
        app = PriceTriggerApp(config_path=config, dry_run=True)
        asyncio.run(app.initialize())
        click.echo("Smoke test passed: Components initialized successfully.")
    except Exception as e:
        click.echo(f"Smoke test failed: {e}", err=True)
        sys.exit(1)


if __name__ == "__main__":
    cli()

# Alias for __main__.py
main = cli
