"""
CLI entry point for the vesting claim relayer.
"""

import asyncio
from pathlib import Path
from typing import Optional

import structlog
import typer

from .address import pubkey_to_address, public_key_from_private_key
from .config import RelayerConfig
from .cyber import CyberClient
from .errors import RelayError
from .relayer import serve

# Configure structlog
structlog.configure(
    processors=[
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.dev.ConsoleRenderer(),
    ]
)

app = typer.Typer(
    name="vesting-relayer",
    help="Vesting claim relayer: NewLock events -> target-chain transfers -> on-chain proofs",
    add_completion=False,
)

ConfigOption = typer.Option(
    None,
    "--config",
    "-c",
    help="Path to .env configuration file",
)


@app.command()
def run(config_path: Optional[Path] = ConfigOption) -> None:
    """
    Subscribe to NewLock events and relay each claim.
    """
    config = RelayerConfig.from_env(config_path)

    typer.echo("Running in continuous mode. Press Ctrl+C to stop.")
    try:
        asyncio.run(serve(config))
    except RelayError as e:
        typer.echo(f"✗ {e}", err=True)
        raise typer.Exit(code=1)
    except KeyboardInterrupt:
        typer.echo("\nStopping relayer...")


@app.command()
def address(config_path: Optional[Path] = ConfigOption) -> None:
    """
    Show the relay's target-chain address derived from the configured key.
    """
    settings = RelayerConfig.from_env(config_path).settings
    try:
        pubkey = public_key_from_private_key(settings.cyber_private_key)
    except RelayError as e:
        typer.echo(f"✗ {e}", err=True)
        raise typer.Exit(code=1)

    typer.echo(f"Address:    {pubkey_to_address(pubkey, settings.cyber_address_prefix)}")
    typer.echo(f"Public key: {pubkey.hex()}")


@app.command()
def account(config_path: Optional[Path] = ConfigOption) -> None:
    """
    Fetch the relay account's current account number and sequence.
    """
    settings = RelayerConfig.from_env(config_path).settings

    async def fetch() -> None:
        client = CyberClient.from_settings(settings)
        try:
            pubkey = public_key_from_private_key(settings.cyber_private_key)
            relay_address = pubkey_to_address(pubkey, settings.cyber_address_prefix)
            state = await client.get_account_state(relay_address, pubkey.hex())
        finally:
            await client.aclose()

        typer.echo(f"Address:        {state.address}")
        typer.echo(f"Chain ID:       {state.chain_id}")
        typer.echo(f"Account number: {state.account_number}")
        typer.echo(f"Sequence:       {state.sequence}")

    try:
        asyncio.run(fetch())
    except RelayError as e:
        typer.echo(f"✗ {e}", err=True)
        raise typer.Exit(code=1)


@app.command()
def version() -> None:
    """Show the relayer version."""
    from vesting_relayer import __version__
    typer.echo(f"vesting-relayer v{__version__}")


def main() -> None:
    """Main entry point."""
    app()


if __name__ == "__main__":
    main()
