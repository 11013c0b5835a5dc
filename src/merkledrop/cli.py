"""
merkledrop/cli.py

Command-line interface.

Usage:
    merkledrop serve --port 24650 --storage-dir ~/.merkledrop/storage
    merkledrop leaf-hash addrA 100
    merkledrop verify-proof --root 0x.. --address addrA --amount 100 --proof 0x..
"""

import logging
from pathlib import Path

import click
import trio

from .api import AirdropAPI
from .config import ServiceSettings
from .contract import AirdropContract
from .errors import DecodeError, InvalidHexError
from .messages import parse_uint
from .protocol.merkle import compute_leaf_hash, verify
from .protocol.storage import FileBackend, MemoryBackend

logger = logging.getLogger("merkledrop.cli")


@click.group()
def main():
    """Merkle airdrop with rolling reward rounds."""


@main.command()
@click.option("--host", default=None, help="Bind address (env: MERKLEDROP_API_HOST)")
@click.option("--port", type=int, default=None, help="Listen port (env: MERKLEDROP_API_PORT)")
@click.option(
    "--storage-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="State directory; omit for in-memory state (env: MERKLEDROP_STORAGE_DIR)",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default=None,
    help="Logging level (env: MERKLEDROP_LOG_LEVEL)",
)
def serve(host, port, storage_dir, log_level):
    """Run the REST API."""
    settings = ServiceSettings.from_env()
    if host:
        settings.api_host = host
    if port is not None:
        settings.api_port = port
    if storage_dir:
        settings.storage_dir = storage_dir
    if log_level:
        settings.log_level = log_level.upper()

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if settings.storage_dir:
        backend = FileBackend(settings.storage_dir)
    else:
        logger.warning("No storage directory configured; state is in-memory only")
        backend = MemoryBackend()

    api = AirdropAPI(AirdropContract(backend), host=settings.api_host, port=settings.api_port)
    trio.run(api.start)


@main.command("leaf-hash")
@click.argument("address")
@click.argument("amount")
def leaf_hash(address, amount):
    """Print the leaf hash of ADDRESS:AMOUNT."""
    click.echo(compute_leaf_hash(address, amount))


@main.command("verify-proof")
@click.option("--root", required=True, help="Merkle root (hex)")
@click.option("--address", required=True, help="Claimant address")
@click.option("--amount", required=True, help="Stake as decimal string")
@click.option("--proof", multiple=True, help="Proof element (hex); repeat in order")
def verify_proof(root, address, amount, proof):
    """Check a proof; exits 1 if it does not verify."""
    try:
        stake = parse_uint(amount, "amount")
        valid = verify(list(proof), root, address, str(stake))
    except (InvalidHexError, DecodeError) as e:
        raise click.ClickException(e.message)

    if not valid:
        click.echo("invalid")
        raise SystemExit(1)
    click.echo("valid")
