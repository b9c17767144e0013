#!/usr/bin/env python3
"""Generate a fresh EVM wallet and store its key as WALLET_PRIVATE_KEY in .env."""

from __future__ import annotations

import argparse
import shutil
from pathlib import Path

from eth_account import Account

DEFAULT_ENV_PATH = Path(__file__).resolve().parent / ".env"


def write_wallet_env(env_path: Path, private_key: str) -> Path | None:
    """
    Set WALLET_PRIVATE_KEY in ``env_path``, keeping other lines.

    An existing file is first copied to ``<name>.backup``; the backup path is
    returned (None when there was nothing to back up).
    """
    backup = None
    lines: list[str] = []
    if env_path.exists():
        backup = env_path.with_name(env_path.name + ".backup")
        shutil.copyfile(env_path, backup)
        lines = [
            line
            for line in env_path.read_text().splitlines()
            if not line.startswith("WALLET_PRIVATE_KEY=")
        ]
    lines.append(f"WALLET_PRIVATE_KEY={private_key}")
    env_path.write_text("\n".join(lines) + "\n")
    return backup


def generate_wallet(env_path: Path = DEFAULT_ENV_PATH) -> dict[str, str | None]:
    account = Account.create()
    key = account.key.hex()
    if not key.startswith("0x"):
        key = f"0x{key}"
    backup = write_wallet_env(env_path, key)
    return {
        "address": account.address,
        "env_path": str(env_path),
        "backup_path": str(backup) if backup else None,
    }


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Generate an EVM wallet for the Asetta MCP server.")
    parser.add_argument("--env-file", type=Path, default=DEFAULT_ENV_PATH, help="Path of the .env file to write")
    args = parser.parse_args(argv)

    result = generate_wallet(args.env_file)
    print(f"Wallet address: {result['address']}")
    print(f"Private key written to {result['env_path']}")
    if result["backup_path"]:
        print(f"Previous file backed up to {result['backup_path']}")
    print("Fund this address from a testnet faucet before running tokenization tools.")


if __name__ == "__main__":
    main()
