#!/usr/bin/env python3
"""
Generate a funding account key for the disburser.

This script generates:
- Private key file (funding.key), in the format `disburser run -K` reads
- key_info.json with the derived address
"""

import argparse
import json
from pathlib import Path

from eth_account import Account


def generate_keys(output_dir: str = "./keys") -> dict:
    """
    Generate a new funding account key.

    Args:
        output_dir: Directory to save keys

    Returns:
        Dictionary with key info and address
    """
    output_path = Path(output_dir)
    output_path.mkdir(parents=True, exist_ok=True)

    account = Account.create()

    key_path = output_path / "funding.key"
    key_path.write_text(account.key.hex() + "\n")
    key_path.chmod(0o600)

    info = {
        "private_key_path": str(key_path),
        "address": account.address.lower(),
        "checksum_address": account.address,
    }

    info_path = output_path / "key_info.json"
    with open(info_path, "w") as f:
        json.dump(info, f, indent=2)

    return info


def main():
    parser = argparse.ArgumentParser(description="Generate a funding account key")
    parser.add_argument(
        "--output-dir", "-o",
        default="./keys",
        help="Output directory for keys (default: ./keys)"
    )
    parser.add_argument(
        "--force", "-f",
        action="store_true",
        help="Overwrite existing keys"
    )

    args = parser.parse_args()

    output_path = Path(args.output_dir)
    key_path = output_path / "funding.key"

    if key_path.exists() and not args.force:
        print(f"Keys already exist at {args.output_dir}")
        print("   Use --force to overwrite")

        info_path = output_path / "key_info.json"
        if info_path.exists():
            with open(info_path) as f:
                info = json.load(f)
            print(f"\nExisting address: {info['address']}")
        return

    print("Generating new funding account key...")
    info = generate_keys(args.output_dir)

    print(f"\nKey saved to: {info['private_key_path']} (KEEP SECRET!)")
    print(f"Address: {info['checksum_address']}")
    print("\nFund this address with gas on the target network, and make it the")
    print("token owner if the disburser is expected to mint.")
    print(f"\nThen run: disburser run -p entries.txt -K {info['private_key_path']} --testnet")


if __name__ == "__main__":
    main()
