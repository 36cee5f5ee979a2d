#!/usr/bin/env python3
"""
keygen.py - Generate Fernet encryption keys for problem banks.

Usage:
    python tools/keygen.py --out GROUP1.key

Note: build_bank.py --password encrypts with a password instead of a key file.
"""

import argparse
import sys
from pathlib import Path

from cryptography.fernet import Fernet


def generate_key(output_file: str) -> bytes:
    """Generate a new Fernet key and save it to file."""
    key = Fernet.generate_key()
    Path(output_file).write_bytes(key)
    return key


def main():
    parser = argparse.ArgumentParser(
        description="Generate a new Fernet encryption key for problem banks."
    )
    parser.add_argument("--out", required=True, help="Output file path for the key (e.g., GROUP1.key)")
    args = parser.parse_args()

    try:
        generate_key(args.out)
    except OSError as e:
        print(f"[ERROR] Error generating key: {e}", file=sys.stderr)
        sys.exit(1)

    print(f"[OK] Encryption key written to {args.out}")
    print("[!] Store this key securely and never commit it to version control.")


if __name__ == "__main__":
    main()
