#!/usr/bin/env python3
"""
build_bank.py - Encrypt plaintext JSON problem banks.

Usage with key file:
    python tools/build_bank.py --in problems.json --out banks/problems.enc --key-file GROUP1.key

Usage with password:
    python tools/build_bank.py --in problems.json --out banks/problems.enc --password
"""

import argparse
import getpass
import hashlib
import json
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from judge.problems import encrypt_bank, validate_bank_dict


def build_bank(in_file: str, out_file: str, key_file: str = None, use_password: bool = False) -> None:
    """Validate and encrypt a plaintext JSON problem bank."""
    try:
        key = None
        password = None

        if use_password:
            password = getpass.getpass("Enter encryption password: ")
            password_confirm = getpass.getpass("Confirm password: ")

            if password != password_confirm:
                print("[ERROR] Passwords do not match", file=sys.stderr)
                sys.exit(1)

            if len(password) < 8:
                print("[ERROR] Password must be at least 8 characters", file=sys.stderr)
                sys.exit(1)
            print("[OK] Using password-based encryption")
        else:
            key = Path(key_file).read_bytes().strip()
            print("[OK] Using key file encryption")

        plaintext = Path(in_file).read_bytes()

        try:
            bank_data = json.loads(plaintext)
        except json.JSONDecodeError as e:
            print(f"[ERROR] Invalid JSON in input file: {e}", file=sys.stderr)
            sys.exit(1)

        errors, warnings = validate_bank_dict(bank_data)
        for warning in warnings:
            print(f"[WARN] {warning}")
        if errors:
            for err in errors:
                print(f"[ERROR] {err}", file=sys.stderr)
            sys.exit(1)

        print("[OK] Input bank validated")
        print(f"  Group: {bank_data.get('group', 'unknown')}")
        print(f"  Version: {bank_data.get('version', 'unknown')}")
        print(f"  Problems: {len(bank_data['problems'])}")

        final_data = encrypt_bank(plaintext, key=key, password=password)
        sha256_hash = hashlib.sha256(final_data).hexdigest()

        Path(out_file).parent.mkdir(parents=True, exist_ok=True)
        Path(out_file).write_bytes(final_data)

        print(f"\n[OK] Success: Bank encrypted")
        print(f"  Input: {in_file} ({len(plaintext)} bytes)")
        print(f"  Output: {out_file} ({len(final_data)} bytes)")
        print(f"  Method: {'Password-based' if password else 'Key file'}")
        print(f"  SHA256: {sha256_hash}")

    except (OSError, ValueError) as e:
        print(f"[ERROR] Error encrypting bank: {e}", file=sys.stderr)
        sys.exit(1)


def main():
    parser = argparse.ArgumentParser(
        description="Encrypt a plaintext JSON problem bank.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python tools/build_bank.py --in problems.json --out banks/problems.enc --key-file GROUP1.key
  python tools/build_bank.py --in problems.json --out banks/problems.enc --password

Notes:
  - Input file must be a valid problem bank
  - Output directory will be created if it doesn't exist
        """
    )
    parser.add_argument("--in", dest="in_file", required=True, help="Input plaintext JSON file")
    parser.add_argument("--out", required=True, help="Output encrypted bank file (.enc)")
    method = parser.add_mutually_exclusive_group(required=True)
    method.add_argument("--key-file", help="File containing the encryption key")
    method.add_argument("--password", action="store_true", help="Use password-based encryption")

    args = parser.parse_args()
    build_bank(args.in_file, args.out, args.key_file, args.password)


if __name__ == "__main__":
    main()
