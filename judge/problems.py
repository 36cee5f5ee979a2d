"""
Problem bank loading.

Banks are JSON documents, stored either as plain .json files or encrypted
with Fernet. Password-encrypted banks start with b'SALT' followed by a
16-byte salt; the key is derived from the password with PBKDF2.
"""

import base64
import json
import os
from pathlib import Path
from typing import List, Optional, Tuple, Union

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from .models import ProblemBank

SALT_PREFIX = b'SALT'
SALT_SIZE = 16
PBKDF2_ITERATIONS = 480000


def derive_key_from_password(password: str, salt: bytes) -> bytes:
    """Derive a Fernet key from a password using PBKDF2."""
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=salt,
        iterations=PBKDF2_ITERATIONS,
    )
    key_material = kdf.derive(password.encode('utf-8'))
    return base64.urlsafe_b64encode(key_material)


def encrypt_bank(
    plaintext: bytes,
    key: Optional[bytes] = None,
    password: Optional[str] = None
) -> bytes:
    """
    Encrypt a bank with a Fernet key or a password.

    Returns:
        Ciphertext, prefixed with SALT and the salt when a password is used
    """
    if password is not None:
        salt = os.urandom(SALT_SIZE)
        token = Fernet(derive_key_from_password(password, salt)).encrypt(plaintext)
        return SALT_PREFIX + salt + token
    if key is None:
        raise ValueError("Either a key or a password is required")
    return Fernet(key).encrypt(plaintext)


def decrypt_bank(
    data: bytes,
    key: Optional[bytes] = None,
    password: Optional[str] = None
) -> bytes:
    """
    Decrypt bank bytes produced by encrypt_bank().

    Raises:
        ValueError: If the credentials are missing or wrong, or the file is corrupt
    """
    if data.startswith(SALT_PREFIX):
        if password is None:
            raise ValueError("This bank was encrypted with a password")
        salt = data[len(SALT_PREFIX):len(SALT_PREFIX) + SALT_SIZE]
        data = data[len(SALT_PREFIX) + SALT_SIZE:]
        key = derive_key_from_password(password, salt)
    elif key is None:
        raise ValueError("This bank was encrypted with a key file")

    try:
        return Fernet(key).decrypt(data)
    except (InvalidToken, ValueError):
        raise ValueError("Decryption failed: invalid key/password or corrupted file")


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_bank_dict(data: dict) -> Tuple[List[str], List[str]]:
    """
    Check the structure of a bank dictionary.

    Returns:
        Tuple of (errors, warnings)
    """
    errors = []
    warnings = []

    if not isinstance(data, dict):
        return ["Bank must be a JSON object"], warnings

    problems = data.get('problems')
    if not isinstance(problems, list):
        return ["Missing required field: problems (list)"], warnings

    seen_ids = set()
    for idx, problem in enumerate(problems, start=1):
        label = f"problems[{idx}] ({problem.get('id', '?') if isinstance(problem, dict) else '?'})"
        if not isinstance(problem, dict):
            errors.append(f"{label}: must be an object")
            continue

        if 'id' not in problem:
            errors.append(f"{label}: Missing id")
        elif str(problem['id']) in seen_ids:
            errors.append(f"{label}: Duplicate id")
        else:
            seen_ids.add(str(problem['id']))

        tests = problem.get('testCases', problem.get('test_cases'))
        if not isinstance(tests, list):
            errors.append(f"{label}: testCases must be a list")
        elif not tests:
            errors.append(f"{label}: No test cases defined")
        else:
            for test_idx, test in enumerate(tests, start=1):
                if not isinstance(test, dict) or not (
                    'expectedOutput' in test or 'expected_output' in test
                ):
                    errors.append(f"{label} test {test_idx}: Missing expectedOutput")

        points = problem.get('points', 0)
        if not _is_number(points):
            errors.append(f"{label}: points must be a number")
        elif points <= 0:
            warnings.append(f"{label}: points should be > 0")

        time_limit = problem.get('timeLimit')
        if time_limit is not None and not _is_number(time_limit):
            errors.append(f"{label}: timeLimit must be a number")
        elif time_limit is not None and time_limit <= 0:
            errors.append(f"{label}: timeLimit must be > 0")

    return errors, warnings


def load_bank(
    bank_path: Union[str, Path],
    key: Optional[bytes] = None,
    password: Optional[str] = None
) -> ProblemBank:
    """
    Load a problem bank, decrypting it unless it is a .json file.

    Args:
        bank_path: Path to a .json or encrypted bank
        key: Fernet key for key-file banks
        password: Password for password-encrypted banks

    Returns:
        ProblemBank

    Raises:
        ValueError: If the bank cannot be read, decrypted or validated
    """
    bank_path = Path(bank_path)
    try:
        raw = bank_path.read_bytes()
    except OSError as e:
        raise ValueError(f"Error reading bank file: {e}")

    if bank_path.suffix.lower() != '.json':
        raw = decrypt_bank(raw, key=key, password=password)

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in bank: {e}")

    errors, _ = validate_bank_dict(data)
    if errors:
        raise ValueError(f"Invalid bank: {errors[0]}")

    return ProblemBank.from_dict(data)
