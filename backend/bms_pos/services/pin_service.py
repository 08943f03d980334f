# Overview: Service-layer operations for employee PIN hashing and verification.

"""
Employee PIN security.

WHY: PINs are short (6 digits), so they are stored as bcrypt hashes with a
configurable cost factor (PIN_HASH_ROUNDS, default 12) to make offline
guessing expensive.

LEGACY PINS: Employees imported from the previous system may still have a
plaintext PIN in `pin_hash`. A value that does not look like a bcrypt hash
("$2...") is treated as legacy: it is compared directly once and the caller
upgrades it to a hash on success (see employee_service.verify_employee_pin).
"""

import hmac

import bcrypt
from flask import current_app, has_app_context

DEFAULT_ROUNDS = 12


def _rounds() -> int:
    if has_app_context():
        return int(current_app.config.get("PIN_HASH_ROUNDS", DEFAULT_ROUNDS))
    return DEFAULT_ROUNDS


def hash_pin(pin: str) -> str:
    """Hash a PIN using bcrypt. Callers validate the PIN format first."""
    salt = bcrypt.gensalt(rounds=_rounds())
    return bcrypt.hashpw(pin.encode("utf-8"), salt).decode("utf-8")


def is_legacy_pin(stored: str | None) -> bool:
    return bool(stored) and not stored.startswith("$2")


def verify_pin(pin: str, stored: str | None) -> bool:
    """
    Verify a PIN against its stored value.

    Returns False (never raises) for empty or non-string input or a
    malformed hash.
    """
    if not pin or not stored or not isinstance(pin, str):
        return False

    if is_legacy_pin(stored):
        return hmac.compare_digest(pin.encode("utf-8"), stored.encode("utf-8"))

    try:
        return bcrypt.checkpw(pin.encode("utf-8"), stored.encode("utf-8"))
    except ValueError:
        return False
