"""ALTCHA proof-of-work challenges for the preregistration form.

The browser widget receives a challenge, brute-forces the secret number
whose SHA-256 with the salt matches it, and submits the solution as a
base64-encoded JSON payload. Challenges are HMAC-signed so the server does
not need to remember them, carry their own expiry in the salt, and are
accepted once.
"""

import base64
import binascii
import hashlib
import hmac
import json
import logging
import secrets
import time
from typing import Any
from urllib.parse import parse_qs

from django.core.cache import cache
from django.core.exceptions import ImproperlyConfigured

from boletera.settings import get_config

logger = logging.getLogger(__name__)

ALGORITHM = "SHA-256"
USED_KEY_PREFIX = "boletera:altcha:used:"


def _hmac_key() -> bytes:
    key = get_config().altcha.hmac_key
    if not key:
        msg = "BOLETERA['altcha']['hmac_key'] must be set to issue preregistration challenges"
        raise ImproperlyConfigured(msg)
    return key.encode()


def _hash(salt: str, number: int) -> str:
    return hashlib.sha256(f"{salt}{number}".encode()).hexdigest()


def _sign(challenge: str) -> str:
    return hmac.new(_hmac_key(), challenge.encode(), hashlib.sha256).hexdigest()


def create_challenge(*, number: int | None = None, now: float | None = None) -> dict[str, Any]:
    """Issue a new challenge.

    Args:
        number: Secret number to use; random up to ``max_number`` by default.
        now: Current unix time override, used by tests.

    Returns:
        ``{"algorithm", "challenge", "salt", "signature", "maxnumber"}``
        ready to hand to the widget.
    """
    config = get_config().altcha
    expires = int(now if now is not None else time.time()) + config.expires_seconds
    salt = f"{secrets.token_hex(12)}?expires={expires}"
    secret_number = number if number is not None else secrets.randbelow(config.max_number + 1)
    challenge = _hash(salt, secret_number)
    return {
        "algorithm": ALGORITHM,
        "challenge": challenge,
        "salt": salt,
        "signature": _sign(challenge),
        "maxnumber": config.max_number,
    }


def decode_payload(payload: str | dict[str, Any]) -> dict[str, Any] | None:
    """Decode a widget payload into a dict, or ``None`` when malformed."""
    if isinstance(payload, dict):
        return payload
    if not isinstance(payload, str) or not payload:
        return None
    try:
        data = json.loads(base64.b64decode(payload, validate=True))
    except (binascii.Error, ValueError):
        return None
    return data if isinstance(data, dict) else None


def _expires_at(salt: str) -> int | None:
    _, _, query = salt.partition("?")
    values = parse_qs(query).get("expires")
    if not values:
        return None
    try:
        return int(values[0])
    except ValueError:
        return None


def verify_solution(payload: str | dict[str, Any], *, now: float | None = None) -> bool:
    """Check a submitted solution and mark its challenge as used.

    Args:
        payload: The widget's base64 JSON payload, or the decoded dict.
        now: Current unix time override, used by tests.

    Returns:
        ``True`` only when the algorithm, hash, and signature match, the
        challenge has not expired, and it has not been used before.
    """
    data = decode_payload(payload)
    if data is None:
        return False
    try:
        algorithm = str(data["algorithm"])
        challenge = str(data["challenge"])
        salt = str(data["salt"])
        signature = str(data["signature"])
        number = int(data["number"])
    except (KeyError, TypeError, ValueError, OverflowError):
        return False

    if algorithm != ALGORITHM:
        return False
    expires = _expires_at(salt)
    current = now if now is not None else time.time()
    if expires is None or current > expires:
        logger.info("Rejected expired ALTCHA challenge")
        return False
    if not hmac.compare_digest(_hash(salt, number), challenge):
        return False
    if not hmac.compare_digest(_sign(challenge), signature):
        return False

    timeout = max(int(expires - current), 1)
    if not cache.add(f"{USED_KEY_PREFIX}{challenge}", True, timeout=timeout):
        logger.info("Rejected replayed ALTCHA challenge")
        return False
    return True
