"""
RSA signing keys for access and refresh tokens.
The current key is loaded from SIGNING_KEY_PATH or generated and saved there on
first start; an optional previous key stays verifiable after a rotation.
"""
import base64
import logging
from pathlib import Path

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

logger = logging.getLogger(__name__)

KEY_BITS = 2048
KID_CURRENT = "runner-auth-key"
KID_PREVIOUS = "runner-auth-key-prev"


def generate_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=KEY_BITS)


def _read_key(path: Path) -> rsa.RSAPrivateKey:
    return serialization.load_pem_private_key(path.read_bytes(), password=None)


def load_or_create_key(path: str) -> rsa.RSAPrivateKey:
    """Load the PEM private key at path, or generate one and try to persist it."""
    p = Path(path)
    if p.exists():
        try:
            return _read_key(p)
        except (ValueError, TypeError, OSError) as e:
            logger.warning("Failed to load signing key from %s: %s; generating new key", path, e)
    key = generate_key()
    pem = key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )
    try:
        p.write_bytes(pem)
        logger.info("Generated and saved signing key to %s", path)
    except OSError as e:
        logger.warning("Could not save signing key to %s: %s", path, e)
    return key


def _b64url_uint(value: int) -> str:
    raw = value.to_bytes((value.bit_length() + 7) // 8, "big")
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def public_key_to_jwk(public_key: rsa.RSAPublicKey, kid: str) -> dict:
    numbers = public_key.public_numbers()
    return {
        "kty": "RSA",
        "kid": kid,
        "alg": "RS256",
        "use": "sig",
        "n": _b64url_uint(numbers.n),
        "e": _b64url_uint(numbers.e),
    }


# Loaded once per process
_keys_by_kid: dict[str, rsa.RSAPrivateKey] = {}


def _ensure_keys_loaded() -> None:
    if KID_CURRENT in _keys_by_kid:
        return
    from runner_auth.config import SIGNING_KEY_PATH, SIGNING_KEY_PREVIOUS_PATH

    _keys_by_kid[KID_CURRENT] = load_or_create_key(SIGNING_KEY_PATH)
    if SIGNING_KEY_PREVIOUS_PATH and Path(SIGNING_KEY_PREVIOUS_PATH).exists():
        try:
            _keys_by_kid[KID_PREVIOUS] = _read_key(Path(SIGNING_KEY_PREVIOUS_PATH))
            logger.info("Loaded previous signing key (kid=%s)", KID_PREVIOUS)
        except (ValueError, TypeError, OSError) as e:
            logger.warning("Failed to load previous signing key from %s: %s", SIGNING_KEY_PREVIOUS_PATH, e)


def get_signing_key() -> tuple[rsa.RSAPrivateKey, str]:
    """Current private key and its kid, for signing new tokens."""
    _ensure_keys_loaded()
    return _keys_by_kid[KID_CURRENT], KID_CURRENT


def get_public_key_for_kid(kid: str | None) -> rsa.RSAPublicKey | None:
    _ensure_keys_loaded()
    private_key = _keys_by_kid.get(kid) if kid else None
    return private_key.public_key() if private_key is not None else None


def get_jwks() -> dict:
    """Public key set so holders of a token can check its signature offline."""
    _ensure_keys_loaded()
    return {"keys": [public_key_to_jwk(k.public_key(), kid) for kid, k in _keys_by_kid.items()]}
