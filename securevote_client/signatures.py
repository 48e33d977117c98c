"""
Signing with the device secret and verifying server signatures.

The device secret is a tagged SigningSecret whose kind is decided once, when
the identity is loaded from the key store:

  PEM           RSA private key, signs with RSA-PSS/SHA-384
  ED25519_KEY   64-byte Ed25519 secret key (seed || public key)
  ED25519_SEED  32-byte Ed25519 seed

Server signatures (receipts) are RSA-PSS/SHA-384. The salt lengths used for
signing (48) and for receipt verification (64) differ; both are parameters.
"""

import base64
import binascii
import logging
from dataclasses import dataclass

from Crypto.Hash import SHA384
from Crypto.PublicKey import ECC
from Crypto.Signature import eddsa, pss

from .config import RECEIPT_SALT_LENGTH, SIGN_SALT_LENGTH
from .errors import UnsupportedSecretFormatError
from .key_codec import RSA_PSS_SHA384, SIGN, VERIFY, KeyHandle, import_key, is_pem

logger = logging.getLogger(__name__)

PEM = "pem"
ED25519_KEY = "ed25519-key"
ED25519_SEED = "ed25519-seed"
SECRET_KINDS = (PEM, ED25519_KEY, ED25519_SEED)

ED25519_SEED_SIZE = 32
ED25519_KEY_SIZE = 64


@dataclass(frozen=True)
class SigningSecret:
    """
    A device secret with its kind tag.

    ``material`` is a bytearray so callers can zero it with
    CryptoProvider.hold once the secret is no longer needed.
    """
    kind: str
    material: bytearray

    def __post_init__(self):
        object.__setattr__(self, "material", bytearray(self.material))
        if self.kind not in SECRET_KINDS:
            raise UnsupportedSecretFormatError(f"Unknown secret kind: {self.kind}")
        if self.kind == ED25519_KEY and len(self.material) != ED25519_KEY_SIZE:
            raise UnsupportedSecretFormatError("Ed25519 secret key must be 64 bytes")
        if self.kind == ED25519_SEED and len(self.material) != ED25519_SEED_SIZE:
            raise UnsupportedSecretFormatError("Ed25519 seed must be 32 bytes")

    def __repr__(self):
        return f"SigningSecret(kind={self.kind!r}, material=<redacted>)"

    @classmethod
    def from_stored(cls, kind: str, value: str) -> "SigningSecret":
        """Rebuild a secret from its stored string form and kind tag."""
        if kind == PEM:
            return cls(PEM, value.encode())
        try:
            raw = base64.b64decode(value, validate=True)
        except (binascii.Error, ValueError) as e:
            raise UnsupportedSecretFormatError("Stored secret is not base64") from e
        return cls(kind, raw)

    @classmethod
    def detect(cls, value: str) -> "SigningSecret":
        """
        Classify a legacy secret string that was stored without a kind tag.

        Only used when importing such a value; afterwards the kind travels
        with the secret.
        """
        if is_pem(value.strip()):
            return cls(PEM, value.strip().encode())
        try:
            raw = base64.b64decode(value.strip(), validate=True)
        except (binascii.Error, ValueError) as e:
            raise UnsupportedSecretFormatError(
                "Expected PEM or a base64 Ed25519 seed/secret key"
            ) from e
        if len(raw) == ED25519_KEY_SIZE:
            return cls(ED25519_KEY, raw)
        if len(raw) == ED25519_SEED_SIZE:
            return cls(ED25519_SEED, raw)
        raise UnsupportedSecretFormatError(
            f"Unsupported secret length {len(raw)}; expected 32 or 64 bytes"
        )

    def encoded(self) -> str:
        """String form used for storage and for deriving the prepared message."""
        if self.kind == PEM:
            return self.material.decode()
        return base64.b64encode(self.material).decode()


def ed25519_signing_key(secret: SigningSecret) -> ECC.EccKey:
    """
    Derive the Ed25519 signing key; seeds derive deterministically.

    A 64-byte secret key is rebuilt from its seed half, and its public half
    must equal the key derived from that seed. A mismatched public half is
    rejected with UnsupportedSecretFormatError rather than signed with, even
    though libraries that take the 64 bytes as-is would accept it.
    """
    if secret.kind == ED25519_SEED:
        return ECC.construct(curve="Ed25519", seed=bytes(secret.material))
    if secret.kind == ED25519_KEY:
        seed, public = bytes(secret.material[:32]), bytes(secret.material[32:])
        key = ECC.construct(curve="Ed25519", seed=seed)
        if key.public_key().export_key(format="raw") != public:
            raise UnsupportedSecretFormatError(
                "Ed25519 secret key public half does not match its seed"
            )
        return key
    raise UnsupportedSecretFormatError(f"{secret.kind} secret is not an Ed25519 key")


def ed25519_public_key(secret: SigningSecret) -> bytes:
    """Raw 32-byte public key, as sent to the Election Server at registration."""
    return ed25519_signing_key(secret).public_key().export_key(format="raw")


def sign(secret: SigningSecret, payload: bytes, salt_length: int = SIGN_SALT_LENGTH) -> bytes:
    """Sign payload with the device secret."""
    if secret.kind == PEM:
        handle = import_key(secret.material.decode(), SIGN, RSA_PSS_SHA384)
        signer = pss.new(handle.require(SIGN, RSA_PSS_SHA384), salt_bytes=salt_length)
        return signer.sign(SHA384.new(payload))

    signer = eddsa.new(ed25519_signing_key(secret), "rfc8032")
    return signer.sign(payload)


def verify(public_key, signature: bytes, payload: bytes,
           salt_length: int = RECEIPT_SALT_LENGTH) -> bool:
    """
    RSA-PSS/SHA-384 verification against a remote public key.

    ``public_key`` is a PEM string or a KeyHandle imported for verify.
    Returns False on a bad signature instead of raising.
    """
    if not isinstance(public_key, KeyHandle):
        public_key = import_key(public_key, VERIFY, RSA_PSS_SHA384)
    key = public_key.require(VERIFY, RSA_PSS_SHA384)
    try:
        pss.new(key, salt_bytes=salt_length).verify(SHA384.new(payload), signature)
        return True
    except (ValueError, TypeError):
        logger.debug("RSA-PSS signature did not verify (salt length %d)", salt_length)
        return False


def verify_ed25519(public_key: bytes, signature: bytes, payload: bytes) -> bool:
    """Check an Ed25519 signature against a raw 32-byte public key."""
    try:
        key = eddsa.import_public_key(public_key)
        eddsa.new(key, "rfc8032").verify(payload, signature)
        return True
    except (ValueError, TypeError):
        return False
