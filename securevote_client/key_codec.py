"""
PEM / DER key codec.

Converts PEM-armored key material into key handles that are bound to a
single algorithm profile and usage, so a receipt-verification key can never
be used to wrap a ballot key and vice versa.
"""

import base64
import binascii
import re
import textwrap
from dataclasses import dataclass

from Crypto.PublicKey import RSA

from .errors import KeyImportError, MalformedKeyError, UnsupportedKeyFormatError

RSA_PSS_SHA384 = "RSA-PSS-SHA384"
RSA_OAEP_SHA256 = "RSA-OAEP-SHA256"

SIGN = "sign"
VERIFY = "verify"
ENCRYPT = "encrypt"
DECRYPT = "decrypt"
WRAP = "wrap"

PROFILE_USAGES = {
    RSA_PSS_SHA384: {SIGN, VERIFY},
    RSA_OAEP_SHA256: {ENCRYPT, DECRYPT, WRAP},
}
PRIVATE_USAGES = {SIGN, DECRYPT}

_ARMOR = re.compile(r"-----[^-]+-----")
_WHITESPACE = re.compile(r"\s+")
_HEX_MODULUS = re.compile(r"^(0x)?[0-9a-fA-F]+$")

PUBLIC_EXPONENT = 65537
MIN_MODULUS_BITS = 1024


@dataclass(frozen=True)
class KeyHandle:
    key: RSA.RsaKey
    usage: str
    profile: str

    def require(self, usage: str, profile: str) -> RSA.RsaKey:
        """Return the underlying key if it was imported for this usage."""
        if self.usage != usage or self.profile != profile:
            raise KeyImportError(
                f"key imported for {self.usage}/{self.profile}, "
                f"not {usage}/{profile}"
            )
        return self.key


def is_pem(material) -> bool:
    return isinstance(material, str) and "-----BEGIN" in material


def decode(pem: str) -> bytes:
    """Strip PEM armor and whitespace, then base64-decode the body."""
    body = _WHITESPACE.sub("", _ARMOR.sub("", pem))
    if not body:
        raise MalformedKeyError("PEM input has no body")
    try:
        der = base64.b64decode(body, validate=True)
    except (binascii.Error, ValueError) as e:
        raise MalformedKeyError(f"PEM body is not valid base64: {e}") from e
    if not der:
        raise MalformedKeyError("PEM body decodes to nothing")
    return der


def encode(der: bytes, label: str = "PUBLIC KEY") -> str:
    """Armor DER bytes as PEM with 64-column lines."""
    b64 = base64.b64encode(der).decode()
    lines = "\n".join(textwrap.wrap(b64, 64))
    return f"-----BEGIN {label}-----\n{lines}\n-----END {label}-----\n"


def import_key(pem: str, usage: str, profile: str) -> KeyHandle:
    """
    Import PEM key material for exactly one usage under one algorithm profile.

    Raises MalformedKeyError when the PEM body is unreadable and
    KeyImportError when the DER is not an RSA key, the usage does not belong
    to the profile, or a private-key usage is requested of a public key.
    """
    if profile not in PROFILE_USAGES:
        raise KeyImportError(f"Unknown algorithm profile: {profile}")
    if usage not in PROFILE_USAGES[profile]:
        raise KeyImportError(f"Usage '{usage}' is not valid for {profile}")

    der = decode(pem)
    try:
        key = RSA.import_key(der)
    except (ValueError, IndexError, TypeError) as e:
        raise KeyImportError(f"Cannot import RSA key: {e}") from e

    if usage in PRIVATE_USAGES and not key.has_private():
        raise KeyImportError(f"Usage '{usage}' requires a private key")
    if usage not in PRIVATE_USAGES and key.has_private():
        key = key.public_key()
    return KeyHandle(key=key, usage=usage, profile=profile)


def from_rsa_key(key: RSA.RsaKey, usage: str, profile: str) -> KeyHandle:
    """Wrap an already constructed RSA key (e.g. built from a raw modulus)."""
    if usage not in PROFILE_USAGES.get(profile, ()):
        raise KeyImportError(f"Usage '{usage}' is not valid for {profile}")
    return KeyHandle(key=key, usage=usage, profile=profile)


def import_public_key(material, usage: str, profile: str) -> KeyHandle:
    """
    Import a server public key published as PEM or as a bare hex modulus.

    A hex modulus (optional ``0x`` prefix, whitespace ignored) is combined
    with the fixed public exponent 65537. Anything else raises
    UnsupportedKeyFormatError.
    """
    if isinstance(material, bytes):
        material = material.decode("ascii", errors="replace")
    if not isinstance(material, str):
        raise UnsupportedKeyFormatError(
            f"Unsupported public key type: {type(material).__name__}"
        )
    if is_pem(material):
        return import_key(material, usage, profile)

    compact = "".join(material.split())
    if compact and _HEX_MODULUS.match(compact):
        modulus = int(compact, 16)
        if modulus.bit_length() < MIN_MODULUS_BITS:
            raise UnsupportedKeyFormatError("RSA modulus is too short")
        try:
            key = RSA.construct((modulus, PUBLIC_EXPONENT))
        except ValueError as e:
            raise UnsupportedKeyFormatError(f"Invalid RSA modulus: {e}") from e
        return from_rsa_key(key, usage, profile)

    raise UnsupportedKeyFormatError("Public key is neither PEM nor a hex modulus")
