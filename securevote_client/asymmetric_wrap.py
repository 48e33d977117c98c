"""
Wrap one-time ballot keys for the Tallying Server (RSA-OAEP, SHA-256).

Unwrapping happens on the Tallying Server and is not implemented here.
"""

from Crypto.Cipher import PKCS1_OAEP
from Crypto.Hash import SHA256

from .key_codec import RSA_OAEP_SHA256, WRAP, KeyHandle, import_public_key
from .symmetric import SymmetricKey


def load_recipient_key(material) -> KeyHandle:
    """
    Build a wrapping key from whatever the Tallying Server publishes.

    Accepts a KeyHandle, a PEM string, or a hex-encoded RSA modulus (an
    optional ``0x`` prefix and embedded whitespace are ignored) combined
    with the fixed public exponent 65537.
    """
    if isinstance(material, KeyHandle):
        material.require(WRAP, RSA_OAEP_SHA256)
        return material
    return import_public_key(material, WRAP, RSA_OAEP_SHA256)


def wrap_key(symmetric_key: SymmetricKey, recipient) -> bytes:
    """Encrypt the raw symmetric key bytes under RSA-OAEP-SHA256."""
    handle = load_recipient_key(recipient)
    cipher = PKCS1_OAEP.new(handle.key, hashAlgo=SHA256)
    return cipher.encrypt(symmetric_key.export())
