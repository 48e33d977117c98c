"""
One-time AES-256-GCM encryption for ballot plaintext.

A SymmetricKey seals exactly one payload. Reusing it raises KeyReuseError, so
a (key, nonce) pair can never repeat even if the random nonce source were to.
"""

from dataclasses import dataclass, field

from Crypto.Cipher import AES

from .crypto_provider import CryptoProvider, zeroize
from .errors import AuthenticationFailedError, KeyReuseError

KEY_SIZE = 32    # bytes, AES-256
NONCE_SIZE = 12  # bytes, 96-bit GCM nonce
TAG_SIZE = 16    # bytes


@dataclass
class SymmetricKey:
    material: bytearray
    used: bool = field(default=False)

    def export(self) -> bytes:
        """Raw key bytes, e.g. for wrapping under a recipient public key."""
        return bytes(self.material)

    def destroy(self) -> None:
        zeroize(self.material)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.destroy()
        return False


@dataclass(frozen=True)
class SealedPayload:
    ciphertext: bytes  # includes the trailing GCM tag
    nonce: bytes


def generate_key(provider: CryptoProvider = None) -> SymmetricKey:
    provider = provider or CryptoProvider()
    return SymmetricKey(material=provider.secret_buffer(KEY_SIZE))


def encrypt(key: SymmetricKey, plaintext: bytes, provider: CryptoProvider = None) -> SealedPayload:
    """Encrypt with a fresh 12-byte nonce; ciphertext carries the tag."""
    if key.used:
        raise KeyReuseError("One-time symmetric key has already encrypted a payload")
    provider = provider or CryptoProvider()
    key.used = True

    nonce = provider.random_bytes(NONCE_SIZE)
    cipher = AES.new(key.material, AES.MODE_GCM, nonce=nonce, mac_len=TAG_SIZE)
    ciphertext, tag = cipher.encrypt_and_digest(plaintext)
    return SealedPayload(ciphertext=ciphertext + tag, nonce=nonce)


def decrypt(key: SymmetricKey, ciphertext: bytes, nonce: bytes) -> bytes:
    """Decrypt and authenticate; a bad tag is reported as tampering."""
    if len(nonce) != NONCE_SIZE:
        raise AuthenticationFailedError(f"Nonce must be {NONCE_SIZE} bytes")
    if len(ciphertext) < TAG_SIZE:
        raise AuthenticationFailedError("Ciphertext is shorter than the GCM tag")

    body, tag = ciphertext[:-TAG_SIZE], ciphertext[-TAG_SIZE:]
    cipher = AES.new(key.material, AES.MODE_GCM, nonce=nonce, mac_len=TAG_SIZE)
    try:
        return cipher.decrypt_and_verify(body, tag)
    except ValueError as e:
        raise AuthenticationFailedError("GCM tag mismatch: ballot was tampered with") from e


def seal(plaintext: bytes, provider: CryptoProvider = None) -> tuple:
    """Generate a key and immediately use it for its single encryption.

    Returns (key, payload); the caller owns the key and must destroy it.
    """
    provider = provider or CryptoProvider()
    key = generate_key(provider)
    try:
        payload = encrypt(key, plaintext, provider)
    except Exception:
        key.destroy()
        raise
    return key, payload
