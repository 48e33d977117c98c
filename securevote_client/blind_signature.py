"""
RSA Blind Signatures (RSABSSA, RFC 9474)

Implements the blind-signature exchange used to obtain an anonymous voting
token:
  1. Voter prepares the message (random 32-byte prefix for randomized suites)
  2. Voter PSS-encodes and blinds it under the Election Server's public key
  3. Election Server signs the blinded message (it cannot see the message)
  4. Voter unblinds the result into an ordinary RSA-PSS signature
  5. Anyone can verify the signature using the Election Server's public key

The suite is an explicit object handed to the token client, so the choice of
hash, salt length and preparation mode is visible at the call site.
"""

from dataclasses import dataclass
from math import gcd

from Crypto.Hash import SHA384
from Crypto.PublicKey import RSA
from Crypto.Signature import pss
from Crypto.Signature.pss import MGF1
from Crypto.Util.strxor import strxor

from .crypto_provider import CryptoProvider

KEY_SIZE = 2048  # bits
PREFIX_SIZE = 32  # bytes of randomness prepended by randomized preparation


def generate_keypair(bits: int = KEY_SIZE) -> tuple:
    """Generate an RSA keypair for a token issuer (used by issuers and tests)."""
    key = RSA.generate(bits)
    private_key = key.export_key(pkcs=8).decode()
    public_key = key.publickey().export_key().decode()
    return private_key, public_key


@dataclass
class BlindingState:
    """Ephemeral client state for one token round trip."""
    blinded_message: bytes
    inverse: bytearray  # r^-1 mod n; never leaves the client
    prepared_message: bytes


class BlindSignatureSuite:
    """
    One RSABSSA variant: hash, PSS salt length and preparation mode.

    Use the module-level factories (``rsabssa_sha384_pss_randomized`` etc.)
    rather than instantiating directly.
    """

    def __init__(self, name: str, salt_length: int, randomized: bool,
                 hash_module=SHA384, provider: CryptoProvider = None):
        self.name = name
        self.salt_length = salt_length
        self.randomized = randomized
        self.hash_module = hash_module
        self.provider = provider or CryptoProvider()

    def __repr__(self):
        return f"BlindSignatureSuite({self.name})"

    # -----------------------------------------------------------------------
    # Voter-side operations
    # -----------------------------------------------------------------------

    def prepare(self, message: bytes) -> bytes:
        if not self.randomized:
            return bytes(message)
        return self.provider.random_bytes(PREFIX_SIZE) + bytes(message)

    def blind(self, public_key: RSA.RsaKey, prepared_message: bytes) -> BlindingState:
        """
        Blind a prepared message under the issuer's public key.

        blinded = encode(msg) * r^e mod n; the inverse of r is returned so
        the signature can be unblinded later.
        """
        n, e = public_key.n, public_key.e
        k = public_key.size_in_bytes()

        salt = self.provider.random_bytes(self.salt_length)
        encoded = self._emsa_pss_encode(prepared_message, public_key.size_in_bits() - 1, salt)
        m = int.from_bytes(encoded, "big")
        if gcd(m, n) != 1:
            raise ValueError("Encoded message is not invertible modulo n")

        while True:
            r = self.provider.random_int(2, n - 1)
            if gcd(r, n) == 1:
                break
        inverse = pow(r, -1, n)
        blinded = (m * pow(r, e, n)) % n

        return BlindingState(
            blinded_message=blinded.to_bytes(k, "big"),
            inverse=bytearray(inverse.to_bytes(k, "big")),
            prepared_message=prepared_message,
        )

    def finalize(self, public_key: RSA.RsaKey, blind_signature: bytes,
                 inverse: bytearray) -> bytes:
        """
        Remove the blinding factor to recover the actual signature.

        sig = blind_sig * r^-1 mod n
        """
        n = public_key.n
        k = public_key.size_in_bytes()
        if len(blind_signature) != k:
            raise ValueError(
                f"Blind signature is {len(blind_signature)} bytes, expected {k}"
            )
        z = int.from_bytes(blind_signature, "big")
        if z >= n:
            raise ValueError("Blind signature is out of range for the modulus")
        s = (z * int.from_bytes(inverse, "big")) % n
        return s.to_bytes(k, "big")

    def verify(self, public_key: RSA.RsaKey, signature: bytes, prepared_message: bytes) -> bool:
        """Standard RSASSA-PSS verification of a finalized signature."""
        verifier = pss.new(public_key, salt_bytes=self.salt_length)
        try:
            verifier.verify(self.hash_module.new(prepared_message), signature)
            return True
        except (ValueError, TypeError):
            return False

    # -----------------------------------------------------------------------
    # Issuer-side operation
    # -----------------------------------------------------------------------

    def blind_sign(self, private_key: RSA.RsaKey, blinded_message: bytes) -> bytes:
        """
        Sign a blinded message with the issuer's private key.

        blind_sig = blinded^d mod n; the issuer never sees the message.
        """
        n = private_key.n
        k = private_key.size_in_bytes()
        if len(blinded_message) != k:
            raise ValueError(f"Blinded message must be {k} bytes")
        m = int.from_bytes(blinded_message, "big")
        if m >= n:
            raise ValueError("Blinded message is out of range for the modulus")

        s = pow(m, private_key.d, n)
        if pow(s, private_key.e, n) != m:
            raise ValueError("Blind signature failed its consistency check")
        return s.to_bytes(k, "big")

    # -----------------------------------------------------------------------
    # EMSA-PSS encoding (RFC 8017, 9.1.1)
    # -----------------------------------------------------------------------

    def _emsa_pss_encode(self, message: bytes, em_bits: int, salt: bytes) -> bytes:
        h = self.hash_module
        m_hash = h.new(message).digest()
        h_len = len(m_hash)
        em_len = (em_bits + 7) // 8
        if em_len < h_len + len(salt) + 2:
            raise ValueError("Modulus too small for this hash and salt length")

        h_value = h.new(b"\x00" * 8 + m_hash + salt).digest()
        db = b"\x00" * (em_len - len(salt) - h_len - 2) + b"\x01" + salt
        masked_db = bytearray(strxor(db, MGF1(h_value, em_len - h_len - 1, h)))
        masked_db[0] &= 0xFF >> (8 * em_len - em_bits)
        return bytes(masked_db) + h_value + b"\xbc"


# ---------------------------------------------------------------------------
# Suite factories
# ---------------------------------------------------------------------------

def rsabssa_sha384_pss_randomized(provider: CryptoProvider = None) -> BlindSignatureSuite:
    """The variant the Election Server uses."""
    return BlindSignatureSuite("RSABSSA-SHA384-PSS-Randomized", 48, True, provider=provider)


def rsabssa_sha384_pss_deterministic(provider: CryptoProvider = None) -> BlindSignatureSuite:
    return BlindSignatureSuite("RSABSSA-SHA384-PSS-Deterministic", 48, False, provider=provider)


def rsabssa_sha384_psszero_randomized(provider: CryptoProvider = None) -> BlindSignatureSuite:
    return BlindSignatureSuite("RSABSSA-SHA384-PSSZERO-Randomized", 0, True, provider=provider)


def rsabssa_sha384_psszero_deterministic(provider: CryptoProvider = None) -> BlindSignatureSuite:
    return BlindSignatureSuite("RSABSSA-SHA384-PSSZERO-Deterministic", 0, False, provider=provider)


SUITES = {
    "RSABSSA-SHA384-PSS-Randomized": rsabssa_sha384_pss_randomized,
    "RSABSSA-SHA384-PSS-Deterministic": rsabssa_sha384_pss_deterministic,
    "RSABSSA-SHA384-PSSZERO-Randomized": rsabssa_sha384_psszero_randomized,
    "RSABSSA-SHA384-PSSZERO-Deterministic": rsabssa_sha384_psszero_deterministic,
}


def suite_by_name(name: str, provider: CryptoProvider = None) -> BlindSignatureSuite:
    try:
        factory = SUITES[name]
    except KeyError:
        raise ValueError(f"Unknown blind signature suite: {name}") from None
    return factory(provider)
