"""
Explicit cryptographic capability.

Components receive a CryptoProvider instead of reaching for a global backend.
It supplies randomness and hashing, and scopes secret buffers so they are
zeroed on every exit path, error paths included.
"""

from contextlib import contextmanager

from Crypto.Hash import SHA256
from Crypto.Random import get_random_bytes
from Crypto.Random.random import randint


def zeroize(buffer: bytearray) -> None:
    """Overwrite a mutable secret buffer in place."""
    for i in range(len(buffer)):
        buffer[i] = 0


class CryptoProvider:
    def random_bytes(self, size: int) -> bytes:
        return get_random_bytes(size)

    def random_int(self, lower: int, upper: int) -> int:
        """Uniform integer in the closed range [lower, upper]."""
        return randint(lower, upper)

    def sha256(self, *parts: bytes) -> bytes:
        h = SHA256.new()
        for part in parts:
            h.update(part)
        return h.digest()

    def secret_buffer(self, size: int) -> bytearray:
        return bytearray(self.random_bytes(size))

    @contextmanager
    def hold(self, *buffers: bytearray):
        """
        Keep secret buffers alive for the duration of a block, then zero them.

        Usage::

            with provider.hold(state.inverse):
                ...
        """
        try:
            yield buffers[0] if len(buffers) == 1 else buffers
        finally:
            for buffer in buffers:
                zeroize(buffer)
