"""
Error taxonomy for the SecureVote client.

Every failure raised by the protocol layer derives from SecureVoteError so a
caller can report it as a failed vote step instead of a generic crash.
Cryptographic verification failures are never downgraded to success.
"""


class SecureVoteError(Exception):
    """Base class for all client-side protocol failures."""


# ---------------------------------------------------------------------------
# Key material
# ---------------------------------------------------------------------------

class MalformedKeyError(SecureVoteError):
    """PEM input had no base64-decodable body."""


class KeyImportError(SecureVoteError):
    """DER bytes could not be imported for the requested algorithm/usage."""


class UnsupportedKeyFormatError(SecureVoteError):
    """A recipient public key was neither PEM nor a hex modulus."""


class UnsupportedSecretFormatError(SecureVoteError):
    """A signing secret was not PEM, a 64-byte Ed25519 key or a 32-byte seed."""


# ---------------------------------------------------------------------------
# Symmetric encryption
# ---------------------------------------------------------------------------

class AuthenticationFailedError(SecureVoteError):
    """GCM tag mismatch: the ciphertext or nonce was tampered with."""


class KeyReuseError(SecureVoteError):
    """A one-time symmetric key was asked to encrypt a second time."""


# ---------------------------------------------------------------------------
# Protocol steps
# ---------------------------------------------------------------------------

class TokenIssuanceError(SecureVoteError):
    """The Election Server did not return a usable blind signature."""


class InvalidBallotError(SecureVoteError):
    """The ballot choice is not a non-empty candidate id."""


class InvalidReceiptError(SecureVoteError):
    """The Ballot Box Server response lacked ballotId or signature."""


class ReceiptVerificationFailedError(SecureVoteError):
    """The Ballot Box Server receipt signature does not verify."""


class RegistrationError(SecureVoteError):
    """Device registration was refused or could not be attempted."""


class IdentityNotFoundError(SecureVoteError):
    """No voter identity is stored on this device."""


class TransportError(SecureVoteError):
    """Network-layer failure talking to one of the servers."""

    def __init__(self, message: str, server: str = None, status: int = None):
        super().__init__(message)
        self.server = server
        self.status = status


class VoteFailedError(SecureVoteError):
    """A vote attempt failed; ``step`` names the protocol step that failed."""

    def __init__(self, step: str, cause: Exception):
        super().__init__(f"Vote failed during {step}: {cause}")
        self.step = step
        self.cause = cause
