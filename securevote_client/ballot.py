"""
Encrypted ballot submission with a verifiable receipt.

The ballot is sealed with a one-time AES-256-GCM key, the key is wrapped for
the Tallying Server, and the package is posted to the Ballot Box Server
together with the anonymous token. The Ballot Box Server answers with a
ballot id and an RSA-PSS signature over SHA-256(ballotId || ciphertext);
the submission only counts once that signature verifies.
"""

import json
import logging
from dataclasses import dataclass

from .asymmetric_wrap import wrap_key
from .config import RECEIPT_SALT_LENGTH
from .crypto_provider import CryptoProvider
from .encoding import from_b64, to_b64, to_hex
from .errors import (
    InvalidBallotError,
    InvalidReceiptError,
    ReceiptVerificationFailedError,
    SecureVoteError,
)
from .signatures import verify
from .symmetric import seal
from .token_client import AnonymousToken

logger = logging.getLogger(__name__)

SUBMIT_BALLOT_PATH = "/submit-ballot"


@dataclass(frozen=True)
class EncryptedBallot:
    ciphertext: bytes
    nonce: bytes
    wrapped_key: bytes

    def to_wire(self) -> dict:
        return {
            "encryptedBallot": to_b64(self.ciphertext),
            "iv": to_b64(self.nonce),
            "encryptedKey": to_b64(self.wrapped_key),
        }


@dataclass(frozen=True)
class ServerReceipt:
    ballot_id: str
    signature: bytes


@dataclass(frozen=True)
class SubmissionResult:
    success: bool
    message: str
    ballot_id: str
    ciphertext: str  # base64, as sent
    hash: str        # lowercase hex receipt digest

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "message": self.message,
            "ballotId": self.ballot_id,
            "ciphertext": self.ciphertext,
            "hash": self.hash,
        }


def build_plaintext(candidate_id: str) -> dict:
    """One-hot ballot: the chosen candidate maps to 1."""
    if not isinstance(candidate_id, str) or not candidate_id:
        raise InvalidBallotError("candidate_id must be a non-empty string")
    return {candidate_id: 1}


def serialize_plaintext(plaintext: dict) -> bytes:
    return json.dumps(plaintext, separators=(",", ":")).encode("utf-8")


def receipt_digest(ballot_id: str, ciphertext_b64: str, provider: CryptoProvider = None) -> bytes:
    """SHA-256(utf8(ballotId) || utf8(ciphertext as sent on the wire))."""
    provider = provider or CryptoProvider()
    return provider.sha256(ballot_id.encode("utf-8"), ciphertext_b64.encode("utf-8"))


def parse_receipt(response: dict) -> ServerReceipt:
    ballot_id = response.get("ballotId")
    signature_b64 = response.get("signature")
    if not ballot_id or not signature_b64:
        raise InvalidReceiptError("Missing ballotId or signature in ballot box response")
    try:
        signature = from_b64(signature_b64)
    except ValueError as e:
        raise InvalidReceiptError(f"Receipt signature is not base64: {e}") from e
    return ServerReceipt(ballot_id=str(ballot_id), signature=signature)


def verify_receipt(receipt: ServerReceipt, ciphertext_b64: str, public_key,
                   salt_length: int = RECEIPT_SALT_LENGTH,
                   provider: CryptoProvider = None) -> bytes:
    """Return the receipt digest, or raise if the signature does not verify."""
    digest = receipt_digest(receipt.ballot_id, ciphertext_b64, provider)
    if not verify(public_key, receipt.signature, digest, salt_length=salt_length):
        raise ReceiptVerificationFailedError(
            f"Ballot box signature for {receipt.ballot_id} does not verify"
        )
    return digest


class BallotProtocol:
    def __init__(self, ballot_box, tallying, provider: CryptoProvider = None,
                 receipt_salt_length: int = RECEIPT_SALT_LENGTH):
        self.ballot_box = ballot_box
        self.tallying = tallying
        self.provider = provider or CryptoProvider()
        self.receipt_salt_length = receipt_salt_length

    def encrypt_ballot(self, candidate_id: str, tallying_key) -> EncryptedBallot:
        """Seal the one-hot ballot and wrap its key; the key is zeroed after."""
        plaintext = serialize_plaintext(build_plaintext(candidate_id))
        key, payload = seal(plaintext, self.provider)
        with key:
            wrapped = wrap_key(key, tallying_key)
        return EncryptedBallot(
            ciphertext=payload.ciphertext,
            nonce=payload.nonce,
            wrapped_key=wrapped,
        )

    def submit(self, candidate_id: str, token: AnonymousToken) -> SubmissionResult:
        """
        Encrypt, submit and verify the receipt for one ballot.

        Raises InvalidReceiptError if the response lacks a receipt and
        ReceiptVerificationFailedError if the receipt signature is bad, even
        when the server reports success. Once the ballot has been stored,
        failing to fetch or import the Ballot Box key is also reported as
        ReceiptVerificationFailedError.
        """
        ballot = self.encrypt_ballot(candidate_id, self.tallying.get_public_key())
        body = ballot.to_wire()
        body.update(token.to_wire())

        response = self.ballot_box.post_json(SUBMIT_BALLOT_PATH, body)
        receipt = parse_receipt(response)

        try:
            digest = verify_receipt(
                receipt,
                body["encryptedBallot"],
                self.ballot_box.get_public_key(),
                salt_length=self.receipt_salt_length,
                provider=self.provider,
            )
        except ReceiptVerificationFailedError:
            raise
        except SecureVoteError as e:
            raise ReceiptVerificationFailedError(
                f"Ballot {receipt.ballot_id} was stored but its receipt could not be checked: {e}"
            ) from e
        logger.info("Ballot %s accepted; receipt hash %s", receipt.ballot_id, to_hex(digest))

        return SubmissionResult(
            success=bool(response.get("success", True)),
            message=response.get("message") or "Ballot submitted successfully",
            ballot_id=receipt.ballot_id,
            ciphertext=body["encryptedBallot"],
            hash=to_hex(digest),
        )
