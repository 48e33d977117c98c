"""
Anonymous token issuance via blind signatures.

The client asks the Election Server to sign a blinded message derived from
the voter identity. The request is authenticated by a provenance signature
from the device key, but the server only ever sees the blinded value, so the
finalized token cannot be linked back to the voter.

    IDLE -> PREPARED -> BLINDED -> AWAITING_SERVER_SIGNATURE -> FINALIZED

Any failure drops all ephemeral material and returns the client to IDLE; a
retry always starts over with fresh randomness.
"""

import enum
import logging
from dataclasses import dataclass

from .blind_signature import BlindSignatureSuite, rsabssa_sha384_pss_randomized
from .config import SIGN_SALT_LENGTH
from .crypto_provider import CryptoProvider
from .encoding import from_b64, to_b64, to_hex
from .errors import TokenIssuanceError
from .key_codec import RSA_PSS_SHA384, VERIFY, import_public_key
from .keystore import VoterIdentity
from .signatures import sign

logger = logging.getLogger(__name__)

REQUEST_TOKEN_PATH = "/request-token"


class TokenState(enum.Enum):
    IDLE = "idle"
    PREPARED = "prepared"
    BLINDED = "blinded"
    AWAITING_SERVER_SIGNATURE = "awaiting-server-signature"
    FINALIZED = "finalized"


@dataclass(frozen=True)
class AnonymousToken:
    """
    Unblinded proof that the Election Server authorized an unlinkable request.

    ``verified`` records the local self-check after finalize. A False value
    is reported, not raised; the Ballot Box Server makes the final call.
    Nothing here prevents using a token twice: double-spend checks live on
    the Ballot Box Server.
    """
    final_signature: bytes
    prepared_message: bytes
    message_hash_hex: str
    verified: bool

    def to_wire(self) -> dict:
        return {
            "token_signature": to_b64(self.final_signature),
            "token": to_b64(self.prepared_message),
        }


def message_digest(identity: VoterIdentity, provider: CryptoProvider) -> bytes:
    """SHA-256 over the national ID followed by the stored secret string."""
    return provider.sha256(
        identity.national_id.encode("utf-8"),
        identity.secret.encoded().encode("utf-8"),
    )


class BlindTokenClient:
    def __init__(self, election, suite: BlindSignatureSuite = None,
                 provider: CryptoProvider = None, sign_salt_length: int = SIGN_SALT_LENGTH):
        self.election = election
        self.provider = provider or CryptoProvider()
        self.suite = suite or rsabssa_sha384_pss_randomized(self.provider)
        self.sign_salt_length = sign_salt_length
        self.state = TokenState.IDLE

    def request_token(self, identity: VoterIdentity) -> AnonymousToken:
        """Run one full issuance round trip and return the finalized token."""
        self.state = TokenState.IDLE
        try:
            token = self._run(identity)
        except Exception:
            self.state = TokenState.IDLE
            raise
        self.state = TokenState.FINALIZED
        return token

    def _run(self, identity: VoterIdentity) -> AnonymousToken:
        digest = message_digest(identity, self.provider)
        prepared = self.suite.prepare(digest)
        self.state = TokenState.PREPARED

        public_key = import_public_key(self.election.get_public_key(), VERIFY, RSA_PSS_SHA384)
        key = public_key.require(VERIFY, RSA_PSS_SHA384)
        blinding = self.suite.blind(key, prepared)
        self.state = TokenState.BLINDED

        with self.provider.hold(blinding.inverse) as inverse:
            provenance = sign(
                identity.secret,
                blinding.blinded_message + identity.national_id.encode("utf-8"),
                salt_length=self.sign_salt_length,
            )
            self.state = TokenState.AWAITING_SERVER_SIGNATURE
            response = self.election.post_json(REQUEST_TOKEN_PATH, {
                "NIC": identity.national_id,
                "blinded_token": to_b64(blinding.blinded_message),
                "signature": to_b64(provenance),
            })

            blind_signature_b64 = response.get("blindSignature")
            if not blind_signature_b64:
                raise TokenIssuanceError("No blind signature returned from the election server")
            try:
                blind_signature = from_b64(blind_signature_b64)
                signature = self.suite.finalize(key, blind_signature, inverse)
            except ValueError as e:
                raise TokenIssuanceError(f"Unusable blind signature: {e}") from e

        verified = self.suite.verify(key, signature, prepared)
        if verified:
            logger.info("Anonymous token finalized and verified locally")
        else:
            logger.warning("Finalized token failed local verification under %s", self.suite.name)

        return AnonymousToken(
            final_signature=signature,
            prepared_message=prepared,
            message_hash_hex=to_hex(digest),
            verified=verified,
        )
