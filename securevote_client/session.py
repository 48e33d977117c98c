"""
One vote attempt, end to end.

Loads the device identity, obtains an anonymous token from the Election
Server and submits the encrypted ballot to the Ballot Box Server. Failures
are reported as VoteFailedError naming the step that failed.
"""

import json
import logging
from contextlib import contextmanager

from .ballot import BallotProtocol, SubmissionResult, build_plaintext
from .blind_signature import rsabssa_sha384_pss_randomized
from .config import ClientConfig
from .crypto_provider import CryptoProvider
from .errors import ReceiptVerificationFailedError, SecureVoteError, VoteFailedError
from .keystore import KeyStore
from .registration import LAST_RECEIPT_ITEM
from .token_client import BlindTokenClient
from .transport import BALLOT_BOX, ELECTION, TALLYING, ServerClient

logger = logging.getLogger(__name__)

TOKEN_ISSUANCE = "token issuance"
BALLOT_SUBMISSION = "ballot submission"
RECEIPT_VERIFICATION = "receipt verification"


@contextmanager
def failure_step(step: str):
    try:
        yield
    except ReceiptVerificationFailedError as e:
        raise VoteFailedError(RECEIPT_VERIFICATION, e) from e
    except VoteFailedError:
        raise
    except SecureVoteError as e:
        raise VoteFailedError(step, e) from e


class VotingSession:
    def __init__(self, store: KeyStore, election, ballot_box, tallying,
                 token_client: BlindTokenClient = None,
                 ballot_protocol: BallotProtocol = None,
                 provider: CryptoProvider = None):
        self.store = store
        self.election = election
        self.ballot_box = ballot_box
        self.tallying = tallying
        self.provider = provider or CryptoProvider()
        self.token_client = token_client or BlindTokenClient(
            election, rsabssa_sha384_pss_randomized(self.provider), self.provider
        )
        self.ballot_protocol = ballot_protocol or BallotProtocol(
            ballot_box, tallying, self.provider
        )

    @classmethod
    def from_config(cls, config: ClientConfig, session=None) -> "VotingSession":
        provider = CryptoProvider()
        election = ServerClient(ELECTION, config.election_url, config.timeout, session)
        ballot_box = ServerClient(BALLOT_BOX, config.ballot_box_url, config.timeout, session)
        tallying = ServerClient(TALLYING, config.tallying_url, config.timeout, session)
        store = KeyStore(config.keystore_path).init()
        return cls(
            store, election, ballot_box, tallying,
            token_client=BlindTokenClient(
                election,
                rsabssa_sha384_pss_randomized(provider),
                provider,
                sign_salt_length=config.sign_salt_length,
            ),
            ballot_protocol=BallotProtocol(
                ballot_box, tallying, provider,
                receipt_salt_length=config.receipt_salt_length,
            ),
            provider=provider,
        )

    def cast_vote(self, candidate_id: str) -> SubmissionResult:
        """
        Obtain a fresh anonymous token and submit one ballot with it.

        The ballot choice is checked before any server is contacted, so an
        unusable choice never costs a token issuance. The loaded device
        secret is zeroed once the token is issued or issuance fails.
        """
        with failure_step(BALLOT_SUBMISSION):
            build_plaintext(candidate_id)

        with failure_step(TOKEN_ISSUANCE):
            identity = self.store.load_identity()
            with self.provider.hold(identity.secret.material):
                token = self.token_client.request_token(identity)
        if not token.verified:
            logger.warning("Submitting a token that failed local verification")

        with failure_step(BALLOT_SUBMISSION):
            result = self.ballot_protocol.submit(candidate_id, token)

        self.store.set_item(LAST_RECEIPT_ITEM, json.dumps(result.to_dict()))
        return result

    def last_receipt(self):
        """The most recent verified receipt record, or None."""
        value = self.store.get_item(LAST_RECEIPT_ITEM)
        return json.loads(value) if value else None
