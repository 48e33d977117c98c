"""
SecureVote client: anonymous token issuance, encrypted ballot submission and
receipt verification against the Election, Ballot Box and Tallying servers.
"""

from .ballot import BallotProtocol, SubmissionResult
from .blind_signature import BlindSignatureSuite, rsabssa_sha384_pss_randomized
from .config import ClientConfig
from .crypto_provider import CryptoProvider
from .keystore import KeyStore, VoterIdentity
from .session import VotingSession
from .signatures import SigningSecret
from .token_client import AnonymousToken, BlindTokenClient, TokenState
from .transport import ServerClient

__version__ = "0.1.0"

__all__ = [
    "AnonymousToken",
    "BallotProtocol",
    "BlindSignatureSuite",
    "BlindTokenClient",
    "ClientConfig",
    "CryptoProvider",
    "KeyStore",
    "ServerClient",
    "SigningSecret",
    "SubmissionResult",
    "TokenState",
    "VoterIdentity",
    "VotingSession",
    "rsabssa_sha384_pss_randomized",
]
