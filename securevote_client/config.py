"""
Client configuration.

Server base URLs, HTTP timeout, key-store location and the RSA-PSS salt
lengths are read from the environment. Each server is configured separately
since the three authorities run independently.
"""

import os
from dataclasses import dataclass
from pathlib import Path

DEFAULT_ES_URL = "http://localhost:5000"
DEFAULT_BBS_URL = "http://localhost:5001"
DEFAULT_TS_URL = "http://localhost:5002"
DEFAULT_TIMEOUT = 10.0  # seconds
DEFAULT_KEYSTORE = Path.home() / ".securevote" / "keystore.db"

# RSA-PSS/SHA-384 salt lengths. Signing uses the hash length (48) while the
# Ballot Box Server signs receipts with 64; both are overridable.
SIGN_SALT_LENGTH = 48
RECEIPT_SALT_LENGTH = 64


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class ClientConfig:
    election_url: str = DEFAULT_ES_URL
    ballot_box_url: str = DEFAULT_BBS_URL
    tallying_url: str = DEFAULT_TS_URL
    timeout: float = DEFAULT_TIMEOUT
    keystore_path: Path = DEFAULT_KEYSTORE
    sign_salt_length: int = SIGN_SALT_LENGTH
    receipt_salt_length: int = RECEIPT_SALT_LENGTH
    debug: bool = False

    @classmethod
    def from_env(cls) -> "ClientConfig":
        """Build a configuration from ``SECUREVOTE_*`` environment variables."""
        return cls(
            election_url=os.environ.get("SECUREVOTE_ES_URL", DEFAULT_ES_URL),
            ballot_box_url=os.environ.get("SECUREVOTE_BBS_URL", DEFAULT_BBS_URL),
            tallying_url=os.environ.get("SECUREVOTE_TS_URL", DEFAULT_TS_URL),
            timeout=float(os.environ.get("SECUREVOTE_TIMEOUT", DEFAULT_TIMEOUT)),
            keystore_path=Path(
                os.environ.get("SECUREVOTE_KEYSTORE", str(DEFAULT_KEYSTORE))
            ).expanduser(),
            sign_salt_length=int(os.environ.get("SECUREVOTE_SIGN_SALT", SIGN_SALT_LENGTH)),
            receipt_salt_length=int(
                os.environ.get("SECUREVOTE_RECEIPT_SALT", RECEIPT_SALT_LENGTH)
            ),
            debug=_env_bool("SECUREVOTE_DEBUG"),
        )
