"""
Device Registration

Orchestrates the registration flow against the Election Server:
  1. Check the registration code shape and that the device is not linked
  2. Generate a fresh Ed25519 device key
  3. Send the national ID, code and public key to the Election Server
  4. Store the identity in the device key store on success

The device key later authenticates token requests; it never signs ballots.
"""

import logging
import re
from dataclasses import dataclass

from Crypto.PublicKey import ECC

from .encoding import to_b64
from .errors import RegistrationError
from .keystore import KeyStore, VoterIdentity
from .signatures import ED25519_KEY, SigningSecret, ed25519_public_key

logger = logging.getLogger(__name__)

REGISTRATION_CODE = re.compile(r"^[A-Z0-9]{4}-[A-Z0-9]{4}-[A-Z0-9]{4}$")
LAST_RECEIPT_ITEM = "last_receipt"


@dataclass(frozen=True)
class Candidate:
    id: str
    name: str
    party: str = ""


def format_registration_code(text: str) -> str:
    """Normalize user input to XXXX-XXXX-XXXX (upper case, dashes every 4)."""
    clean = re.sub(r"[^A-Za-z0-9]", "", text).upper()[:12]
    return "-".join(clean[i:i + 4] for i in range(0, len(clean), 4))


def generate_device_secret() -> SigningSecret:
    """Fresh Ed25519 key stored as a 64-byte secret key (seed || public)."""
    key = ECC.generate(curve="Ed25519")
    seed = key.seed
    public = key.public_key().export_key(format="raw")
    return SigningSecret(ED25519_KEY, seed + public)


def register_device(election, store: KeyStore, national_id: str,
                    registration_code: str) -> dict:
    """
    Register this device for a voter.

    Parameters
    ----------
    election : ServerClient
        Election Server client
    store : KeyStore
        Device key store; receives the identity on success
    national_id : str
        The voter's national ID, already validated by the caller
    registration_code : str
        One-time code in the form XXXX-XXXX-XXXX

    Returns
    -------
    dict with keys ``success`` and ``message`` from the Election Server.
    """
    national_id = (national_id or "").strip()
    if not national_id:
        raise RegistrationError("National ID is required")
    if not REGISTRATION_CODE.match(registration_code or ""):
        raise RegistrationError("Registration code must be in the form XXXX-XXXX-XXXX")
    if store.has_identity():
        raise RegistrationError("This device is already registered; delink it first")

    secret = generate_device_secret()
    response = election.post_json("/register", {
        "NIC": national_id,
        "registration_code": registration_code,
        "public_key": to_b64(ed25519_public_key(secret)),
    })

    if not response.get("success"):
        message = response.get("message") or "Registration was refused"
        logger.warning("Registration refused for %s: %s", national_id, message)
        raise RegistrationError(message)

    store.save_identity(VoterIdentity(national_id=national_id, secret=secret))
    logger.info("Device registered for %s", national_id)
    return {
        "success": True,
        "message": response.get("message") or f"Welcome {national_id}!",
    }


def fetch_candidates(election) -> list:
    """Return the Election Server's candidate list as Candidate records."""
    data = election.get("/candidates")
    if isinstance(data, dict):
        data = data.get("candidates", [])
    if not isinstance(data, list):
        raise RegistrationError("Election server returned no candidate list")

    candidates = []
    for entry in data:
        if isinstance(entry, dict) and entry.get("id") is not None:
            candidates.append(Candidate(
                id=str(entry["id"]),
                name=str(entry.get("name", entry["id"])),
                party=str(entry.get("party", "")),
            ))
        elif isinstance(entry, str):
            candidates.append(Candidate(id=entry, name=entry))
    return candidates


def delink_device(store: KeyStore) -> bool:
    """Destroy the stored identity and receipts; re-registration is needed after."""
    removed = store.delete_identity()
    store.delete_item(LAST_RECEIPT_ITEM)
    if removed:
        logger.info("Device delinked")
    return removed
