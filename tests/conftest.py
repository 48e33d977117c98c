"""
pytest configuration for the SecureVote client tests.

Provides in-process stand-ins for the Election, Ballot Box and Tallying
servers as small Flask apps, and a requests.Session look-alike that routes
ServerClient calls to them through Flask's test client.
"""

import base64
import json
from types import SimpleNamespace
from urllib.parse import urlsplit

import pytest
from Crypto.Hash import SHA256, SHA384
from Crypto.PublicKey import RSA
from Crypto.Signature import pss
from flask import Flask, Response, jsonify, request

from securevote_client.blind_signature import generate_keypair, rsabssa_sha384_pss_randomized
from securevote_client.keystore import KeyStore
from securevote_client.signatures import verify_ed25519
from securevote_client.transport import BALLOT_BOX, ELECTION, TALLYING, ServerClient

ELECTION_HOST = "election.test"
BALLOT_BOX_HOST = "ballotbox.test"
TALLYING_HOST = "tallying.test"

REGISTRATION_CODE = "ABCD-EFGH-IJKL"
NATIONAL_ID = "199012345678"

CANDIDATES = [
    {"id": "cand-41", "name": "Candidate A", "party": "Party One"},
    {"id": "cand-42", "name": "Candidate B", "party": "Party Two"},
]


# ---------------------------------------------------------------------------
# Flask test-client transport
# ---------------------------------------------------------------------------

class FlaskResponse:
    def __init__(self, response):
        self.status_code = response.status_code
        self.headers = response.headers
        self.text = response.get_data(as_text=True)

    def json(self):
        return json.loads(self.text)


class FlaskSession:
    """Routes requests by host name to Flask test clients."""

    def __init__(self, apps: dict):
        self.clients = {host: app.test_client() for host, app in apps.items()}
        self.requests = []

    def _client(self, url):
        parts = urlsplit(url)
        self.requests.append(parts.path)
        return self.clients[parts.netloc], parts.path

    def get(self, url, timeout=None):
        client, path = self._client(url)
        return FlaskResponse(client.get(path))

    def post(self, url, json=None, timeout=None):
        client, path = self._client(url)
        return FlaskResponse(client.post(path, json=json))


# ---------------------------------------------------------------------------
# Stub servers
# ---------------------------------------------------------------------------

def make_election_app(private_pem: str, public_pem: str) -> Flask:
    app = Flask(__name__)
    suite = rsabssa_sha384_pss_randomized()
    state = SimpleNamespace(
        devices={},
        token_requests=[],
        signing_key=RSA.import_key(private_pem),
        omit_blind_signature=False,
        corrupt_blind_signature=False,
        public_key_as_json=False,
        serve_modulus=False,
    )
    app.config["STATE"] = state

    @app.route("/public-key")
    def public_key():
        if state.public_key_as_json:
            return jsonify({"public_key": public_pem})
        if state.serve_modulus:
            return Response(format(RSA.import_key(public_pem).n, "x"), mimetype="text/plain")
        return Response(public_pem, mimetype="text/plain")

    @app.route("/register", methods=["POST"])
    def register():
        data = request.get_json(silent=True) or {}
        if data.get("registration_code") != REGISTRATION_CODE:
            return jsonify({"success": False, "message": "Invalid registration code"})
        state.devices[data["NIC"]] = base64.b64decode(data["public_key"])
        return jsonify({"success": True, "message": f"Welcome {data['NIC']}!"})

    @app.route("/request-token", methods=["POST"])
    def request_token():
        data = request.get_json(silent=True) or {}
        state.token_requests.append(data)
        device_key = state.devices.get(data.get("NIC"))
        if device_key is None:
            return jsonify({"message": "Unknown device"}), 403

        blinded = base64.b64decode(data["blinded_token"])
        provenance = base64.b64decode(data["signature"])
        if not verify_ed25519(device_key, provenance, blinded + data["NIC"].encode()):
            return jsonify({"message": "Bad provenance signature"}), 403

        if state.omit_blind_signature:
            return jsonify({"success": True})
        blind_sig = suite.blind_sign(state.signing_key, blinded)
        if state.corrupt_blind_signature:
            blind_sig = blind_sig[:-1] + bytes([blind_sig[-1] ^ 0x01])
        return jsonify({"blindSignature": base64.b64encode(blind_sig).decode()})

    @app.route("/candidates")
    def candidates():
        return jsonify(CANDIDATES)

    return app


def make_ballot_box_app(private_pem: str, public_pem: str, election_public_pem: str) -> Flask:
    app = Flask(__name__)
    suite = rsabssa_sha384_pss_randomized()
    election_key = RSA.import_key(election_public_pem)
    signer = pss.new(RSA.import_key(private_pem), salt_bytes=64)
    state = SimpleNamespace(
        ballots={},
        spent_tokens=set(),
        counter=0,
        omit_receipt=False,
        tamper_ballot_id=False,
        public_key_unavailable=False,
    )
    app.config["STATE"] = state

    @app.route("/public-key")
    def public_key():
        if state.public_key_unavailable:
            return jsonify({"message": "Key service down"}), 503
        return Response(public_pem, mimetype="text/plain")

    @app.route("/submit-ballot", methods=["POST"])
    def submit_ballot():
        data = request.get_json(silent=True) or {}
        token = base64.b64decode(data["token"])
        token_signature = base64.b64decode(data["token_signature"])
        if not suite.verify(election_key, token_signature, token):
            return jsonify({"success": False, "message": "Invalid token"}), 403
        if token in state.spent_tokens:
            return jsonify({"success": False, "message": "Token already used"}), 409
        state.spent_tokens.add(token)

        state.counter += 1
        ballot_id = f"BLT-{state.counter:03d}"
        state.ballots[ballot_id] = data
        if state.omit_receipt:
            return jsonify({"success": True, "message": "Stored"})

        digest = SHA256.new(ballot_id.encode() + data["encryptedBallot"].encode()).digest()
        signature = signer.sign(SHA384.new(digest))
        if state.tamper_ballot_id:
            ballot_id = "BLT-999"
        return jsonify({
            "success": True,
            "message": "Ballot accepted",
            "ballotId": ballot_id,
            "signature": base64.b64encode(signature).decode(),
        })

    return app


def make_tallying_app(public_pem: str) -> Flask:
    app = Flask(__name__)
    state = SimpleNamespace(serve_modulus=False)
    app.config["STATE"] = state
    modulus_hex = format(RSA.import_key(public_pem).n, "x")

    @app.route("/public-key")
    def public_key():
        body = modulus_hex if state.serve_modulus else public_pem
        return Response(body, mimetype="text/plain")

    return app


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture(scope="session")
def election_keys():
    return generate_keypair()


@pytest.fixture(scope="session")
def ballot_box_keys():
    return generate_keypair()


@pytest.fixture(scope="session")
def tallying_keys():
    return generate_keypair()


@pytest.fixture
def servers(election_keys, ballot_box_keys, tallying_keys):
    election = make_election_app(*election_keys)
    ballot_box = make_ballot_box_app(*ballot_box_keys, election_keys[1])
    tallying = make_tallying_app(tallying_keys[1])
    return SimpleNamespace(
        election=election.config["STATE"],
        ballot_box=ballot_box.config["STATE"],
        tallying=tallying.config["STATE"],
        session=FlaskSession({
            ELECTION_HOST: election,
            BALLOT_BOX_HOST: ballot_box,
            TALLYING_HOST: tallying,
        }),
    )


@pytest.fixture
def clients(servers):
    session = servers.session
    return SimpleNamespace(
        election=ServerClient(ELECTION, f"http://{ELECTION_HOST}", session=session),
        ballot_box=ServerClient(BALLOT_BOX, f"http://{BALLOT_BOX_HOST}", session=session),
        tallying=ServerClient(TALLYING, f"http://{TALLYING_HOST}", session=session),
    )


@pytest.fixture
def store(tmp_path):
    """Each test gets its own SQLite key store."""
    ks = KeyStore(tmp_path / "keystore.db").init()
    yield ks
    ks.close()


@pytest.fixture
def identity(clients, store):
    from securevote_client.registration import register_device
    register_device(clients.election, store, NATIONAL_ID, REGISTRATION_CODE)
    return store.load_identity()
