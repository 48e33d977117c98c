"""
Tests for the command-line front end.
"""

import json

import pytest

from conftest import NATIONAL_ID
from securevote_client import cli
from securevote_client.config import ClientConfig
from securevote_client.session import VotingSession


@pytest.fixture
def session(store, clients):
    return VotingSession(store, clients.election, clients.ballot_box, clients.tallying)


def _run(session, *argv):
    return cli.run(cli.parse_cmd_line(list(argv)), session)


def test_register_vote_and_receipt(session, capsys):
    assert _run(session, "register", NATIONAL_ID, "abcd efgh ijkl") == 0
    assert json.loads(capsys.readouterr().out)["success"]

    assert _run(session, "vote", "cand-42") == 0
    vote = json.loads(capsys.readouterr().out)
    assert vote["ballotId"] == "BLT-001"

    assert _run(session, "receipt") == 0
    assert json.loads(capsys.readouterr().out)["hash"] == vote["hash"]


def test_candidates(session, capsys):
    assert _run(session, "candidates") == 0
    listed = json.loads(capsys.readouterr().out)
    assert listed[0] == {"id": "cand-41", "name": "Candidate A", "party": "Party One"}


def test_status_and_delink(session, identity, capsys):
    assert _run(session, "status") == 0
    assert json.loads(capsys.readouterr().out)["national_id"] == NATIONAL_ID

    assert _run(session, "delink") == 1
    assert session.store.has_identity()

    assert _run(session, "delink", "--yes") == 0
    assert not session.store.has_identity()


def test_receipt_missing(session):
    assert _run(session, "receipt") == 1


def test_main_reports_failed_step(monkeypatch, tmp_path, caplog):
    monkeypatch.setenv("SECUREVOTE_KEYSTORE", str(tmp_path / "ks.db"))
    assert cli.main(["vote", "cand-42"]) == 2
    assert "token issuance" in caplog.text


def test_main_rejects_empty_candidate_before_contacting_servers(monkeypatch, tmp_path, caplog):
    monkeypatch.setenv("SECUREVOTE_KEYSTORE", str(tmp_path / "ks.db"))
    assert cli.main(["vote", ""]) == 2
    assert "ballot submission" in caplog.text
    assert "token issuance" not in caplog.text


def test_config_from_env(monkeypatch, tmp_path):
    monkeypatch.setenv("SECUREVOTE_ES_URL", "https://es.example")
    monkeypatch.setenv("SECUREVOTE_TIMEOUT", "3.5")
    monkeypatch.setenv("SECUREVOTE_KEYSTORE", str(tmp_path / "k.db"))
    monkeypatch.setenv("SECUREVOTE_RECEIPT_SALT", "48")
    monkeypatch.setenv("SECUREVOTE_DEBUG", "true")

    config = ClientConfig.from_env()
    assert config.election_url == "https://es.example"
    assert config.ballot_box_url == "http://localhost:5001"
    assert config.timeout == 3.5
    assert config.keystore_path == tmp_path / "k.db"
    assert config.sign_salt_length == 48
    assert config.receipt_salt_length == 48
    assert config.debug is True
