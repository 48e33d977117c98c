"""
Command-line front end.

    securevote-client register <NIC> <CODE>
    securevote-client candidates
    securevote-client vote <CANDIDATE_ID>
    securevote-client receipt
    securevote-client status
    securevote-client delink --yes

Server URLs and the key-store path come from SECUREVOTE_* environment
variables (see config.py).
"""

import argparse
import json
import logging
import sys

from .config import ClientConfig
from .errors import SecureVoteError, VoteFailedError
from .registration import delink_device, fetch_candidates, format_registration_code, register_device
from .session import VotingSession

logger = logging.getLogger("securevote_client")


def parse_cmd_line(args):
    parser = argparse.ArgumentParser(
        prog="securevote-client",
        description="Anonymous voting client: register, get a blind token, cast a ballot",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    register = sub.add_parser("register", help="register this device for a voter")
    register.add_argument("national_id")
    register.add_argument("registration_code", help="code in the form XXXX-XXXX-XXXX")

    sub.add_parser("candidates", help="list candidates")

    vote = sub.add_parser("vote", help="cast a ballot for a candidate id")
    vote.add_argument("candidate_id")

    sub.add_parser("receipt", help="show the last verified ballot receipt")
    sub.add_parser("status", help="show device registration status")

    delink = sub.add_parser("delink", help="remove the voter identity from this device")
    delink.add_argument("--yes", action="store_true", help="confirm delinking")

    return parser.parse_args(args)


def _print(data):
    print(json.dumps(data, indent=2))


def run(parsed, session: VotingSession) -> int:
    if parsed.command == "register":
        result = register_device(
            session.election,
            session.store,
            parsed.national_id,
            format_registration_code(parsed.registration_code),
        )
        _print(result)
    elif parsed.command == "candidates":
        _print([vars(c) for c in fetch_candidates(session.election)])
    elif parsed.command == "vote":
        _print(session.cast_vote(parsed.candidate_id).to_dict())
    elif parsed.command == "receipt":
        receipt = session.last_receipt()
        if receipt is None:
            print("No ballot receipt stored on this device.")
            return 1
        _print(receipt)
    elif parsed.command == "status":
        _print(session.store.identity_status())
    elif parsed.command == "delink":
        if not parsed.yes:
            print("Delinking removes your identity from this device; re-run with --yes.")
            return 1
        removed = delink_device(session.store)
        print("Device delinked." if removed else "No identity on this device.")
    return 0


def main(argv=None) -> int:
    parsed = parse_cmd_line(sys.argv[1:] if argv is None else argv)
    config = ClientConfig.from_env()
    logging.basicConfig(
        level=logging.DEBUG if (parsed.verbose or config.debug) else logging.INFO,
        format="%(asctime)s %(levelname)s %(message)s",
    )

    session = VotingSession.from_config(config)
    try:
        return run(parsed, session)
    except VoteFailedError as e:
        logger.error("Vote failed during %s: %s", e.step, e.cause)
        return 2
    except SecureVoteError as e:
        logger.error("%s: %s", type(e).__name__, e)
        return 2
    finally:
        session.store.close()


if __name__ == "__main__":
    sys.exit(main())
