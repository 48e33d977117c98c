"""
HTTP transport to the Election, Ballot Box and Tallying servers.

One ServerClient per server, each with its own base URL. Network and HTTP
failures surface as TransportError; nothing here retries.
"""

import logging

import requests

from .errors import TransportError, UnsupportedKeyFormatError

logger = logging.getLogger(__name__)

ELECTION = "election server"
BALLOT_BOX = "ballot box server"
TALLYING = "tallying server"

_STATUS_MESSAGES = {
    400: "Invalid request",
    401: "Unauthorized",
    403: "Access denied",
    404: "Not found",
    500: "Server error",
    503: "Service temporarily unavailable",
}

_PUBLIC_KEY_FIELDS = ("public_key", "publicKey", "key", "pem")


class ServerClient:
    def __init__(self, name: str, base_url: str, timeout: float = 10.0, session=None):
        self.name = name
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def __repr__(self):
        return f"ServerClient({self.name!r}, {self.base_url!r})"

    def _url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    def _handle(self, response, path: str):
        if response.status_code >= 400:
            message = None
            try:
                body = response.json()
                if isinstance(body, dict):
                    message = body.get("message") or body.get("error")
            except ValueError:
                pass
            message = message or _STATUS_MESSAGES.get(response.status_code, "Request failed")
            logger.error("%s %s -> %d: %s", self.name, path, response.status_code, message)
            raise TransportError(
                f"{self.name} rejected {path} ({response.status_code}): {message}",
                server=self.name,
                status=response.status_code,
            )

        content_type = response.headers.get("Content-Type", "")
        if "json" in content_type:
            try:
                return response.json()
            except ValueError as e:
                raise TransportError(
                    f"{self.name} returned malformed JSON for {path}",
                    server=self.name,
                    status=response.status_code,
                ) from e
        return response.text

    def get(self, path: str):
        logger.debug("GET %s%s", self.base_url, path)
        try:
            response = self.session.get(self._url(path), timeout=self.timeout)
        except requests.RequestException as e:
            raise TransportError(
                f"Unable to connect to {self.name}: {e}", server=self.name
            ) from e
        return self._handle(response, path)

    def post_json(self, path: str, body: dict) -> dict:
        logger.debug("POST %s%s", self.base_url, path)
        try:
            response = self.session.post(self._url(path), json=body, timeout=self.timeout)
        except requests.RequestException as e:
            raise TransportError(
                f"Unable to connect to {self.name}: {e}", server=self.name
            ) from e
        data = self._handle(response, path)
        if not isinstance(data, dict):
            raise TransportError(
                f"{self.name} returned a non-object response for {path}",
                server=self.name,
                status=response.status_code,
            )
        return data

    def get_public_key(self) -> str:
        """
        Fetch the server's published key material.

        Servers answer either with the bare key (PEM or hex modulus) as text,
        a JSON string, or a JSON object holding it under ``public_key``.
        """
        data = self.get("/public-key")
        if isinstance(data, dict):
            for field in _PUBLIC_KEY_FIELDS:
                if isinstance(data.get(field), str):
                    data = data[field]
                    break
        if not isinstance(data, str) or not data.strip():
            raise UnsupportedKeyFormatError(f"{self.name} returned no usable public key")
        return data.strip()
