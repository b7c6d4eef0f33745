"""OIDC token exchange for npm trusted publishing.

Two requests are made:

1. The CI identity endpoint (`ACTIONS_ID_TOKEN_REQUEST_URL` on GitHub) is asked
   for an identity token with the npm registry as audience.
2. The registry trades that identity token for a short-lived publish token
   scoped to a single package.
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

import requests
from pydantic import SecretStr

from .errors import AuthenticationError

logger = logging.getLogger(__name__)

NPM_AUDIENCE = "npm:registry.npmjs.org"


class NpmTokenExchange:
    def __init__(
        self,
        registry: str = "https://registry.npmjs.org",
        audience: str = NPM_AUDIENCE,
        timeout: float = 30.0,
        session: requests.Session | None = None,
    ):
        self.registry = registry.rstrip("/")
        self.audience = audience
        self.timeout = timeout
        self.session = session or requests.Session()

    def exchange(self, oidc_url: str, oidc_token: SecretStr, package: str) -> SecretStr:
        identity = self._request(
            "GET",
            oidc_url,
            bearer=oidc_token.get_secret_value(),
            params={"audience": self.audience},
            what="identity token",
        )
        if not identity.get("value"):
            raise AuthenticationError("OIDC identity response did not contain a token")

        escaped = quote(package, safe="@")
        exchanged = self._request(
            "POST",
            f"{self.registry}/-/npm/v1/oidc/token/exchange/package/{escaped}",
            bearer=identity["value"],
            what=f"publish token for {package}",
        )
        if not exchanged.get("token"):
            raise AuthenticationError(f"Registry did not return a publish token for {package}")

        logger.info("Obtained short-lived publish token for %s", package)
        return SecretStr(exchanged["token"])

    def _request(self, method: str, url: str, *, bearer: str, what: str, **kwargs: Any) -> dict[str, Any]:
        try:
            resp = self.session.request(
                method,
                url,
                headers={"Authorization": f"Bearer {bearer}", "Accept": "application/json"},
                timeout=self.timeout,
                **kwargs,
            )
        except requests.RequestException as e:
            raise AuthenticationError(f"Failed to request {what}: {e}") from e

        if not 200 <= resp.status_code < 300:
            # Only the status is reported; response bodies are never echoed.
            raise AuthenticationError(f"Failed to request {what}: HTTP {resp.status_code}")

        try:
            body = resp.json()
        except ValueError as e:
            raise AuthenticationError(f"Failed to request {what}: response is not JSON") from e
        if not isinstance(body, dict):
            raise AuthenticationError(f"Failed to request {what}: unexpected response")
        return body
