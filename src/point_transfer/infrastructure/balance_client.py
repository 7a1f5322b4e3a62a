"""HTTP client for the identity/balance service.

Endpoints consumed:
    GET  /users/{id}         -> {"success": true, "data": {"id", "email", "name", "points"}}
    PUT  /users/{id}/points  <- {"points": <new absolute balance>}

Transport errors, timeouts and 5xx answers raise
BalanceServiceUnavailableError; an unknown party raises PartyNotFoundError;
a refused balance write (a 4xx, or a 200 whose body says
"success": false) raises BalanceUpdateRejectedError. The timeout is a
property of the httpx client built by build_http_client, not of the protocol.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx

from point_transfer.domain.exceptions import (
    BalanceServiceUnavailableError,
    BalanceUpdateRejectedError,
    PartyNotFoundError,
)
from point_transfer.domain.protocols import Party
from point_transfer.logging_config import get_logger

if TYPE_CHECKING:
    from point_transfer.config import Settings

logger = get_logger(__name__)


def build_http_client(settings: Settings) -> httpx.AsyncClient:
    """Create the shared AsyncClient for the balance service."""
    return httpx.AsyncClient(
        base_url=settings.balance_service_url,
        timeout=settings.balance_service_timeout_seconds,
        headers={"Accept": "application/json"},
    )


class HttpBalanceClient:
    """Balance client over the identity service's REST API."""

    def __init__(self, http: httpx.AsyncClient) -> None:
        self._http = http

    async def get_party(self, party_id: str) -> Party:
        """Fetch a party and its current balance."""
        response = await self._request("GET", f"/users/{party_id}", party_id)

        if response.status_code == 404:
            raise PartyNotFoundError(party_id)
        if response.status_code != 200:
            raise BalanceServiceUnavailableError(
                f"GET /users/{party_id} returned {response.status_code}"
            )

        try:
            body = response.json()
            data = body["data"]
            if not body.get("success") or data is None:
                raise PartyNotFoundError(party_id)
            return Party(
                id=str(data["id"]),
                email=str(data["email"]),
                name=str(data.get("name", "")),
                balance=int(data["points"]),
            )
        except (ValueError, KeyError, TypeError) as exc:
            logger.warning("balance.malformed_response", party_id=party_id, error=str(exc))
            raise BalanceServiceUnavailableError(
                f"Malformed party payload for {party_id}: {exc}"
            ) from exc

    async def set_balance(self, party_id: str, new_balance: int) -> None:
        """Overwrite a party's balance with an absolute value."""
        response = await self._request(
            "PUT",
            f"/users/{party_id}/points",
            party_id,
            json={"points": new_balance},
        )

        if response.status_code == 404:
            raise PartyNotFoundError(party_id)
        if response.status_code >= 500:
            raise BalanceServiceUnavailableError(
                f"PUT /users/{party_id}/points returned {response.status_code}"
            )
        if response.status_code != 200:
            raise BalanceUpdateRejectedError(party_id, f"status {response.status_code}")

        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and body.get("success") is False:
            reason = body.get("message") or body.get("error") or "success=false"
            raise BalanceUpdateRejectedError(party_id, str(reason))

        logger.info("balance.updated", party_id=party_id, new_balance=new_balance)

    async def _request(
        self,
        method: str,
        url: str,
        party_id: str,
        json: dict | None = None,
    ) -> httpx.Response:
        try:
            return await self._http.request(method, url, json=json)
        except httpx.HTTPError as exc:
            logger.warning(
                "balance.unavailable",
                method=method,
                party_id=party_id,
                error=str(exc),
            )
            raise BalanceServiceUnavailableError(
                f"{method} {url} failed: {exc}"
            ) from exc
