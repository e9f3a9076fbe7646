"""Promethean attribution client for the metrics and dial-linking API."""

import asyncio
import logging
import random

import httpx

from promethean.attribution.schema import (
    ClaimResult,
    ConversionContact,
    ConversionRecord,
    DateRange,
    MetricsFilters,
    MetricsReport,
    SessionLinkingPolicy,
)

_TRANSIENT_STATUS_CODES = {429, 500, 502, 503, 504}


class Client:
    """
    Async client for the Promethean attribution server.

    Usage:
        from promethean.attribution import Client, ConversionContact, ConversionRecord

        async with Client(
            endpoint="https://api.example.com/attribution",
            api_key="your-api-key"
        ) as client:
            report = await client.compute_metrics(
                account_id="acct-1",
                policy=SessionLinkingPolicy(attribution_mode="last-touch"),
            )

            result = await client.link_conversion(
                account_id="acct-1",
                conversion=ConversionRecord(id="appt-9", kind="appointment"),
                contact=ConversionContact(phone="+15550100"),
            )
    """

    def __init__(
        self,
        endpoint: str,
        api_key: str,
        timeout: float = 30.0,
        fail_silently: bool = True,
        max_retries: int = 3,
        logger: logging.Logger | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            endpoint: Base URL for the attribution API.
            api_key: API key for authentication.
            timeout: Request timeout in seconds.
            fail_silently: If True, catch errors and log warnings instead of raising.
            max_retries: Number of retries for transient HTTP errors.
            logger: Logger instance; defaults to ``logging.getLogger("promethean.attribution")``.
        """
        self.endpoint = endpoint.rstrip("/")
        self.api_key = api_key
        self.fail_silently = fail_silently
        self.max_retries = max_retries
        self.logger = logger or logging.getLogger("promethean.attribution")
        self.client = httpx.AsyncClient(
            timeout=timeout,
            headers={"X-API-Key": api_key},
        )

    async def _request(
        self,
        method: str,
        url: str,
        json: dict | None = None,
    ) -> httpx.Response | None:
        """Send an HTTP request with retry and optional silent failure.

        Retries on transient status codes (429, 500, 502, 503, 504) and
        connection/timeout errors using exponential backoff with jitter.

        Returns:
            The HTTP response, or None if ``fail_silently`` is True and the
            request failed after all retries.
        """
        last_exc: Exception | None = None

        for attempt in range(self.max_retries + 1):
            try:
                response = await self.client.request(method, url, json=json)
                if response.status_code in _TRANSIENT_STATUS_CODES and attempt < self.max_retries:
                    wait = (2**attempt) + random.uniform(0, 1)  # noqa: S311
                    self.logger.warning(
                        "Attribution API answered %s on %s (attempt %d/%d), retrying in %.1fs",
                        response.status_code,
                        url,
                        attempt + 1,
                        self.max_retries + 1,
                        wait,
                    )
                    await asyncio.sleep(wait)
                    continue
                response.raise_for_status()
                return response
            except httpx.HTTPStatusError as exc:
                last_exc = exc
                break
            except (httpx.ConnectError, httpx.TimeoutException) as exc:
                last_exc = exc
                if attempt < self.max_retries:
                    wait = (2**attempt) + random.uniform(0, 1)  # noqa: S311
                    self.logger.warning(
                        "%s reaching attribution API on %s (attempt %d/%d), retrying in %.1fs",
                        type(exc).__name__,
                        url,
                        attempt + 1,
                        self.max_retries + 1,
                        wait,
                    )
                    await asyncio.sleep(wait)
                    continue
                break

        if self.fail_silently:
            self.logger.warning("Attribution API call %s %s gave up: %s", method, url, last_exc)
            return None
        raise last_exc  # type: ignore[misc]

    async def compute_metrics(
        self,
        account_id: str,
        date_range: DateRange | None = None,
        policy: SessionLinkingPolicy | None = None,
        filters: MetricsFilters | None = None,
    ) -> MetricsReport | None:
        """Compute setter, rep and pair metrics for an account.

        Args:
            account_id: Account to report on.
            date_range: Optional reporting range.
            policy: Optional linking policy; the server default applies otherwise.
            filters: Optional rep and setter allow-lists.

        Returns:
            The metrics report, or None on silent failure.
        """
        date_range = date_range or DateRange()
        filters = filters or MetricsFilters()
        response = await self._request(
            "POST",
            f"{self.endpoint}/metrics",
            json={
                "account_id": account_id,
                "start": date_range.start.isoformat() if date_range.start else None,
                "end": date_range.end.isoformat() if date_range.end else None,
                "policy": policy.model_dump() if policy else None,
                "rep_ids": filters.rep_ids,
                "setter_ids": filters.setter_ids,
            },
        )
        if response is None:
            return None
        return MetricsReport.model_validate(response.json())

    async def link_conversion(
        self,
        account_id: str,
        conversion: ConversionRecord,
        contact: ConversionContact,
        webhook_id: str | None = None,
    ) -> ClaimResult | None:
        """Link a newly created appointment or discovery to its dial.

        Args:
            account_id: Account the conversion belongs to.
            conversion: The persisted appointment or discovery.
            contact: Email and/or phone of the contact.
            webhook_id: Delivery id used for replay protection.

        Returns:
            The claim outcome, or None on silent failure or a replayed delivery.
        """
        response = await self._request(
            "POST",
            f"{self.endpoint}/conversions/link",
            json={
                "account_id": account_id,
                "conversion_id": conversion.id,
                "kind": conversion.kind,
                "setter_id": conversion.setter_id,
                "email": contact.email,
                "phone": contact.phone,
                "webhook_id": webhook_id,
            },
        )
        if response is None:
            return None
        body = response.json()
        if body.get("status") == "duplicate":
            self.logger.info("Conversion %s already linked (replayed delivery)", conversion.id)
            return None
        return ClaimResult.model_validate(body)

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()

    async def __aenter__(self) -> "Client":
        """Context manager entry."""
        return self

    async def __aexit__(self, *args: object) -> None:
        """Context manager exit."""
        await self.close()
