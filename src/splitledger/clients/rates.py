"""Frankfurter exchange rate API client."""

import logging
from datetime import date
from decimal import Decimal, InvalidOperation

import httpx

from ..exceptions import RateUnavailableError
from ..money import round_rate

logger = logging.getLogger(__name__)


class RateClient:
    """Client for the Frankfurter API (ECB reference rates)."""

    BASE_URL = "https://api.frankfurter.app"

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ):
        """Initialize the rate client."""
        self.client = httpx.Client(
            base_url=base_url or self.BASE_URL,
            headers={"Accept": "application/json"},
            timeout=timeout,
            transport=transport,
        )

    def close(self):
        """Close the HTTP client."""
        self.client.close()

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()

    def get_rate(self, on_date: date, from_currency: str, to_currency: str) -> Decimal:
        """
        Get the official rate for one unit of ``from_currency`` on a date.

        Args:
            on_date: Date of the expense
            from_currency: Expense currency code
            to_currency: Settlement currency code

        Returns:
            Units of ``to_currency`` per unit of ``from_currency``, 6 decimals

        Raises:
            RateUnavailableError: If the request fails or has no usable rate
        """
        from_code = from_currency.strip().upper()
        to_code = to_currency.strip().upper()

        try:
            response = self.client.get(
                f"/{on_date.isoformat()}",
                params={"from": from_code, "to": to_code},
            )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as e:
            raise RateUnavailableError(
                f"Rate lookup for {from_code} -> {to_code} on {on_date} failed: {e}"
            ) from e
        except ValueError as e:
            raise RateUnavailableError(
                f"Rate lookup for {from_code} -> {to_code} returned invalid JSON"
            ) from e

        rates = data.get("rates") if isinstance(data, dict) else None
        rate = rates.get(to_code) if isinstance(rates, dict) else None
        if isinstance(rate, bool) or not isinstance(rate, (int, float, str)):
            raise RateUnavailableError(f"No {to_code} rate found for {from_code}")

        try:
            value = Decimal(str(rate))
        except InvalidOperation as e:
            raise RateUnavailableError(f"Unusable {to_code} rate: {rate!r}") from e

        if not value.is_finite() or value <= 0:
            raise RateUnavailableError(f"Unusable {to_code} rate: {rate!r}")

        logger.debug(f"Rate {from_code} -> {to_code} on {on_date}: {value}")
        return round_rate(value)
