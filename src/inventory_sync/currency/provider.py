"""Historical exchange-rate provider client.

Wraps the provider's ``/historical`` endpoint:

    GET {base_url}/historical?date=YYYY-MM-DD&base_currency=USD&currencies=EUR,GBP
    apikey: <key>

Response shape: ``{"data": {"<date>": {"<code>": <number>, ...}}}``. The
single nested date map is flattened into code -> Decimal.
"""

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, InvalidOperation

import aiohttp

from inventory_sync.config import ProviderSettings
from inventory_sync.exceptions import ProviderError
from inventory_sync.logging import get_logger

logger = get_logger(__name__)

HISTORICAL_ENDPOINT = "historical"


@dataclass
class HistoricalRates:
    """Rates for one date, expressed against the base currency."""

    day: str
    rates: dict[str, Decimal] = field(default_factory=dict)


def parse_historical_response(payload: object, day: date | None = None) -> HistoricalRates:
    """Extract the single date map from a provider payload.

    Raises ProviderError if the payload does not have the documented shape.
    An empty ``data`` object yields an empty rate map.
    """
    if not isinstance(payload, dict) or not isinstance(payload.get("data"), dict):
        raise ProviderError("Provider response has no 'data' object", day=day)

    data: dict = payload["data"]
    if not data:
        return HistoricalRates(day=day.isoformat() if day else "")

    if len(data) > 1:
        logger.warning("provider_multiple_dates", dates=sorted(data))

    response_day, values = next(iter(data.items()))
    if not isinstance(values, dict):
        raise ProviderError(f"Provider rates for {response_day} are not an object", day=day)

    rates: dict[str, Decimal] = {}
    for code, value in values.items():
        if isinstance(value, bool) or not isinstance(value, (int, float, str)):
            raise ProviderError(f"Non-numeric rate for {code}: {value!r}", day=day)
        try:
            rates[code] = Decimal(str(value))
        except InvalidOperation as e:
            raise ProviderError(f"Non-numeric rate for {code}: {value!r}", day=day) from e

    return HistoricalRates(day=response_day, rates=rates)


class CurrencyProviderClient:
    """Async client for the historical rates provider.

    Owns one aiohttp session for its lifetime; call connect() before use
    and close() on shutdown.

    Usage:
        client = CurrencyProviderClient(settings.provider)
        await client.connect()
        rates = await client.fetch_historical(date(2024, 3, 9), "USD", ["EUR"])
    """

    def __init__(
        self,
        settings: ProviderSettings,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self._settings = settings
        self._session = session
        self._owns_session = session is None

    async def connect(self) -> None:
        if self._session is None:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self._settings.timeout_seconds),
            )
            self._owns_session = True
        logger.info("currency_provider_ready", base_url=self._settings.base_url)

    async def close(self) -> None:
        if self._session is not None and self._owns_session:
            await self._session.close()
        self._session = None

    async def fetch_historical(
        self,
        day: date,
        base_currency: str,
        codes: Sequence[str],
    ) -> HistoricalRates:
        """Fetch the rates of ``codes`` against ``base_currency`` for one day.

        Raises ProviderError on network failure, timeout, non-success status
        or malformed payload.
        """
        if self._session is None:
            raise RuntimeError("Provider client not connected. Call connect() first.")

        url = f"{self._settings.base_url.rstrip('/')}/{HISTORICAL_ENDPOINT}"
        params = {
            "date": day.isoformat(),
            "base_currency": base_currency,
            "currencies": ",".join(codes),
        }
        headers = {
            "apikey": self._settings.api_key.get_secret_value(),
            "Accept": "application/json",
        }

        try:
            async with self._session.get(url, params=params, headers=headers) as resp:
                if resp.status != 200:
                    body = await resp.text()
                    raise ProviderError(
                        f"Provider returned HTTP {resp.status}: {body[:200]}", day=day
                    )
                payload = await resp.json(content_type=None)
        except ProviderError:
            raise
        except asyncio.TimeoutError as e:
            raise ProviderError("Provider request timed out", day=day) from e
        except aiohttp.ClientError as e:
            raise ProviderError(f"Provider request failed: {e}", day=day) from e
        except ValueError as e:
            raise ProviderError(f"Provider returned invalid JSON: {e}", day=day) from e

        rates = parse_historical_response(payload, day)
        logger.debug(
            "provider_rates_fetched",
            date=day.isoformat(),
            requested=len(codes),
            received=len(rates.rates),
        )
        return rates
