from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable

import requests
from requests import Response
from requests.adapters import HTTPAdapter
from urllib3.util import Retry

from domain.base_types import CoinId
from domain.errors import NetworkError
from domain.pricing import CoinCatalogEntry

logger = logging.getLogger(__name__)


# API docs: https://docs.coingecko.com/v3.0.1/reference/introduction
class CoinGeckoAPIError(NetworkError):
    pass


@dataclass(frozen=True)
class SimplePrice:
    coin_id: CoinId
    price: Decimal
    change_24h_pct: Decimal


class CoinGeckoClient:
    """Minimal CoinGecko v3 client covering the two public endpoints the tracker needs."""

    def __init__(
        self,
        *,
        base_url: str = "https://api.coingecko.com/api/v3",
        timeout: float = 10.0,
        session: requests.Session | None = None,
        retry_attempts: int = 3,
        retry_backoff_seconds: float = 1,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session or requests.Session()

        retry = Retry(
            total=retry_attempts,
            backoff_factor=retry_backoff_seconds,
            status_forcelist={429},
            allowed_methods={"GET"},
            raise_on_status=False,
        )
        adapter = HTTPAdapter(max_retries=retry)
        self._session.mount("https://", adapter)
        self._session.mount("http://", adapter)

    def get_simple_prices(
        self,
        coin_ids: Iterable[str],
        *,
        vs_currency: str,
        include_24h_change: bool = True,
    ) -> dict[CoinId, SimplePrice]:
        """Batched price lookup; one request regardless of how many ids are asked for.

        Ids the API does not know are simply absent from the result. Missing
        numeric fields for a known id default to 0.
        """
        ids = sorted(set(coin_ids))
        if not ids:
            msg = "coin_ids must contain at least one id"
            raise ValueError(msg)
        if not vs_currency:
            msg = "vs_currency must be provided"
            raise ValueError(msg)

        currency = vs_currency.lower()
        params = {
            "ids": ",".join(ids),
            "vs_currencies": currency,
            "include_24hr_change": "true" if include_24h_change else "false",
        }
        payload = self._request("GET", "/simple/price", params=params)
        if not isinstance(payload, dict):
            raise CoinGeckoAPIError("CoinGecko returned unexpected payload type", payload=payload)

        prices: dict[CoinId, SimplePrice] = {}
        for coin_id_raw, entry in payload.items():
            if not isinstance(entry, dict):
                raise CoinGeckoAPIError("CoinGecko price entry is not an object", payload=payload)
            coin_id = CoinId(str(coin_id_raw))
            prices[coin_id] = SimplePrice(
                coin_id=coin_id,
                price=self._to_decimal(entry.get(currency), payload=entry),
                change_24h_pct=self._to_decimal(entry.get(f"{currency}_24h_change"), payload=entry),
            )
        return prices

    def get_markets(
        self,
        *,
        vs_currency: str,
        per_page: int = 100,
        page: int = 1,
    ) -> list[CoinCatalogEntry]:
        if per_page <= 0:
            msg = "per_page must be > 0"
            raise ValueError(msg)
        if page <= 0:
            msg = "page must be > 0"
            raise ValueError(msg)

        params = {
            "vs_currency": vs_currency.lower(),
            "order": "market_cap_desc",
            "per_page": per_page,
            "page": page,
            "sparkline": "false",
        }
        payload = self._request("GET", "/coins/markets", params=params)
        if not isinstance(payload, list):
            raise CoinGeckoAPIError("CoinGecko returned unexpected payload type", payload=payload)

        coins: list[CoinCatalogEntry] = []
        for entry in payload:
            if not isinstance(entry, dict) or not entry.get("id") or not entry.get("symbol"):
                raise CoinGeckoAPIError("CoinGecko market entry missing id or symbol", payload=entry)
            coins.append(
                CoinCatalogEntry(
                    coin_id=CoinId(str(entry["id"])),
                    symbol=str(entry["symbol"]).upper(),
                    name=str(entry.get("name") or entry["id"]),
                    image=str(entry.get("image") or ""),
                )
            )
        return coins

    def _request(self, method: str, path: str, *, params: dict[str, Any] | None = None) -> Any:
        url = f"{self.base_url}{path}"
        try:
            response = self._session.request(method, url, params=params, timeout=self.timeout)
            response.raise_for_status()
        except requests.HTTPError as exc:
            resp = exc.response
            message, payload_err = self._extract_error(resp)
            status_code = getattr(resp, "status_code", None)
            raise CoinGeckoAPIError(message, status_code=status_code, payload=payload_err) from exc
        except requests.RequestException as exc:
            status_code = getattr(getattr(exc, "response", None), "status_code", None)
            raise CoinGeckoAPIError("CoinGecko request failed", status_code=status_code) from exc

        try:
            payload = response.json()
        except ValueError as exc:
            raise CoinGeckoAPIError("CoinGecko returned invalid JSON", payload=response.text) from exc

        if isinstance(payload, dict):
            message = self._error_message(payload)
            if message is not None:
                raise CoinGeckoAPIError(message, status_code=response.status_code, payload=payload)

        logger.debug("CoinGecko %s %s ok", method, path)
        return payload

    @staticmethod
    def _error_message(payload: dict[str, Any]) -> str | None:
        error = payload.get("error")
        if isinstance(error, str) and error:
            return error
        status = payload.get("status")
        if isinstance(status, dict) and status.get("error_message"):
            return str(status["error_message"])
        return None

    @classmethod
    def _extract_error(cls, response: Response | None) -> tuple[str, Any]:
        message = "CoinGecko request failed"
        if response is None:
            return message, None
        try:
            payload = response.json()
            if isinstance(payload, dict):
                extracted = cls._error_message(payload)
                if extracted:
                    message = extracted
        except ValueError:
            payload = response.text
        return message, payload

    @staticmethod
    def _to_decimal(value: Any, *, payload: Any) -> Decimal:
        if value is None:
            return Decimal(0)
        try:
            return Decimal(str(value))
        except InvalidOperation as exc:
            raise CoinGeckoAPIError("CoinGecko returned a non-numeric field", payload=payload) from exc


__all__ = ["CoinGeckoAPIError", "CoinGeckoClient", "SimplePrice"]
