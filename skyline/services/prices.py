"""USD price lookup for deposit assets, with a static fallback per asset."""

from decimal import Decimal, InvalidOperation
from typing import Literal

import httpx

from skyline.core.config import get_settings
from skyline.core.logging import get_logger

log = get_logger(__name__)

COINGECKO_IDS = {
    "BTC": "bitcoin",
    "ETH": "ethereum",
    "USDT": "tether",
}

PriceSource = Literal["live", "fallback"]


class UpstreamPriceUnavailable(Exception):
    """Live price could not be obtained; callers fall back to the static table."""


def fallback_price(symbol: str) -> Decimal:
    return get_settings().fallback_prices_usd.get(symbol, Decimal("1"))


async def fetch_live_price(symbol: str, client: httpx.AsyncClient | None = None) -> Decimal:
    """Query CoinGecko simple/price for one asset. Raises UpstreamPriceUnavailable."""
    coin_id = COINGECKO_IDS.get(symbol)
    if not coin_id:
        raise UpstreamPriceUnavailable(f"Unknown asset {symbol}")
    settings = get_settings()
    url = f"{settings.coingecko_base_url.rstrip('/')}/simple/price"
    params = {"ids": coin_id, "vs_currencies": "usd"}
    try:
        if client is None:
            async with httpx.AsyncClient(timeout=settings.price_timeout_seconds) as c:
                resp = await c.get(url, params=params)
        else:
            resp = await client.get(url, params=params, timeout=settings.price_timeout_seconds)
        resp.raise_for_status()
        data = resp.json()
    except (httpx.HTTPError, ValueError) as e:
        raise UpstreamPriceUnavailable(str(e)) from e
    raw = (data.get(coin_id) or {}).get("usd") if isinstance(data, dict) else None
    if raw is None:
        raise UpstreamPriceUnavailable(f"No price for {symbol}")
    try:
        price = Decimal(str(raw))
    except InvalidOperation as e:
        raise UpstreamPriceUnavailable(f"Bad price for {symbol}: {raw!r}") from e
    if not price.is_finite() or price <= 0:
        raise UpstreamPriceUnavailable(f"Bad price for {symbol}: {raw!r}")
    return price


async def get_asset_price_usd(
    symbol: str,
    client: httpx.AsyncClient | None = None,
) -> tuple[Decimal, PriceSource]:
    """Return (USD per unit, source). Never raises for upstream failures."""
    try:
        return await fetch_live_price(symbol, client=client), "live"
    except UpstreamPriceUnavailable as e:
        price = fallback_price(symbol)
        log.warning("price_fallback", symbol=symbol, reason=str(e), price=str(price))
        return price, "fallback"


async def get_all_prices(client: httpx.AsyncClient | None = None) -> dict[str, Decimal]:
    out = {}
    for symbol in COINGECKO_IDS:
        out[symbol], _ = await get_asset_price_usd(symbol, client=client)
    return out
