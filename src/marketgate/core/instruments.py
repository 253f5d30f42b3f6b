"""
Instrument Classifier.

Decides whether a ticker names an equity or a crypto pair and converts
crypto tickers to the canonical ``ROOT/USD`` form the data provider expects.

Pure functions, no I/O; unknown tickers are treated as equities.
"""

from __future__ import annotations

from collections.abc import Iterable
from enum import Enum


class AssetType(str, Enum):
    """Asset class of a ticker."""

    STOCK = "stock"
    CRYPTO = "crypto"


# Roots tradeable as <ROOT>/USD on the primary provider
CRYPTO_ROOTS: frozenset[str] = frozenset(
    {
        "AAVE",
        "ADA",
        "AVAX",
        "BAT",
        "BCH",
        "BTC",
        "CRV",
        "DOGE",
        "DOT",
        "ETH",
        "GRT",
        "LINK",
        "LTC",
        "MATIC",
        "MKR",
        "PEPE",
        "SHIB",
        "SOL",
        "SUSHI",
        "UNI",
        "USDC",
        "USDT",
        "XRP",
        "XTZ",
        "YFI",
    }
)

QUOTE_CURRENCIES: tuple[str, ...] = ("USDT", "USDC", "USD")
DEFAULT_QUOTE_CURRENCY = "USD"


def _clean(symbol: str) -> str:
    return symbol.strip().upper()


def _crypto_root(symbol: str) -> str | None:
    """Return the crypto root of ``symbol`` or None when it is not crypto."""
    cleaned = _clean(symbol)
    if not cleaned:
        return None

    if "/" in cleaned:
        # Any pair is crypto, even one with an empty root
        return cleaned.split("/", 1)[0]

    if "-" in cleaned:
        root, _, quote = cleaned.partition("-")
        if root in CRYPTO_ROOTS and quote in QUOTE_CURRENCIES:
            return root
        return None

    if cleaned in CRYPTO_ROOTS:
        return cleaned

    for quote in QUOTE_CURRENCIES:
        if cleaned.endswith(quote):
            root = cleaned[: -len(quote)]
            if root in CRYPTO_ROOTS:
                return root
    return None


def classify(symbol: str) -> AssetType:
    """
    Classify a ticker.

    A symbol is crypto if it contains a ``/`` or its root (after stripping
    an optional USD/USDT/USDC quote suffix) is a known crypto root.

    Args:
        symbol: Raw ticker as typed by a user (any case)

    Returns:
        AssetType.CRYPTO or AssetType.STOCK
    """
    return AssetType.CRYPTO if _crypto_root(symbol) is not None else AssetType.STOCK


def is_crypto(symbol: str) -> bool:
    """Shorthand for ``classify(symbol) is AssetType.CRYPTO``."""
    return classify(symbol) is AssetType.CRYPTO


def normalize(symbol: str) -> str:
    """
    Canonical provider form of a ticker.

    Crypto symbols become ``ROOT/QUOTE`` (``btc`` -> ``BTC/USD``,
    ``ETHUSD`` -> ``ETH/USD``); an explicit pair keeps its quote currency.
    Equities are only uppercased and stripped.

    Classification is preserved: ``classify(normalize(s)) == classify(s)``.
    """
    cleaned = _clean(symbol)
    root = _crypto_root(cleaned)
    if root is None:
        return cleaned
    if "/" in cleaned:
        return cleaned
    return f"{root}/{DEFAULT_QUOTE_CURRENCY}"


def split_by_asset_type(symbols: Iterable[str]) -> tuple[list[str], list[str]]:
    """
    Partition tickers into (stocks, crypto), normalized and de-duplicated.

    Order of first appearance is kept within each group.
    """
    stocks: list[str] = []
    crypto: list[str] = []
    seen: set[str] = set()
    for raw in symbols:
        canonical = normalize(raw)
        if not canonical or canonical in seen:
            continue
        seen.add(canonical)
        if classify(canonical) is AssetType.CRYPTO:
            crypto.append(canonical)
        else:
            stocks.append(canonical)
    return stocks, crypto


def to_yahoo_symbol(symbol: str) -> str:
    """Ticker in Yahoo Finance form (``BTC/USD`` -> ``BTC-USD``)."""
    canonical = normalize(symbol)
    if classify(canonical) is AssetType.CRYPTO:
        return canonical.replace("/", "-")
    return canonical.replace("/", "-").replace(".", "-")
