"""
Brokerage credentials and the resolvers that look them up per caller.

Handles:
- Validation of pasted key values (catches ``KEY=value`` copy-paste slips)
- Paper/live endpoint selection
- Caller -> credentials lookup (environment or static mapping)
"""

from __future__ import annotations

import logging
import os
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

from marketgate.gateways.protocol import MalformedCredentialsError


logger = logging.getLogger(__name__)


_DISALLOWED = re.compile(r"[=\s\"'`]")


def _clean_key(name: str, value: str) -> str:
    cleaned = (value or "").strip()
    if not cleaned:
        raise MalformedCredentialsError(f"Alpaca {name} is empty")
    if _DISALLOWED.search(cleaned):
        raise MalformedCredentialsError(f"Alpaca {name} contains invalid characters")
    return cleaned


@dataclass(frozen=True)
class AlpacaCredentials:
    """
    Alpaca API credentials.

    Surrounding whitespace is trimmed; values containing ``=``, quotes or
    inner whitespace are rejected as malformed.

    Example:
        creds = AlpacaCredentials(api_key="PKXXXXXXXX", secret_key="XXXXXXXX")
        creds = AlpacaCredentials.from_env()
    """

    api_key: str
    secret_key: str
    paper: bool = True

    def __post_init__(self) -> None:
        object.__setattr__(self, "api_key", _clean_key("API key", self.api_key))
        object.__setattr__(self, "secret_key", _clean_key("secret key", self.secret_key))

    @classmethod
    def from_env(cls) -> AlpacaCredentials | None:
        """
        Load credentials from ALPACA_API_KEY / ALPACA_SECRET_KEY.

        Returns:
            Credentials, or None when either variable is unset
        """
        api_key = os.environ.get("ALPACA_API_KEY", "")
        secret_key = os.environ.get("ALPACA_SECRET_KEY", "")
        if not api_key or not secret_key:
            return None
        paper = os.environ.get("ALPACA_PAPER", "true").strip().lower() != "false"
        return cls(api_key=api_key, secret_key=secret_key, paper=paper)

    def is_paper_key(self) -> bool:
        """Check if this is a paper trading API key (starts with PK)."""
        return self.api_key.startswith("PK")

    @property
    def headers(self) -> dict[str, str]:
        """Authentication headers for every Alpaca endpoint."""
        return {
            "APCA-API-KEY-ID": self.api_key,
            "APCA-API-SECRET-KEY": self.secret_key,
        }

    def __repr__(self) -> str:
        return f"AlpacaCredentials(api_key={self.api_key[:4]}..., paper={self.paper})"


@dataclass
class AlpacaConfig:
    """
    Alpaca client configuration.

    Attributes:
        credentials: API credentials (required)
        data_feed: Market data feed - "iex" (free) or "sip" (paid)
        options_feed: Options feed - "indicative" (free) or "opra" (paid)
        timeout: Per-request timeout (seconds)
        options_max_pages: Upper bound on chain pages per request
    """

    credentials: AlpacaCredentials
    data_feed: str = "iex"
    options_feed: str = "indicative"
    timeout: float = 10.0
    options_max_pages: int = 5
    extra_headers: dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Validate configuration."""
        if self.data_feed not in ("iex", "sip"):
            raise ValueError(f"Invalid data_feed: {self.data_feed}. Must be 'iex' or 'sip'")
        if self.options_feed not in ("indicative", "opra"):
            raise ValueError(f"Invalid options_feed: {self.options_feed}")
        if self.timeout <= 0:
            raise ValueError("timeout must be positive")

    @property
    def paper(self) -> bool:
        return self.credentials.paper

    @property
    def base_url(self) -> str:
        """Get the appropriate trading API base URL."""
        if self.paper:
            return "https://paper-api.alpaca.markets"
        return "https://api.alpaca.markets"

    @property
    def data_url(self) -> str:
        """Get the market data API URL."""
        return "https://data.alpaca.markets"


# =============================================================================
# Resolvers
# =============================================================================


@runtime_checkable
class CredentialResolver(Protocol):
    """Looks up brokerage credentials for a caller (None if not connected)."""

    async def resolve(self, caller: str | None) -> AlpacaCredentials | None: ...


class EnvCredentialResolver:
    """Single-tenant resolver: every caller shares the process environment keys."""

    def __init__(self) -> None:
        self._cached: AlpacaCredentials | None = None
        self._loaded = False

    async def resolve(self, caller: str | None) -> AlpacaCredentials | None:
        if not self._loaded:
            self._cached = AlpacaCredentials.from_env()
            self._loaded = True
            if self._cached is None:
                logger.info("No Alpaca credentials in environment; quotes will be delayed")
        return self._cached


class StaticCredentialResolver:
    """
    Resolver over a fixed caller -> credentials mapping.

    ``default`` answers callers missing from the mapping (and anonymous ones).
    """

    def __init__(
        self,
        credentials: Mapping[str, AlpacaCredentials] | None = None,
        default: AlpacaCredentials | None = None,
    ) -> None:
        self._credentials = dict(credentials or {})
        self._default = default

    async def resolve(self, caller: str | None) -> AlpacaCredentials | None:
        if caller is not None and caller in self._credentials:
            return self._credentials[caller]
        return self._default

    def set(self, caller: str, credentials: AlpacaCredentials | None) -> None:
        if credentials is None:
            self._credentials.pop(caller, None)
        else:
            self._credentials[caller] = credentials
