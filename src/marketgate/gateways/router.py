"""
Request Router: cache, throttle and provider policy per operation kind.

Pipeline for one operation:
1. Build the typed query; serve a fresh cache entry if one exists
2. Resolve the caller's credentials; without them, quotes come from the
   delayed fallback provider (degrading like step 4 when it fails) and
   everything else fails
3. Throttle (quotes and bars only), call the primary provider, cache
4. Transient failures of read operations degrade to stale cache data,
   then (quotes only) to the fallback provider, then to an empty payload

Trading operations are never cached or degraded; a successful one
invalidates the caller's account-level cache entries.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Any

from marketgate.config import GatewayConfig
from marketgate.core.clock import Clock, LiveClock
from marketgate.core.options.models import ApproxContract, ContractSnapshot, ResolvedContract
from marketgate.core.options.resolver import ContractResolver
from marketgate.data.cache import ResponseCache
from marketgate.gateways.credentials import (
    AlpacaConfig,
    AlpacaCredentials,
    CredentialResolver,
    EnvCredentialResolver,
)
from marketgate.gateways.fetcher import BaseQuery, GatewayFetcher
from marketgate.gateways.fetchers import (
    AlpacaAccountFetcher,
    AlpacaActivityFetcher,
    AlpacaBarFetcher,
    AlpacaCancelOrderFetcher,
    AlpacaOptionsChainFetcher,
    AlpacaOrderHistoryFetcher,
    AlpacaPositionFetcher,
    AlpacaQuoteFetcher,
    AlpacaSubmitOptionsOrderFetcher,
    AlpacaSubmitOrderFetcher,
    YahooQuoteFetcher,
)
from marketgate.gateways.protocol import (
    ConnectionError,
    CredentialsRequiredError,
    GatewayError,
    GatewayResponse,
    Provenance,
    RateLimitError,
    UpstreamError,
)
from marketgate.gateways.providers.alpaca import AlpacaProvider
from marketgate.gateways.providers.yahoo import YahooProvider
from marketgate.gateways.throttle import RateThrottle


logger = logging.getLogger(__name__)


DEGRADED_NOTE = "Live data temporarily unavailable; showing last known data."
UNAVAILABLE_NOTE = "Live data temporarily unavailable; please try again shortly."
DELAYED_NOTE = "Delayed quotes from the free fallback provider."


class OperationKind(str, Enum):
    """Every operation the gateway serves."""

    QUOTES = "quotes"
    BARS = "bars"
    ACCOUNT = "account"
    POSITIONS = "positions"
    ACTIVITIES = "activities"
    ORDERS = "orders"
    SUBMIT_ORDER = "submit_order"
    CANCEL_ORDER = "cancel_order"
    OPTIONS_CHAIN = "options_chain"
    SUBMIT_OPTIONS_ORDER = "submit_options_order"


@dataclass(frozen=True)
class OperationPolicy:
    """
    How the router treats one operation kind.

    Attributes:
        fetcher: Primary-provider fetcher
        cacheable: Responses are cached and served from cache
        throttled: Primary calls wait for a throttle slot
        degradable: Transient failures fall back to stale data / empty payload
        market_data: 5xx upstream errors degrade like transient failures
        account_scoped: Cache key is namespaced by caller
        empty: Factory for the degraded empty payload
        fallback: Fetcher for the uncredentialed provider, if any
        invalidates: Kinds whose caller-scoped entries are dropped on success
    """

    fetcher: GatewayFetcher[Any, Any]
    cacheable: bool = False
    throttled: bool = False
    degradable: bool = False
    market_data: bool = False
    account_scoped: bool = False
    empty: Callable[[], Any] | None = None
    fallback: GatewayFetcher[Any, Any] | None = None
    invalidates: tuple[OperationKind, ...] = ()

    @property
    def is_trading(self) -> bool:
        return not self.cacheable and not self.degradable


_ACCOUNT_STATE = (
    OperationKind.ACCOUNT,
    OperationKind.POSITIONS,
    OperationKind.ORDERS,
    OperationKind.ACTIVITIES,
)


def default_policies() -> dict[OperationKind, OperationPolicy]:
    """Policy table for every OperationKind."""
    return {
        OperationKind.QUOTES: OperationPolicy(
            AlpacaQuoteFetcher(),
            cacheable=True,
            throttled=True,
            degradable=True,
            market_data=True,
            empty=dict,
            fallback=YahooQuoteFetcher(),
        ),
        OperationKind.BARS: OperationPolicy(
            AlpacaBarFetcher(),
            cacheable=True,
            throttled=True,
            degradable=True,
            market_data=True,
            empty=list,
        ),
        OperationKind.ACCOUNT: OperationPolicy(
            AlpacaAccountFetcher(),
            cacheable=True,
            degradable=True,
            account_scoped=True,
            empty=lambda: None,
        ),
        OperationKind.POSITIONS: OperationPolicy(
            AlpacaPositionFetcher(),
            cacheable=True,
            degradable=True,
            account_scoped=True,
            empty=list,
        ),
        OperationKind.ACTIVITIES: OperationPolicy(
            AlpacaActivityFetcher(),
            cacheable=True,
            degradable=True,
            account_scoped=True,
            empty=list,
        ),
        OperationKind.ORDERS: OperationPolicy(
            AlpacaOrderHistoryFetcher(),
            cacheable=True,
            degradable=True,
            account_scoped=True,
            empty=list,
        ),
        OperationKind.SUBMIT_ORDER: OperationPolicy(
            AlpacaSubmitOrderFetcher(),
            invalidates=_ACCOUNT_STATE,
        ),
        OperationKind.CANCEL_ORDER: OperationPolicy(
            AlpacaCancelOrderFetcher(),
            invalidates=_ACCOUNT_STATE,
        ),
        OperationKind.OPTIONS_CHAIN: OperationPolicy(
            AlpacaOptionsChainFetcher(),
            cacheable=True,
            degradable=True,
            market_data=True,
            empty=dict,
        ),
        OperationKind.SUBMIT_OPTIONS_ORDER: OperationPolicy(
            AlpacaSubmitOptionsOrderFetcher(),
            invalidates=_ACCOUNT_STATE,
        ),
    }


def _caller_scope(caller: str | None) -> str:
    return f"caller:{caller or 'default'}"


class RequestRouter:
    """
    Dispatches operations to providers under cache and throttle policy.

    Example:
        router = RequestRouter(
            cache=ResponseCache(),
            throttle=RateThrottle(),
            credentials=EnvCredentialResolver(),
        )
        response = await router.handle(OperationKind.QUOTES, {"symbols": ["AAPL"]})
        response.provenance   # Provenance.LIVE / CACHED / STALE / DELAYED
    """

    def __init__(
        self,
        cache: ResponseCache,
        throttle: RateThrottle,
        credentials: CredentialResolver,
        fallback: YahooProvider | None = None,
        primary_factory: Callable[[AlpacaCredentials], AlpacaProvider] | None = None,
        policies: Mapping[OperationKind, OperationPolicy] | None = None,
        config: GatewayConfig | None = None,
        clock: Clock | None = None,
    ) -> None:
        """
        Initialize router.

        Args:
            cache: Response cache shared by all callers
            throttle: Primary-provider throttle shared by all callers
            credentials: Caller -> credentials lookup
            fallback: Delayed quote provider (default: YahooProvider)
            primary_factory: Builds an Alpaca client for a credential set
            policies: Policy table (default: default_policies())
            config: Gateway configuration for default collaborators
            clock: Time source for contract resolution dates

        Raises:
            ValueError: If the policy table does not cover every OperationKind
        """
        self._config = config or GatewayConfig()
        self._cache = cache
        self._throttle = throttle
        self._credentials = credentials
        self._fallback = fallback or YahooProvider(
            base_url=self._config.yahoo_base_url,
            timeout=self._config.request_timeout,
        )
        self._primary_factory = primary_factory or self._default_primary
        self._primaries: dict[tuple[str, bool], AlpacaProvider] = {}
        self._clock = clock or LiveClock()
        self._resolver = ContractResolver()

        self._policies = dict(policies if policies is not None else default_policies())
        missing = [kind.value for kind in OperationKind if kind not in self._policies]
        if missing:
            raise ValueError(f"No routing policy for operations: {', '.join(missing)}")

    @classmethod
    def from_config(
        cls,
        config: GatewayConfig,
        credentials: CredentialResolver | None = None,
        clock: Clock | None = None,
    ) -> RequestRouter:
        """Build a router and its collaborators from configuration."""
        clock = clock or LiveClock()
        return cls(
            cache=ResponseCache(
                fresh_ttl=config.fresh_ttl,
                stale_ttl=config.stale_ttl,
                max_entries=config.cache_max_entries,
                clock=clock,
            ),
            throttle=RateThrottle(min_interval=config.min_call_interval, clock=clock),
            credentials=credentials or EnvCredentialResolver(),
            config=config,
            clock=clock,
        )

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def cache(self) -> ResponseCache:
        return self._cache

    @property
    def throttle(self) -> RateThrottle:
        return self._throttle

    def policy(self, operation: OperationKind) -> OperationPolicy:
        return self._policies[operation]

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def _default_primary(self, credentials: AlpacaCredentials) -> AlpacaProvider:
        return AlpacaProvider(
            AlpacaConfig(
                credentials=credentials,
                data_feed=self._config.data_feed,
                options_feed=self._config.options_feed,
                timeout=self._config.request_timeout,
                options_max_pages=self._config.options_max_pages,
            )
        )

    def _primary(self, credentials: AlpacaCredentials) -> AlpacaProvider:
        key = (credentials.api_key, credentials.paper)
        provider = self._primaries.get(key)
        if provider is None:
            provider = self._primary_factory(credentials)
            self._primaries[key] = provider
        return provider

    async def close(self) -> None:
        """Close every provider client."""
        for provider in self._primaries.values():
            await provider.close()
        self._primaries.clear()
        await self._fallback.close()

    # =========================================================================
    # Routing
    # =========================================================================

    def cache_key(self, operation: OperationKind, query: BaseQuery, caller: str | None = None) -> str:
        key = query.cache_key()
        if self._policies[operation].account_scoped:
            return f"{_caller_scope(caller)}:{key}"
        return key

    async def handle(
        self,
        operation: OperationKind | str,
        params: Mapping[str, Any] | None = None,
        caller: str | None = None,
    ) -> GatewayResponse:
        """
        Serve one operation.

        Args:
            operation: Operation kind (or its string value)
            params: Operation parameters
            caller: Caller identity for credential lookup and account scoping

        Returns:
            GatewayResponse tagged with its provenance

        Raises:
            CredentialsRequiredError: Non-quote operation without credentials
            MalformedCredentialsError: Stored credentials are unusable
            UpstreamError: Non-degradable provider failure (status and body kept)
            RateLimitError, ConnectionError: Trading operations only
            InvalidRequestError: Bad parameters
        """
        kind = OperationKind(operation)
        policy = self._policies[kind]
        query = policy.fetcher.transform_query(dict(params or {}))
        key = self.cache_key(kind, query, caller) if policy.cacheable else None

        if key is not None:
            hit = self._cache.get(key, type=policy.fetcher.response_type)
            if hit is not None:
                return GatewayResponse(operation=kind.value, data=hit, provenance=Provenance.CACHED)

        credentials = await self._credentials.resolve(caller)
        if credentials is None:
            if policy.fallback is not None:
                return await self._serve_uncredentialed(kind, policy.fallback, policy, query, key)
            raise CredentialsRequiredError(f"Alpaca credentials are required for {kind.value}")

        client = self._primary(credentials)
        try:
            if policy.throttled:
                await self._throttle.acquire()
            data = await policy.fetcher.fetch_with_query(query, client=client)
        except (RateLimitError, ConnectionError) as e:
            if not policy.degradable:
                raise
            return await self._degrade(kind, policy, query, key, e)
        except UpstreamError as e:
            if policy.degradable and policy.market_data and e.is_server_error:
                return await self._degrade(kind, policy, query, key, e)
            raise

        if key is not None:
            self._cache.put(key, data)
        if policy.invalidates:
            self._invalidate(policy.invalidates, caller)
        return GatewayResponse(operation=kind.value, data=data, provenance=Provenance.LIVE)

    async def _serve_fallback(
        self,
        kind: OperationKind,
        fallback: GatewayFetcher[Any, Any],
        query: BaseQuery,
        key: str | None,
        degraded: bool,
    ) -> GatewayResponse:
        delayed_key = f"delayed:{key}" if key is not None else None
        if delayed_key is not None and not degraded:
            hit = self._cache.get(delayed_key, type=fallback.response_type)
            if hit is not None:
                return GatewayResponse(
                    operation=kind.value,
                    data=hit,
                    provenance=Provenance.CACHED,
                    note=DELAYED_NOTE,
                )

        data = await fallback.fetch_with_query(query, client=self._fallback)
        if delayed_key is not None:
            self._cache.put(delayed_key, data)
        logger.info("Served %s from fallback provider", kind.value)
        return GatewayResponse(
            operation=kind.value,
            data=data,
            provenance=Provenance.DELAYED,
            note=DELAYED_NOTE,
        )

    async def _serve_uncredentialed(
        self,
        kind: OperationKind,
        fallback: GatewayFetcher[Any, Any],
        policy: OperationPolicy,
        query: BaseQuery,
        key: str | None,
    ) -> GatewayResponse:
        """Fallback provider only; its transient failures degrade like the primary's."""
        try:
            return await self._serve_fallback(kind, fallback, query, key, degraded=False)
        except (RateLimitError, ConnectionError) as e:
            error: GatewayError = e
        except UpstreamError as e:
            if not e.is_server_error:
                raise
            error = e

        logger.warning("%s fallback failed without credentials: %s", kind.value, error)
        if key is not None:
            stale = self._cache.get_stale(f"delayed:{key}", type=fallback.response_type)
            if stale is not None:
                return GatewayResponse(
                    operation=kind.value,
                    data=stale,
                    provenance=Provenance.STALE,
                    note=DEGRADED_NOTE,
                )
        return self._unavailable(kind, policy)

    async def _degrade(
        self,
        kind: OperationKind,
        policy: OperationPolicy,
        query: BaseQuery,
        key: str | None,
        error: GatewayError,
    ) -> GatewayResponse:
        logger.warning("%s degraded after provider failure: %s", kind.value, error)

        if key is not None:
            stale = self._cache.get_stale(key, type=policy.fetcher.response_type)
            if stale is not None:
                return GatewayResponse(
                    operation=kind.value,
                    data=stale,
                    provenance=Provenance.STALE,
                    note=DEGRADED_NOTE,
                )

        if policy.fallback is not None:
            try:
                return await self._serve_fallback(kind, policy.fallback, query, key, degraded=True)
            except GatewayError as e:
                logger.warning("Fallback provider also failed for %s: %s", kind.value, e)

        return self._unavailable(kind, policy)

    @staticmethod
    def _unavailable(kind: OperationKind, policy: OperationPolicy) -> GatewayResponse:
        return GatewayResponse(
            operation=kind.value,
            data=policy.empty() if policy.empty is not None else None,
            provenance=Provenance.STALE,
            note=UNAVAILABLE_NOTE,
        )

    def _invalidate(self, kinds: tuple[OperationKind, ...], caller: str | None) -> None:
        scope = _caller_scope(caller)
        dropped = sum(self._cache.invalidate_prefix(f"{scope}:{kind.value}") for kind in kinds)
        if dropped:
            logger.debug("Invalidated %d account cache entries for %s", dropped, scope)

    # =========================================================================
    # Options
    # =========================================================================

    async def resolve_contract(
        self,
        approx: ApproxContract,
        underlying_price: float,
        caller: str | None = None,
        today: date | None = None,
    ) -> tuple[ResolvedContract, GatewayResponse]:
        """
        Map an approximate option to the nearest listed contract.

        Fetches the chain through the OPTIONS_CHAIN policy (so it is cached
        and degraded like any chain request) and resolves against it.

        Returns:
            (resolved contract, chain response carrying the provenance)
        """
        chain_response = await self.handle(
            OperationKind.OPTIONS_CHAIN,
            {"underlying": approx.underlying, "type": approx.option_type.value},
            caller,
        )
        chain: Mapping[str, ContractSnapshot] = chain_response.data or {}
        resolved = self._resolver.resolve(
            approx, chain, underlying_price, today=today or self._clock.today()
        )
        return resolved, chain_response
