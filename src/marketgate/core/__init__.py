"""Core building blocks: time source, instrument classification, options."""

from marketgate.core.clock import Clock, ClockType, LiveClock, ManualClock
from marketgate.core.instruments import (
    CRYPTO_ROOTS,
    AssetType,
    classify,
    is_crypto,
    normalize,
)


__all__ = [
    "CRYPTO_ROOTS",
    "AssetType",
    "Clock",
    "ClockType",
    "LiveClock",
    "ManualClock",
    "classify",
    "is_crypto",
    "normalize",
]
