"""Options support: OCC identifiers, contract models and nearest-contract resolution."""

from marketgate.core.options.models import (
    ApproxContract,
    ContractSnapshot,
    Greeks,
    OptionType,
    ResolvedContract,
)
from marketgate.core.options.resolver import ContractResolver, contract_distance
from marketgate.core.options.symbols import (
    OccComponents,
    UnparsableIdentifierError,
    decode_occ_symbol,
    encode_occ_symbol,
    is_occ_symbol,
)


__all__ = [
    "ApproxContract",
    "ContractResolver",
    "ContractSnapshot",
    "Greeks",
    "OccComponents",
    "OptionType",
    "ResolvedContract",
    "UnparsableIdentifierError",
    "contract_distance",
    "decode_occ_symbol",
    "encode_occ_symbol",
    "is_occ_symbol",
]
