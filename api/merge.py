"""
Symbol import merger.

Turns symbols read from a binary into new Measurements of one container.
Existing names are never overwritten: a symbol whose name already exists as
a Measurement in the container (or earlier in the same batch) is skipped.
So is a symbol whose name is not a valid entity identifier, such as ARM
mapping symbols (``$d``, ``$t``) or versioned names (``memcpy@@GLIBC_2.2.5``).
The target container is resolved before anything is created, so a call
either fails untouched or processes the whole batch.
"""

from __future__ import annotations

from typing import Optional

from .schemas import EntityKind, ImportSymbol, MergeResult
from .shared.logger import get_logger
from .store.canonical import CanonicalStore, is_identifier
from .store.model import DATA_TYPE_RANGES, NO_COMPU_METHOD, Measurement

logger = get_logger(__name__)

FALLBACK_DATATYPE = "UBYTE"

# Storage type by symbol size, applied to data symbols only
DATATYPE_BY_SIZE: dict[int, str] = {
    1: "UBYTE",
    2: "UWORD",
    4: "ULONG",
    8: "A_UINT64",
}

DATA_SYMBOL_TYPES = ("OBJECT", "NOTYPE", "")


def default_datatype(symbol: ImportSymbol) -> str:
    """Pick the storage type for a new Measurement created from ``symbol``."""
    if symbol.symbol_type.upper() not in DATA_SYMBOL_TYPES:
        return FALLBACK_DATATYPE
    return DATATYPE_BY_SIZE.get(symbol.size, FALLBACK_DATATYPE)


def measurement_from_symbol(symbol: ImportSymbol) -> Measurement:
    datatype = default_datatype(symbol)
    lower, upper = DATA_TYPE_RANGES[datatype]
    return Measurement(
        name=symbol.name,
        long_identifier="",
        datatype=datatype,
        conversion=NO_COMPU_METHOD,
        resolution=1,
        accuracy=0.0,
        lower_limit=lower,
        upper_limit=upper,
        ecu_address=symbol.address,
    )


def merge_symbols(
    store: CanonicalStore, container: Optional[str], symbols: list[ImportSymbol]
) -> MergeResult:
    """Create Measurements for every symbol not already present by name.

    Args:
        store: The canonical store.
        container: Target container name; ``None`` targets the first container.
        symbols: Symbols to import, in the order they should be appended.

    Raises:
        NoDatasetLoadedError: If no dataset is open.
        EntityNotFoundError: If the container does not exist.
    """
    with store.lock:
        module = store.find_module(container)
        existing = {entity.name for entity in module.entities_of(EntityKind.MEASUREMENT)}
        created = 0
        skipped: list[str] = []
        for symbol in symbols:
            if symbol.name in existing or not is_identifier(symbol.name):
                skipped.append(symbol.name)
                continue
            module.add(measurement_from_symbol(symbol))
            existing.add(symbol.name)
            created += 1
        metadata = store.metadata()

    logger.info(
        "Merged %d symbols into module '%s' (%d created, %d skipped)",
        len(symbols),
        module.name,
        created,
        len(skipped),
    )
    return MergeResult(metadata=metadata, created_count=created, skipped=skipped)
