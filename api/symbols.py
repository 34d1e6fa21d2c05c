"""
Symbol extraction from compiled ELF binaries.

Only the symbol tables are read: every named symbol becomes an
``ImportSymbol`` candidate for the merge step.
"""

from __future__ import annotations

from pathlib import Path

from elftools.common.exceptions import ELFError
from elftools.elf.elffile import ELFFile
from elftools.elf.sections import SymbolTableSection

from .schemas import ImportSymbol
from .shared.errors import StorageIoError, UnsupportedFormatError
from .shared.logger import get_logger

logger = get_logger(__name__)


def _strip_prefix(value, prefix: str) -> str:
    text = str(value)
    return text[len(prefix):] if text.startswith(prefix) else text


def _section_name(elf: ELFFile, index) -> str:
    # Special indices (SHN_UNDEF, SHN_ABS, ...) come back as strings
    if not isinstance(index, int) or index >= elf.num_sections():
        return ""
    return elf.get_section(index).name


def read_symbols(elf: ELFFile) -> list[ImportSymbol]:
    symbols: list[ImportSymbol] = []
    for section in elf.iter_sections():
        if not isinstance(section, SymbolTableSection):
            continue
        for symbol in section.iter_symbols():
            if not symbol.name:
                continue
            info = symbol["st_info"]
            symbols.append(
                ImportSymbol(
                    name=symbol.name,
                    address=symbol["st_value"],
                    size=symbol["st_size"],
                    bind=_strip_prefix(info["bind"], "STB_"),
                    symbol_type=_strip_prefix(info["type"], "STT_"),
                    section=_section_name(elf, symbol["st_shndx"]),
                )
            )
    symbols.sort(key=lambda s: s.name)
    return symbols


def load_binary_symbols(path: str) -> list[ImportSymbol]:
    """Read all named symbols from the ELF file at ``path``.

    Raises:
        StorageIoError: If the file cannot be opened.
        UnsupportedFormatError: If the file is not a readable ELF binary.
    """
    try:
        stream = open(Path(path), "rb")
    except OSError as e:
        raise StorageIoError(f"Cannot read {path}: {e}") from e

    with stream:
        try:
            symbols = read_symbols(ELFFile(stream))
        except ELFError as e:
            raise UnsupportedFormatError(f"{path} is not a supported binary: {e}") from e
        except OSError as e:
            raise StorageIoError(f"Cannot read {path}: {e}") from e
    logger.info("Loaded %d symbols from %s", len(symbols), path)
    return symbols
