"""
In-memory representation of a calibration dataset.

The three editable kinds are fully typed. The remaining kinds keep their
name, long identifier and header fields for display plus the original
source text, which is what gets written back on save.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Union

from ..schemas import EntityKind

DATA_TYPE_RANGES: dict[str, tuple[float, float]] = {
    "UBYTE": (0, 255),
    "SBYTE": (-128, 127),
    "UWORD": (0, 65535),
    "SWORD": (-32768, 32767),
    "ULONG": (0, 4294967295),
    "SLONG": (-2147483648, 2147483647),
    "A_UINT64": (0, 18446744073709551615),
    "A_INT64": (-9223372036854775808, 9223372036854775807),
    "FLOAT16_IEEE": (-65504.0, 65504.0),
    "FLOAT32_IEEE": (-3.4028234663852886e38, 3.4028234663852886e38),
    "FLOAT64_IEEE": (-1.7976931348623157e308, 1.7976931348623157e308),
}

DATA_TYPES: tuple[str, ...] = tuple(DATA_TYPE_RANGES)

CHARACTERISTIC_TYPES: tuple[str, ...] = (
    "ASCII",
    "CURVE",
    "MAP",
    "CUBOID",
    "CUBE_4",
    "CUBE_5",
    "VAL_BLK",
    "VALUE",
)

NO_COMPU_METHOD = "NO_COMPU_METHOD"


@dataclass
class Measurement:
    name: str
    long_identifier: str = ""
    datatype: str = "UBYTE"
    conversion: str = NO_COMPU_METHOD
    resolution: int = 1
    accuracy: float = 0.0
    lower_limit: float = 0.0
    upper_limit: float = 0.0
    ecu_address: Optional[int] = None
    # Unparsed body attributes and nested blocks, written back verbatim
    extras: list[str] = field(default_factory=list)

    kind = EntityKind.MEASUREMENT


@dataclass
class Characteristic:
    name: str
    long_identifier: str = ""
    characteristic_type: str = "VALUE"
    address: int = 0
    deposit: str = ""
    max_diff: float = 0.0
    conversion: str = NO_COMPU_METHOD
    lower_limit: float = 0.0
    upper_limit: float = 0.0
    bit_mask: Optional[int] = None
    axis_descriptors: int = 0
    extras: list[str] = field(default_factory=list)

    kind = EntityKind.CHARACTERISTIC


@dataclass
class AxisPts:
    name: str
    long_identifier: str = ""
    address: int = 0
    input_quantity: str = "NO_INPUT_QUANTITY"
    deposit_record: str = ""
    max_diff: float = 0.0
    conversion: str = NO_COMPU_METHOD
    max_axis_points: int = 0
    lower_limit: float = 0.0
    upper_limit: float = 0.0
    extras: list[str] = field(default_factory=list)

    kind = EntityKind.AXIS_PTS


@dataclass
class ReferenceEntity:
    """A read-only entity (conversion methods, layouts, groups, ...)."""
    kind: EntityKind
    name: str
    long_identifier: Optional[str] = None
    fields: dict[str, str] = field(default_factory=dict)
    source: str = ""


EditableEntity = Union[Measurement, Characteristic, AxisPts]
Entity = Union[Measurement, Characteristic, AxisPts, ReferenceEntity]


@dataclass
class Module:
    name: str
    long_identifier: str = ""
    entities: dict[EntityKind, list[Entity]] = field(default_factory=dict)
    extras: list[str] = field(default_factory=list)

    def entities_of(self, kind: EntityKind) -> list[Entity]:
        return self.entities.get(kind, [])

    def find(self, kind: EntityKind, name: str) -> Optional[Entity]:
        for entity in self.entities_of(kind):
            if entity.name == name:
                return entity
        return None

    def add(self, entity: Entity) -> None:
        self.entities.setdefault(entity.kind, []).append(entity)


@dataclass
class Dataset:
    project_name: str
    project_long_identifier: str = ""
    asap2_version: Optional[tuple[int, int]] = None
    header_comment: Optional[str] = None
    header_extras: list[str] = field(default_factory=list)
    modules: list[Module] = field(default_factory=list)
    project_extras: list[str] = field(default_factory=list)
    preamble: list[str] = field(default_factory=list)

    def find_module(self, name: str) -> Optional[Module]:
        for module in self.modules:
            if module.name == name:
                return module
        return None
