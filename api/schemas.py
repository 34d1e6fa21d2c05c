"""
Wire models shared by the backend and the UI-side core.

Everything that crosses the command channel is one of these pydantic
models: dataset metadata, the tree projection, editable entity details and
imported binary symbols.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field


class EntityKind(str, Enum):
    """Entity kinds in canonical section order."""

    MEASUREMENT = "Measurement"
    CHARACTERISTIC = "Characteristic"
    AXIS_PTS = "AxisPts"
    COMPU_METHOD = "CompuMethod"
    COMPU_TAB = "CompuTab"
    COMPU_VTAB = "CompuVtab"
    COMPU_VTAB_RANGE = "CompuVtabRange"
    RECORD_LAYOUT = "RecordLayout"
    FUNCTION = "Function"
    GROUP = "Group"
    UNIT = "Unit"
    FRAME = "Frame"
    BLOB = "Blob"
    INSTANCE = "Instance"


KIND_ORDER: tuple[EntityKind, ...] = tuple(EntityKind)

EDITABLE_KINDS: tuple[EntityKind, ...] = (
    EntityKind.MEASUREMENT,
    EntityKind.CHARACTERISTIC,
    EntityKind.AXIS_PTS,
)

SECTION_TITLES: dict[EntityKind, str] = {
    EntityKind.MEASUREMENT: "Measurements",
    EntityKind.CHARACTERISTIC: "Characteristics",
    EntityKind.AXIS_PTS: "Axis Points",
    EntityKind.COMPU_METHOD: "Compu Methods",
    EntityKind.COMPU_TAB: "Compu Tables",
    EntityKind.COMPU_VTAB: "Compu VTabs",
    EntityKind.COMPU_VTAB_RANGE: "Compu VTab Ranges",
    EntityKind.RECORD_LAYOUT: "Record Layouts",
    EntityKind.FUNCTION: "Functions",
    EntityKind.GROUP: "Groups",
    EntityKind.UNIT: "Units",
    EntityKind.FRAME: "Frames",
    EntityKind.BLOB: "Blobs",
    EntityKind.INSTANCE: "Instances",
}


# ============= Dataset =============


class DatasetMetadata(BaseModel):
    """Summary returned by every open/create command."""

    project_name: str
    project_long_identifier: str = ""
    module_names: list[str] = Field(default_factory=list)
    header_comment: Optional[str] = None
    asap2_version: Optional[str] = None
    warning_count: int = 0


class CoreEntity(BaseModel):
    """Flat listing entry for containers and editable entities."""

    kind: str
    name: str
    long_identifier: Optional[str] = None


# ============= Tree Projection =============


class DetailPair(BaseModel):
    label: str
    value: str


class TreeItem(BaseModel):
    """Read projection of one entity."""

    id: str
    name: str
    kind: EntityKind
    description: Optional[str] = None
    details: list[DetailPair] = Field(default_factory=list)


class TreeSection(BaseModel):
    """All entities of one kind inside a container.

    ``item_count`` is the authoritative number of entities; ``items`` may hold
    fewer when the projection was fetched with a section limit.
    """

    id: str
    title: str
    kind: EntityKind
    item_count: int
    items: list[TreeItem] = Field(default_factory=list)


class TreeContainer(BaseModel):
    id: str
    name: str
    long_identifier: str = ""
    sections: list[TreeSection] = Field(default_factory=list)


class SectionPage(BaseModel):
    """A slice of one section, fetched while browsing lazily."""

    container: str
    kind: EntityKind
    offset: int
    item_count: int
    items: list[TreeItem] = Field(default_factory=list)


# ============= Entity Details =============


class MeasurementDetail(BaseModel):
    kind: Literal["Measurement"] = "Measurement"
    name: str
    long_identifier: str = ""
    datatype: str = "UBYTE"
    conversion: str = "NO_COMPU_METHOD"
    resolution: int = 1
    accuracy: float = 0.0
    lower_limit: float = 0.0
    upper_limit: float = 0.0
    ecu_address: Optional[str] = None


class CharacteristicDetail(BaseModel):
    kind: Literal["Characteristic"] = "Characteristic"
    name: str
    long_identifier: str = ""
    characteristic_type: str = "VALUE"
    address: str = "0x0"
    deposit: str = ""
    max_diff: float = 0.0
    conversion: str = "NO_COMPU_METHOD"
    lower_limit: float = 0.0
    upper_limit: float = 0.0
    bit_mask: Optional[str] = None


class AxisPointsDetail(BaseModel):
    kind: Literal["AxisPts"] = "AxisPts"
    name: str
    long_identifier: str = ""
    address: str = "0x0"
    input_quantity: str = "NO_INPUT_QUANTITY"
    deposit_record: str = ""
    max_diff: float = 0.0
    conversion: str = "NO_COMPU_METHOD"
    max_axis_points: int = 0
    lower_limit: float = 0.0
    upper_limit: float = 0.0


EntityDetail = Annotated[
    Union[MeasurementDetail, CharacteristicDetail, AxisPointsDetail],
    Field(discriminator="kind"),
]


# ============= Binary Import =============


class ImportSymbol(BaseModel):
    """A named, addressed symbol read from a compiled binary."""

    name: str
    address: int = Field(..., ge=0)
    size: int = Field(0, ge=0)
    bind: str = ""
    symbol_type: str = ""
    section: str = ""


class MergeResult(BaseModel):
    metadata: DatasetMetadata
    created_count: int
    skipped: list[str] = Field(default_factory=list)
