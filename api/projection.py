"""
Tree projection builder.

Renders the canonical store as containers → sections → items. Sections
follow the fixed kind order in ``KIND_ORDER`` and items keep the order the
store holds them in. Each item carries a kind-specific list of detail pairs
so list views can show summaries without fetching every entity.

The projection is read-only: nothing here mutates the store.
"""

from __future__ import annotations

from typing import Optional

from .schemas import (
    KIND_ORDER,
    SECTION_TITLES,
    DetailPair,
    EntityKind,
    SectionPage,
    TreeContainer,
    TreeItem,
    TreeSection,
)
from .store.canonical import CanonicalStore
from .store.model import AxisPts, Characteristic, Entity, Measurement, Module
from .store.writer import format_hex, format_number

MISSING = "—"


def item_id(container: str, kind: EntityKind, name: str) -> str:
    return f"{container}::{kind.value}::{name}"


def section_id(container: str, kind: EntityKind) -> str:
    return f"{container}::{kind.value}"


def _pair(label: str, value) -> DetailPair:
    if value is None:
        return DetailPair(label=label, value=MISSING)
    if isinstance(value, float):
        value = format_number(value)
    return DetailPair(label=label, value=str(value))


def limits_pair(lower: float, upper: float) -> DetailPair:
    return DetailPair(label="Limits", value=f"{format_number(lower)} .. {format_number(upper)}")


def entity_details(entity: Entity) -> list[DetailPair]:
    """Kind-specific summary shown next to an item in the tree."""
    if isinstance(entity, Measurement):
        return [
            _pair("Long identifier", entity.long_identifier),
            _pair("Datatype", entity.datatype),
            _pair("Conversion", entity.conversion),
            _pair("Resolution", entity.resolution),
            _pair("Accuracy", entity.accuracy),
            limits_pair(entity.lower_limit, entity.upper_limit),
            _pair("ECU address", format_hex(entity.ecu_address) if entity.ecu_address is not None else None),
        ]
    if isinstance(entity, Characteristic):
        return [
            _pair("Long identifier", entity.long_identifier),
            _pair("Type", entity.characteristic_type),
            _pair("Address", format_hex(entity.address)),
            _pair("Deposit", entity.deposit),
            _pair("Max diff", entity.max_diff),
            _pair("Conversion", entity.conversion),
            limits_pair(entity.lower_limit, entity.upper_limit),
            _pair("Bit mask", format_hex(entity.bit_mask) if entity.bit_mask is not None else None),
            _pair("Axis descriptors", entity.axis_descriptors),
        ]
    if isinstance(entity, AxisPts):
        return [
            _pair("Long identifier", entity.long_identifier),
            _pair("Address", format_hex(entity.address)),
            _pair("Input quantity", entity.input_quantity),
            _pair("Deposit record", entity.deposit_record),
            _pair("Max diff", entity.max_diff),
            _pair("Conversion", entity.conversion),
            _pair("Max axis points", entity.max_axis_points),
            limits_pair(entity.lower_limit, entity.upper_limit),
        ]
    pairs = []
    if entity.long_identifier is not None:
        pairs.append(_pair("Long identifier", entity.long_identifier))
    pairs.extend(_pair(label, value) for label, value in entity.fields.items())
    return pairs


def _description(entity: Entity) -> Optional[str]:
    return entity.long_identifier or None


def build_item(container: str, entity: Entity) -> TreeItem:
    return TreeItem(
        id=item_id(container, entity.kind, entity.name),
        name=entity.name,
        kind=entity.kind,
        description=_description(entity),
        details=entity_details(entity),
    )


def _build_section(module: Module, kind: EntityKind, limit: Optional[int]) -> Optional[TreeSection]:
    entities = module.entities_of(kind)
    if not entities:
        return None
    shown = entities if limit is None else entities[:limit]
    return TreeSection(
        id=section_id(module.name, kind),
        title=SECTION_TITLES[kind],
        kind=kind,
        item_count=len(entities),
        items=[build_item(module.name, entity) for entity in shown],
    )


def build_projection(store: CanonicalStore, section_limit: Optional[int] = None) -> list[TreeContainer]:
    """Render every container of the open dataset.

    Args:
        store: The canonical store.
        section_limit: Maximum items returned per section; ``None`` returns all.
            ``item_count`` always reports the full size.

    Raises:
        NoDatasetLoadedError: If no dataset is open.
    """
    with store.lock:
        dataset = store.require_dataset()
        containers = []
        for module in dataset.modules:
            sections = []
            for kind in KIND_ORDER:
                section = _build_section(module, kind, section_limit)
                if section is not None:
                    sections.append(section)
            containers.append(
                TreeContainer(
                    id=module.name,
                    name=module.name,
                    long_identifier=module.long_identifier,
                    sections=sections,
                )
            )
        return containers


def build_section_page(
    store: CanonicalStore, container: str, kind: EntityKind, offset: int, limit: int
) -> SectionPage:
    """Return items ``offset .. offset + limit`` of one section."""
    with store.lock:
        module = store.find_module(container)
        entities = module.entities_of(kind)
        window = entities[offset:offset + limit]
        return SectionPage(
            container=module.name,
            kind=kind,
            offset=offset,
            item_count=len(entities),
            items=[build_item(module.name, entity) for entity in window],
        )
