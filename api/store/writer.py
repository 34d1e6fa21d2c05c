"""
Writer for the calibration dataset text format.

Editable entities are regenerated from their typed fields; read-only
entities and unrecognised blocks are emitted from the source text they were
read from.
"""

from __future__ import annotations

import math

from .model import AxisPts, Characteristic, Dataset, Measurement, Module, ReferenceEntity
from ..schemas import KIND_ORDER

INDENT = "  "


def quote(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def format_number(value: float) -> str:
    """Render a number the way it reads best: integral values without a fraction."""
    if isinstance(value, int):
        return str(value)
    if math.isfinite(value) and value == int(value) and abs(value) < 1e16:
        return str(int(value))
    return repr(value)


def format_hex(value: int) -> str:
    return f"0x{value:X}"


def write_dataset(dataset: Dataset) -> str:
    lines: list[str] = []
    if dataset.asap2_version is not None:
        major, minor = dataset.asap2_version
        lines.append(f"ASAP2_VERSION {major} {minor}")
    lines.extend(dataset.preamble)
    lines.append(f"/begin PROJECT {dataset.project_name} {quote(dataset.project_long_identifier)}")

    if dataset.header_comment is not None or dataset.header_extras:
        lines.append(f"{INDENT}/begin HEADER {quote(dataset.header_comment or '')}")
        lines.extend(_indented(dataset.header_extras, 2))
        lines.append(f"{INDENT}/end HEADER")

    lines.extend(_indented(dataset.project_extras, 1))
    for module in dataset.modules:
        lines.extend(_write_module(module))
    lines.append("/end PROJECT")
    return "\n".join(lines) + "\n"


def _indented(chunks: list[str], depth: int) -> list[str]:
    return [f"{INDENT * depth}{chunk}" for chunk in chunks]


def _write_module(module: Module) -> list[str]:
    lines = [f"{INDENT}/begin MODULE {module.name} {quote(module.long_identifier)}"]
    lines.extend(_indented(module.extras, 2))
    for kind in KIND_ORDER:
        for entity in module.entities_of(kind):
            if isinstance(entity, Measurement):
                lines.extend(_write_measurement(entity))
            elif isinstance(entity, Characteristic):
                lines.extend(_write_characteristic(entity))
            elif isinstance(entity, AxisPts):
                lines.extend(_write_axis_pts(entity))
            elif isinstance(entity, ReferenceEntity):
                lines.append(f"{INDENT * 2}{entity.source}")
    lines.append(f"{INDENT}/end MODULE")
    return lines


def _entity_block(keyword: str, name: str, long_identifier: str, header: list[str], body: list[str]) -> list[str]:
    pad = INDENT * 3
    lines = [f"{INDENT * 2}/begin {keyword} {name} {quote(long_identifier)}"]
    lines.append(pad + " ".join(header))
    lines.extend(pad + line for line in body)
    lines.append(f"{INDENT * 2}/end {keyword}")
    return lines


def _write_measurement(m: Measurement) -> list[str]:
    header = [
        m.datatype,
        m.conversion,
        str(m.resolution),
        format_number(m.accuracy),
        format_number(m.lower_limit),
        format_number(m.upper_limit),
    ]
    body: list[str] = []
    if m.ecu_address is not None:
        body.append(f"ECU_ADDRESS {format_hex(m.ecu_address)}")
    body.extend(m.extras)
    return _entity_block("MEASUREMENT", m.name, m.long_identifier, header, body)


def _write_characteristic(c: Characteristic) -> list[str]:
    header = [
        c.characteristic_type,
        format_hex(c.address),
        c.deposit,
        format_number(c.max_diff),
        c.conversion,
        format_number(c.lower_limit),
        format_number(c.upper_limit),
    ]
    body: list[str] = []
    if c.bit_mask is not None:
        body.append(f"BIT_MASK {format_hex(c.bit_mask)}")
    body.extend(c.extras)
    return _entity_block("CHARACTERISTIC", c.name, c.long_identifier, header, body)


def _write_axis_pts(a: AxisPts) -> list[str]:
    header = [
        format_hex(a.address),
        a.input_quantity,
        a.deposit_record,
        format_number(a.max_diff),
        a.conversion,
        str(a.max_axis_points),
        format_number(a.lower_limit),
        format_number(a.upper_limit),
    ]
    return _entity_block("AXIS_PTS", a.name, a.long_identifier, header, list(a.extras))
