"""
Reader for the calibration dataset text format.

Parsing happens in two passes: a scanner turns the text into tokens that
remember their source offsets, and a block builder nests them by
``/begin``/``/end`` pairs. The interpreter then maps the known blocks onto
the dataclasses in ``model``; everything it does not understand is kept as
verbatim source text so it survives a save.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Optional, Union

from ..schemas import EntityKind
from ..shared.errors import ParseError
from .model import (
    AxisPts,
    Characteristic,
    Dataset,
    Entity,
    Measurement,
    Module,
    ReferenceEntity,
)

_TOKEN_RE = re.compile(
    r"""
      (?P<ws>\s+)
    | (?P<block_comment>/\*.*?\*/)
    | (?P<line_comment>//[^\n]*)
    | (?P<begin>/begin(?=\s))
    | (?P<end>/end(?=\s|$))
    | (?P<string>"(?:[^"\\]|\\.|"")*")
    | (?P<word>[^\s"]+)
    """,
    re.VERBOSE | re.DOTALL,
)

_ESCAPE_RE = re.compile(r'\\(.)|""', re.DOTALL)

KIND_BY_KEYWORD: dict[str, EntityKind] = {
    "MEASUREMENT": EntityKind.MEASUREMENT,
    "CHARACTERISTIC": EntityKind.CHARACTERISTIC,
    "AXIS_PTS": EntityKind.AXIS_PTS,
    "COMPU_METHOD": EntityKind.COMPU_METHOD,
    "COMPU_TAB": EntityKind.COMPU_TAB,
    "COMPU_VTAB": EntityKind.COMPU_VTAB,
    "COMPU_VTAB_RANGE": EntityKind.COMPU_VTAB_RANGE,
    "RECORD_LAYOUT": EntityKind.RECORD_LAYOUT,
    "FUNCTION": EntityKind.FUNCTION,
    "GROUP": EntityKind.GROUP,
    "UNIT": EntityKind.UNIT,
    "FRAME": EntityKind.FRAME,
    "BLOB": EntityKind.BLOB,
    "INSTANCE": EntityKind.INSTANCE,
}

KEYWORD_BY_KIND: dict[EntityKind, str] = {kind: kw for kw, kind in KIND_BY_KEYWORD.items()}

# (has long identifier, header field labels after it) for read-only kinds
REFERENCE_LAYOUTS: dict[EntityKind, tuple[bool, tuple[str, ...]]] = {
    EntityKind.COMPU_METHOD: (True, ("Conversion type", "Format", "Unit")),
    EntityKind.COMPU_TAB: (True, ("Conversion type", "Value pairs")),
    EntityKind.COMPU_VTAB: (True, ("Conversion type", "Value pairs")),
    EntityKind.COMPU_VTAB_RANGE: (True, ("Value triples",)),
    EntityKind.RECORD_LAYOUT: (False, ()),
    EntityKind.FUNCTION: (True, ()),
    EntityKind.GROUP: (True, ()),
    EntityKind.UNIT: (True, ("Display", "Unit type")),
    EntityKind.FRAME: (True, ("Scaling unit", "Rate")),
    EntityKind.BLOB: (True, ("Start address", "Size")),
    EntityKind.INSTANCE: (True, ("Type ref", "Start address")),
}


@dataclass
class Token:
    kind: str
    text: str
    start: int
    end: int
    line: int

    @property
    def value(self) -> str:
        """Text with string quoting removed."""
        if self.kind == "string":
            return unescape(self.text[1:-1])
        return self.text


@dataclass
class Block:
    keyword: str
    line: int
    start: int
    end: int = 0
    items: list[Union[Token, "Block"]] = field(default_factory=list)


Node = Union[Token, Block]


@dataclass
class ReadResult:
    dataset: Dataset
    warnings: list[str] = field(default_factory=list)


def unescape(raw: str) -> str:
    return _ESCAPE_RE.sub(lambda m: m.group(1) if m.group(1) is not None else '"', raw)


def tokenize(text: str) -> list[Token]:
    tokens: list[Token] = []
    pos = 0
    line = 1
    length = len(text)
    while pos < length:
        match = _TOKEN_RE.match(text, pos)
        if match is None:
            if text[pos] == '"':
                raise ParseError("unterminated string", line)
            raise ParseError(f"unexpected character {text[pos]!r}", line)
        kind = match.lastgroup
        end = match.end()
        if kind not in ("ws", "block_comment", "line_comment"):
            tokens.append(Token(kind, match.group(), pos, end, line))
        line += text.count("\n", pos, end)
        pos = end
    return tokens


def build_blocks(tokens: list[Token]) -> list[Node]:
    """Nest tokens into blocks, checking that every /begin has its /end."""
    root: list[Node] = []
    stack: list[Block] = []
    i = 0
    while i < len(tokens):
        token = tokens[i]
        target = stack[-1].items if stack else root
        if token.kind == "begin":
            if i + 1 >= len(tokens) or tokens[i + 1].kind != "word":
                raise ParseError("/begin without a block keyword", token.line)
            stack.append(Block(tokens[i + 1].text, token.line, token.start))
            target.append(stack[-1])
            i += 2
            continue
        if token.kind == "end":
            if i + 1 >= len(tokens) or tokens[i + 1].kind != "word":
                raise ParseError("/end without a block keyword", token.line)
            keyword = tokens[i + 1].text
            if not stack:
                raise ParseError(f"/end {keyword} without matching /begin", token.line)
            block = stack.pop()
            if block.keyword != keyword:
                raise ParseError(
                    f"/end {keyword} does not close /begin {block.keyword} (line {block.line})",
                    token.line,
                )
            block.end = tokens[i + 1].end
            i += 2
            continue
        target.append(token)
        i += 1
    if stack:
        block = stack[-1]
        raise ParseError(f"/begin {block.keyword} is never closed", block.line)
    return root


def read_dataset(text: str) -> ReadResult:
    """Parse dataset text into a ``Dataset``.

    Raises:
        ParseError: If the text is not a valid dataset.
    """
    nodes = build_blocks(tokenize(text))
    warnings: list[str] = []
    version: Optional[tuple[int, int]] = None
    project_block: Optional[Block] = None
    preamble: list[str] = []

    i = 0
    while i < len(nodes):
        node = nodes[i]
        if isinstance(node, Block):
            if node.keyword == "PROJECT":
                if project_block is not None:
                    raise ParseError("more than one PROJECT block", node.line)
                project_block = node
            else:
                preamble.append(text[node.start:node.end])
            i += 1
            continue
        if node.text == "ASAP2_VERSION":
            args = nodes[i + 1:i + 3]
            if len(args) < 2 or not all(isinstance(a, Token) for a in args):
                raise ParseError("ASAP2_VERSION needs a version and an upgrade number", node.line)
            version = (_int(args[0]), _int(args[1]))
            i += 3
            continue
        run, i = _collect_run(nodes, i)
        preamble.append(_span(text, run))

    if project_block is None:
        raise ParseError("no PROJECT block found")
    if version is None:
        warnings.append("ASAP2_VERSION is missing")

    dataset = _read_project(text, project_block, warnings)
    dataset.asap2_version = version
    dataset.preamble = preamble
    return ReadResult(dataset=dataset, warnings=warnings)


def _collect_run(nodes: list[Node], i: int) -> tuple[list[Node], int]:
    """Collect consecutive loose tokens starting at ``i``."""
    run: list[Node] = []
    while i < len(nodes) and isinstance(nodes[i], Token):
        if run and nodes[i].text == "ASAP2_VERSION":
            break
        run.append(nodes[i])
        i += 1
    return run, i


def _span(text: str, nodes: list[Node]) -> str:
    return text[nodes[0].start:nodes[-1].end]


def _header(block: Block, count: int) -> list[Token]:
    """Return the first ``count`` positional tokens of a block."""
    header = block.items[:count]
    if len(header) < count or not all(isinstance(item, Token) for item in header):
        raise ParseError(
            f"{block.keyword} expects {count} header fields",
            block.line,
        )
    return header


def _int(token: Token) -> int:
    text = token.value.strip()
    try:
        if text.lower().startswith(("0x", "-0x")):
            return int(text, 16)
        return int(text)
    except ValueError:
        pass
    try:
        return int(float(text))
    except ValueError:
        raise ParseError(f"expected an integer, got {text!r}", token.line) from None


def _float(token: Token) -> float:
    text = token.value.strip()
    try:
        if text.lower().startswith(("0x", "-0x")):
            return float(int(text, 16))
        return float(text)
    except ValueError:
        raise ParseError(f"expected a number, got {text!r}", token.line) from None


def _read_project(text: str, block: Block, warnings: list[str]) -> Dataset:
    name, long_id = _header(block, 2)
    dataset = Dataset(project_name=name.value, project_long_identifier=long_id.value)
    header_seen = False
    rest = block.items[2:]
    i = 0
    while i < len(rest):
        node = rest[i]
        if isinstance(node, Block) and node.keyword == "HEADER":
            if header_seen:
                warnings.append(f"line {node.line}: duplicate HEADER ignored")
            else:
                header_seen = True
                _read_header(text, node, dataset)
        elif isinstance(node, Block) and node.keyword == "MODULE":
            dataset.modules.append(_read_module(text, node, warnings))
        elif isinstance(node, Block):
            dataset.project_extras.append(text[node.start:node.end])
        else:
            run, i = _collect_run(rest, i)
            dataset.project_extras.append(_span(text, run))
            continue
        i += 1
    return dataset


def _read_header(text: str, block: Block, dataset: Dataset) -> None:
    if block.items and isinstance(block.items[0], Token) and block.items[0].kind == "string":
        dataset.header_comment = block.items[0].value
        rest = block.items[1:]
    else:
        dataset.header_comment = ""
        rest = block.items
    if rest:
        dataset.header_extras.append(_span(text, rest))


def _read_module(text: str, block: Block, warnings: list[str]) -> Module:
    name, long_id = _header(block, 2)
    module = Module(name=name.value, long_identifier=long_id.value)
    rest = block.items[2:]
    i = 0
    while i < len(rest):
        node = rest[i]
        if isinstance(node, Block):
            kind = KIND_BY_KEYWORD.get(node.keyword)
            if kind is None:
                module.extras.append(text[node.start:node.end])
            else:
                entity = _read_entity(text, kind, node)
                if module.find(kind, entity.name) is not None:
                    warnings.append(
                        f"line {node.line}: duplicate {kind.value} '{entity.name}' "
                        f"in module '{module.name}' ignored"
                    )
                else:
                    module.add(entity)
            i += 1
            continue
        run, i = _collect_run(rest, i)
        module.extras.append(_span(text, run))
    return module


def _read_entity(text: str, kind: EntityKind, block: Block) -> Entity:
    if kind == EntityKind.MEASUREMENT:
        return _read_measurement(text, block)
    if kind == EntityKind.CHARACTERISTIC:
        return _read_characteristic(text, block)
    if kind == EntityKind.AXIS_PTS:
        return _read_axis_pts(text, block)
    return _read_reference(text, kind, block)


def _read_body(
    text: str, items: list[Node], typed: tuple[str, ...]
) -> tuple[dict[str, Token], list[str], list[Block]]:
    """Split an entity body into typed attributes and verbatim extras.

    Returns the value token of every keyword in ``typed``, the remaining
    source chunks in order, and the nested blocks (also kept in the chunks).
    """
    values: dict[str, Token] = {}
    extras: list[str] = []
    nested: list[Block] = []
    run: list[Node] = []

    def flush() -> None:
        if run:
            extras.append(_span(text, run))
            run.clear()

    i = 0
    while i < len(items):
        node = items[i]
        if isinstance(node, Token) and node.text in typed and i + 1 < len(items):
            value = items[i + 1]
            if isinstance(value, Token):
                flush()
                values[node.text] = value
                i += 2
                continue
        if isinstance(node, Block):
            nested.append(node)
        run.append(node)
        i += 1
    flush()
    return values, extras, nested


def _read_measurement(text: str, block: Block) -> Measurement:
    (name, long_id, datatype, conversion, resolution, accuracy, lower, upper) = _header(block, 8)
    values, extras, _ = _read_body(text, block.items[8:], ("ECU_ADDRESS",))
    address = values.get("ECU_ADDRESS")
    return Measurement(
        name=name.value,
        long_identifier=long_id.value,
        datatype=datatype.value.upper(),
        conversion=conversion.value,
        resolution=_int(resolution),
        accuracy=_float(accuracy),
        lower_limit=_float(lower),
        upper_limit=_float(upper),
        ecu_address=_int(address) if address is not None else None,
        extras=extras,
    )


def _read_characteristic(text: str, block: Block) -> Characteristic:
    (name, long_id, ctype, address, deposit, max_diff, conversion, lower, upper) = _header(block, 9)
    values, extras, nested = _read_body(text, block.items[9:], ("BIT_MASK",))
    bit_mask = values.get("BIT_MASK")
    return Characteristic(
        name=name.value,
        long_identifier=long_id.value,
        characteristic_type=ctype.value.upper(),
        address=_int(address),
        deposit=deposit.value,
        max_diff=_float(max_diff),
        conversion=conversion.value,
        lower_limit=_float(lower),
        upper_limit=_float(upper),
        bit_mask=_int(bit_mask) if bit_mask is not None else None,
        axis_descriptors=sum(1 for b in nested if b.keyword == "AXIS_DESCR"),
        extras=extras,
    )


def _read_axis_pts(text: str, block: Block) -> AxisPts:
    (
        name,
        long_id,
        address,
        input_quantity,
        deposit_record,
        max_diff,
        conversion,
        max_axis_points,
        lower,
        upper,
    ) = _header(block, 10)
    _, extras, _ = _read_body(text, block.items[10:], ())
    return AxisPts(
        name=name.value,
        long_identifier=long_id.value,
        address=_int(address),
        input_quantity=input_quantity.value,
        deposit_record=deposit_record.value,
        max_diff=_float(max_diff),
        conversion=conversion.value,
        max_axis_points=_int(max_axis_points),
        lower_limit=_float(lower),
        upper_limit=_float(upper),
        extras=extras,
    )


def _read_reference(text: str, kind: EntityKind, block: Block) -> ReferenceEntity:
    has_long_id, labels = REFERENCE_LAYOUTS[kind]
    required = 2 if has_long_id else 1
    header = _header(block, required)
    tokens = [item for item in block.items[required:required + len(labels)] if isinstance(item, Token)]
    return ReferenceEntity(
        kind=kind,
        name=header[0].value,
        long_identifier=header[1].value if has_long_id else None,
        fields={label: token.value for label, token in zip(labels, tokens)},
        source=text[block.start:block.end],
    )
