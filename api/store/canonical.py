"""
Canonical store: the backend's single owner of the open dataset.

All reads and writes of entity data go through ``CanonicalStore``. Each
public method takes the store lock for its whole duration, so commands are
applied one at a time even when the HTTP layer runs them on worker threads.
Validation always completes before any mutation; a failed command leaves the
dataset untouched.
"""

from __future__ import annotations

import re
import threading
from pathlib import Path
from typing import Optional, Union

from ..schemas import (
    EDITABLE_KINDS,
    AxisPointsDetail,
    CharacteristicDetail,
    CoreEntity,
    DatasetMetadata,
    EntityKind,
    MeasurementDetail,
)
from ..shared.errors import (
    EntityNotFoundError,
    EntityValidationError,
    NoDatasetLoadedError,
    StorageIoError,
)
from ..shared.logger import get_logger
from .model import (
    CHARACTERISTIC_TYPES,
    DATA_TYPES,
    AxisPts,
    Characteristic,
    Dataset,
    EditableEntity,
    Measurement,
    Module,
)
from .reader import read_dataset
from .writer import format_hex, write_dataset

logger = get_logger(__name__)

EMPTY_DATASET = (
    "ASAP2_VERSION 1 71\n"
    '/begin PROJECT new_project ""\n'
    '  /begin MODULE new_module ""\n'
    "  /end MODULE\n"
    "/end PROJECT\n"
)

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_.\[\]]*$")


def is_identifier(value: Optional[str]) -> bool:
    """Whether ``value`` is usable as an entity name."""
    return bool(_IDENTIFIER_RE.match(value or ""))


AnyDetail = Union[MeasurementDetail, CharacteristicDetail, AxisPointsDetail]


def parse_hex(value: str, label: str) -> int:
    """Parse an address-like hex string (``0x`` prefix optional)."""
    clean = value.strip()
    if clean.lower().startswith("0x"):
        clean = clean[2:]
    try:
        parsed = int(clean, 16)
    except ValueError:
        raise EntityValidationError(f"Invalid hex {label}: {value!r}") from None
    if parsed < 0:
        raise EntityValidationError(f"Invalid hex {label}: {value!r}")
    return parsed


def optional_hex(value: Optional[str], label: str) -> Optional[int]:
    if value is None or not value.strip():
        return None
    return parse_hex(value, label)


def to_detail(entity: EditableEntity) -> AnyDetail:
    """Project a stored entity onto its editable wire shape."""
    if isinstance(entity, Measurement):
        return MeasurementDetail(
            name=entity.name,
            long_identifier=entity.long_identifier,
            datatype=entity.datatype,
            conversion=entity.conversion,
            resolution=entity.resolution,
            accuracy=entity.accuracy,
            lower_limit=entity.lower_limit,
            upper_limit=entity.upper_limit,
            ecu_address=format_hex(entity.ecu_address) if entity.ecu_address is not None else None,
        )
    if isinstance(entity, Characteristic):
        return CharacteristicDetail(
            name=entity.name,
            long_identifier=entity.long_identifier,
            characteristic_type=entity.characteristic_type,
            address=format_hex(entity.address),
            deposit=entity.deposit,
            max_diff=entity.max_diff,
            conversion=entity.conversion,
            lower_limit=entity.lower_limit,
            upper_limit=entity.upper_limit,
            bit_mask=format_hex(entity.bit_mask) if entity.bit_mask is not None else None,
        )
    return AxisPointsDetail(
        name=entity.name,
        long_identifier=entity.long_identifier,
        address=format_hex(entity.address),
        input_quantity=entity.input_quantity,
        deposit_record=entity.deposit_record,
        max_diff=entity.max_diff,
        conversion=entity.conversion,
        max_axis_points=entity.max_axis_points,
        lower_limit=entity.lower_limit,
        upper_limit=entity.upper_limit,
    )


def _check_identifier(value: str, label: str, problems: list[str]) -> None:
    if not is_identifier(value):
        problems.append(f"{label} must be a non-empty identifier, got {value!r}")


def _check_limits(lower: float, upper: float, problems: list[str]) -> None:
    if lower > upper:
        problems.append(f"lower limit {lower} is greater than upper limit {upper}")


def _raise_problems(subject: str, problems: list[str]) -> None:
    if problems:
        raise EntityValidationError(f"{subject}: " + "; ".join(problems), problems)


class CanonicalStore:
    """Owns the authoritative in-memory dataset."""

    def __init__(self):
        self._dataset: Optional[Dataset] = None
        self._warning_count = 0
        self._lock = threading.RLock()

    @property
    def is_loaded(self) -> bool:
        return self._dataset is not None

    def require_dataset(self) -> Dataset:
        if self._dataset is None:
            raise NoDatasetLoadedError()
        return self._dataset

    @property
    def lock(self) -> threading.RLock:
        return self._lock

    def close(self) -> None:
        with self._lock:
            self._dataset = None
            self._warning_count = 0

    # ============================================================================
    # Open / Create / Save
    # ============================================================================

    def open_from_content(self, contents: str) -> DatasetMetadata:
        result = read_dataset(contents)
        with self._lock:
            self._dataset = result.dataset
            self._warning_count = len(result.warnings)
        for warning in result.warnings:
            logger.warning("Dataset warning: %s", warning)
        logger.info(
            "Dataset '%s' opened (%d modules, %d warnings)",
            result.dataset.project_name,
            len(result.dataset.modules),
            len(result.warnings),
        )
        return self.metadata()

    def open_from_location(self, path: str) -> DatasetMetadata:
        try:
            contents = Path(path).read_text(encoding="utf-8", errors="replace")
        except OSError as e:
            raise StorageIoError(f"Cannot read {path}: {e}") from e
        return self.open_from_content(contents)

    def create_empty(self) -> DatasetMetadata:
        return self.open_from_content(EMPTY_DATASET)

    def export_content(self) -> str:
        with self._lock:
            return write_dataset(self.require_dataset())

    def save_to_location(self, path: str) -> None:
        with self._lock:
            dataset = self.require_dataset()
            self.validate(dataset)
            content = write_dataset(dataset)
            try:
                Path(path).write_text(content, encoding="utf-8")
            except OSError as e:
                raise StorageIoError(f"Cannot write {path}: {e}") from e
        logger.info("Dataset '%s' saved to %s", dataset.project_name, path)

    def validate(self, dataset: Dataset) -> None:
        """Whole-dataset checks run before every save."""
        problems: list[str] = []
        for module in dataset.modules:
            for kind in EDITABLE_KINDS:
                seen: set[str] = set()
                for entity in module.entities_of(kind):
                    where = f"{module.name}/{kind.value}/{entity.name}"
                    if not entity.name:
                        problems.append(f"{where}: empty name")
                    if entity.name in seen:
                        problems.append(f"{where}: duplicate name")
                    seen.add(entity.name)
                    if entity.lower_limit > entity.upper_limit:
                        problems.append(f"{where}: lower limit exceeds upper limit")
        _raise_problems("Dataset failed validation", problems)

    # ============================================================================
    # Metadata
    # ============================================================================

    def metadata(self) -> DatasetMetadata:
        with self._lock:
            dataset = self.require_dataset()
            header_comment = (dataset.header_comment or "").strip() or None
            version = None
            if dataset.asap2_version is not None:
                version = f"{dataset.asap2_version[0]}.{dataset.asap2_version[1]}"
            return DatasetMetadata(
                project_name=dataset.project_name,
                project_long_identifier=dataset.project_long_identifier,
                module_names=[module.name for module in dataset.modules],
                header_comment=header_comment,
                asap2_version=version,
                warning_count=self._warning_count,
            )

    def update_project_metadata(
        self, name: str, long_identifier: str, header_comment: Optional[str]
    ) -> DatasetMetadata:
        problems: list[str] = []
        _check_identifier(name, "project name", problems)
        _raise_problems("Project metadata rejected", problems)
        with self._lock:
            dataset = self.require_dataset()
            dataset.project_name = name
            dataset.project_long_identifier = long_identifier
            comment = (header_comment or "").strip()
            if comment:
                dataset.header_comment = comment
            else:
                dataset.header_comment = None
                dataset.header_extras = []
            return self.metadata()

    def update_container_description(self, container: str, long_identifier: str) -> DatasetMetadata:
        with self._lock:
            module = self.find_module(container)
            module.long_identifier = long_identifier
            return self.metadata()

    def list_entities(self) -> list[CoreEntity]:
        with self._lock:
            dataset = self.require_dataset()
            items: list[CoreEntity] = []
            for module in dataset.modules:
                items.append(CoreEntity(kind="Module", name=module.name, long_identifier=module.long_identifier))
                for kind in EDITABLE_KINDS:
                    for entity in module.entities_of(kind):
                        items.append(CoreEntity(kind=kind.value, name=entity.name))
            return items

    # ============================================================================
    # Entities
    # ============================================================================

    def find_module(self, container: Optional[str]) -> Module:
        """Resolve a container by name; ``None`` means the first one."""
        dataset = self.require_dataset()
        if container is None:
            if not dataset.modules:
                raise EntityNotFoundError("Dataset has no modules")
            return dataset.modules[0]
        module = dataset.find_module(container)
        if module is None:
            raise EntityNotFoundError(f"Module '{container}' not found")
        return module

    def _locate(
        self, kind: EntityKind, name: str, container: Optional[str]
    ) -> tuple[Module, EditableEntity]:
        if kind not in EDITABLE_KINDS:
            raise EntityValidationError(f"{kind.value} entities are read-only")
        dataset = self.require_dataset()
        modules = [self.find_module(container)] if container is not None else dataset.modules
        for module in modules:
            entity = module.find(kind, name)
            if entity is not None:
                return module, entity
        raise EntityNotFoundError(f"{kind.value} '{name}' not found in any module")

    def get_entity(self, kind: EntityKind, name: str, container: Optional[str] = None) -> AnyDetail:
        with self._lock:
            _, entity = self._locate(kind, name, container)
            return to_detail(entity)

    def update_entity(
        self,
        kind: EntityKind,
        name: str,
        detail: AnyDetail,
        container: Optional[str] = None,
    ) -> None:
        if detail.kind != kind.value:
            raise EntityValidationError(
                f"Submitted {detail.kind} data does not match {kind.value} '{name}'"
            )
        with self._lock:
            module, entity = self._locate(kind, name, container)
            if detail.name != name and module.find(kind, detail.name) is not None:
                raise EntityValidationError(
                    f"{kind.value} '{detail.name}' already exists in module '{module.name}'"
                )
            if isinstance(entity, Measurement):
                self._apply_measurement(entity, detail)
            elif isinstance(entity, Characteristic):
                self._apply_characteristic(entity, detail)
            else:
                self._apply_axis_pts(entity, detail)
        logger.info("%s '%s' updated in module '%s'", kind.value, name, module.name)

    def _apply_measurement(self, m: Measurement, data: MeasurementDetail) -> None:
        problems: list[str] = []
        _check_identifier(data.name, "name", problems)
        _check_identifier(data.conversion, "conversion", problems)
        datatype = data.datatype.upper()
        if datatype not in DATA_TYPES:
            problems.append(f"Invalid data type: {data.datatype}")
        if data.resolution < 0:
            problems.append("resolution must not be negative")
        _check_limits(data.lower_limit, data.upper_limit, problems)
        _raise_problems(f"Measurement '{m.name}' rejected", problems)
        address = optional_hex(data.ecu_address, "address")

        m.name = data.name
        m.long_identifier = data.long_identifier
        m.datatype = datatype
        m.conversion = data.conversion
        m.resolution = data.resolution
        m.accuracy = data.accuracy
        m.lower_limit = data.lower_limit
        m.upper_limit = data.upper_limit
        m.ecu_address = address

    def _apply_characteristic(self, c: Characteristic, data: CharacteristicDetail) -> None:
        problems: list[str] = []
        _check_identifier(data.name, "name", problems)
        _check_identifier(data.conversion, "conversion", problems)
        _check_identifier(data.deposit, "deposit", problems)
        ctype = data.characteristic_type.upper()
        if ctype not in CHARACTERISTIC_TYPES:
            problems.append(f"Invalid characteristic type: {data.characteristic_type}")
        _check_limits(data.lower_limit, data.upper_limit, problems)
        _raise_problems(f"Characteristic '{c.name}' rejected", problems)
        address = parse_hex(data.address, "address")
        bit_mask = optional_hex(data.bit_mask, "bit mask")

        c.name = data.name
        c.long_identifier = data.long_identifier
        c.characteristic_type = ctype
        c.address = address
        c.deposit = data.deposit
        c.max_diff = data.max_diff
        c.conversion = data.conversion
        c.lower_limit = data.lower_limit
        c.upper_limit = data.upper_limit
        c.bit_mask = bit_mask

    def _apply_axis_pts(self, a: AxisPts, data: AxisPointsDetail) -> None:
        problems: list[str] = []
        _check_identifier(data.name, "name", problems)
        _check_identifier(data.conversion, "conversion", problems)
        _check_identifier(data.input_quantity, "input quantity", problems)
        _check_identifier(data.deposit_record, "deposit record", problems)
        if data.max_axis_points < 0:
            problems.append("max axis points must not be negative")
        _check_limits(data.lower_limit, data.upper_limit, problems)
        _raise_problems(f"AxisPts '{a.name}' rejected", problems)
        address = parse_hex(data.address, "address")

        a.name = data.name
        a.long_identifier = data.long_identifier
        a.address = address
        a.input_quantity = data.input_quantity
        a.deposit_record = data.deposit_record
        a.max_diff = data.max_diff
        a.conversion = data.conversion
        a.max_axis_points = data.max_axis_points
        a.lower_limit = data.lower_limit
        a.upper_limit = data.upper_limit
