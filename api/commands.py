"""
Command channel: typed requests, exhaustive dispatch and the HTTP route.

Every command is its own pydantic model tagged by a ``command`` literal and
declaring the shape of its result. ``CommandRequest`` is the closed union of
all of them; ``dispatch`` looks the request type up in a handler table that
is checked against that union at import time, so an unhandled command is an
import error rather than a runtime fallback.

Failures raised by the store come back as ``CommandResponse(ok=False)``
with a typed ``CommandFailure``; they never leave the channel as exceptions
or HTTP error statuses.
"""

from __future__ import annotations

import asyncio
from typing import Annotated, Any, Callable, ClassVar, Dict, Literal, Optional, Union, get_args

from fastapi import APIRouter
from pydantic import BaseModel, Field, TypeAdapter

from .merge import merge_symbols
from .projection import build_projection, build_section_page
from .schemas import (
    CoreEntity,
    DatasetMetadata,
    EntityDetail,
    EntityKind,
    ImportSymbol,
    MergeResult,
    SectionPage,
    TreeContainer,
)
from .shared.errors import CommandError, ErrorKind
from .shared.logger import get_logger
from .store import CanonicalStore, canonical_store
from .symbols import load_binary_symbols

logger = get_logger(__name__)

router = APIRouter()


# ============= Requests =============


class OpenFromContent(BaseModel):
    command: Literal["open-from-content"] = "open-from-content"
    contents: str
    result_type: ClassVar[Any] = DatasetMetadata


class OpenFromLocation(BaseModel):
    command: Literal["open-from-location"] = "open-from-location"
    path: str
    result_type: ClassVar[Any] = DatasetMetadata


class CreateEmpty(BaseModel):
    command: Literal["create-empty"] = "create-empty"
    result_type: ClassVar[Any] = DatasetMetadata


class GetMetadata(BaseModel):
    command: Literal["get-metadata"] = "get-metadata"
    result_type: ClassVar[Any] = DatasetMetadata


class GetProjection(BaseModel):
    command: Literal["get-projection"] = "get-projection"
    section_limit: Optional[int] = Field(None, ge=0, description="Max items returned per section")
    result_type: ClassVar[Any] = list[TreeContainer]


class GetSectionPage(BaseModel):
    command: Literal["get-section-page"] = "get-section-page"
    container: str
    kind: EntityKind
    offset: int = Field(0, ge=0)
    limit: int = Field(200, ge=1)
    result_type: ClassVar[Any] = SectionPage


class GetEntity(BaseModel):
    command: Literal["get-entity"] = "get-entity"
    kind: EntityKind
    name: str
    container: Optional[str] = None
    result_type: ClassVar[Any] = EntityDetail


class UpdateEntity(BaseModel):
    command: Literal["update-entity"] = "update-entity"
    kind: EntityKind
    name: str
    detail: EntityDetail
    container: Optional[str] = None
    result_type: ClassVar[Any] = None


class SaveToLocation(BaseModel):
    command: Literal["save-to-location"] = "save-to-location"
    path: str
    result_type: ClassVar[Any] = None


class ExportContent(BaseModel):
    command: Literal["export-content"] = "export-content"
    result_type: ClassVar[Any] = str


class ListEntities(BaseModel):
    command: Literal["list-entities"] = "list-entities"
    result_type: ClassVar[Any] = list[CoreEntity]


class UpdateProjectMetadata(BaseModel):
    command: Literal["update-project-metadata"] = "update-project-metadata"
    name: str
    long_identifier: str = ""
    header_comment: Optional[str] = None
    result_type: ClassVar[Any] = DatasetMetadata


class UpdateContainerDescription(BaseModel):
    command: Literal["update-container-description"] = "update-container-description"
    container: str
    long_identifier: str
    result_type: ClassVar[Any] = DatasetMetadata


class LoadBinarySymbols(BaseModel):
    command: Literal["load-binary-symbols"] = "load-binary-symbols"
    path: str
    result_type: ClassVar[Any] = list[ImportSymbol]


class MergeSymbols(BaseModel):
    command: Literal["merge-symbols"] = "merge-symbols"
    container: Optional[str] = None
    symbols: list[ImportSymbol] = Field(default_factory=list)
    result_type: ClassVar[Any] = MergeResult


CommandRequest = Annotated[
    Union[
        OpenFromContent,
        OpenFromLocation,
        CreateEmpty,
        GetMetadata,
        GetProjection,
        GetSectionPage,
        GetEntity,
        UpdateEntity,
        SaveToLocation,
        ExportContent,
        ListEntities,
        UpdateProjectMetadata,
        UpdateContainerDescription,
        LoadBinarySymbols,
        MergeSymbols,
    ],
    Field(discriminator="command"),
]


# ============= Responses =============


class CommandEnvelope(BaseModel):
    request: CommandRequest


class CommandFailure(BaseModel):
    kind: ErrorKind
    message: str


class CommandResponse(BaseModel):
    ok: bool
    result: Any = None
    error: Optional[CommandFailure] = None


# ============= Dispatch =============


_HANDLERS: Dict[type, Callable[[CanonicalStore, Any], Any]] = {
    OpenFromContent: lambda store, req: store.open_from_content(req.contents),
    OpenFromLocation: lambda store, req: store.open_from_location(req.path),
    CreateEmpty: lambda store, req: store.create_empty(),
    GetMetadata: lambda store, req: store.metadata(),
    GetProjection: lambda store, req: build_projection(store, req.section_limit),
    GetSectionPage: lambda store, req: build_section_page(
        store, req.container, req.kind, req.offset, req.limit
    ),
    GetEntity: lambda store, req: store.get_entity(req.kind, req.name, req.container),
    UpdateEntity: lambda store, req: store.update_entity(req.kind, req.name, req.detail, req.container),
    SaveToLocation: lambda store, req: store.save_to_location(req.path),
    ExportContent: lambda store, req: store.export_content(),
    ListEntities: lambda store, req: store.list_entities(),
    UpdateProjectMetadata: lambda store, req: store.update_project_metadata(
        req.name, req.long_identifier, req.header_comment
    ),
    UpdateContainerDescription: lambda store, req: store.update_container_description(
        req.container, req.long_identifier
    ),
    LoadBinarySymbols: lambda store, req: load_binary_symbols(req.path),
    MergeSymbols: lambda store, req: merge_symbols(store, req.container, req.symbols),
}

REQUEST_TYPES: tuple[type, ...] = get_args(get_args(CommandRequest)[0])

_unhandled = [t.__name__ for t in REQUEST_TYPES if t not in _HANDLERS]
if _unhandled:
    raise RuntimeError(f"Commands without a handler: {', '.join(_unhandled)}")

_result_adapters: Dict[type, TypeAdapter] = {
    request_type: TypeAdapter(request_type.result_type)
    for request_type in REQUEST_TYPES
    if request_type.result_type is not None
}


def result_adapter(request_type: type) -> Optional[TypeAdapter]:
    """TypeAdapter for a command's result, or ``None`` for commands without one."""
    return _result_adapters.get(request_type)


def dispatch(request: BaseModel, store: Optional[CanonicalStore] = None) -> CommandResponse:
    """Run one command against the store and wrap the outcome."""
    store = store if store is not None else canonical_store
    handler = _HANDLERS[type(request)]
    try:
        result = handler(store, request)
    except CommandError as e:
        logger.warning("Command %s failed (%s): %s", request.command, e.kind.value, e.message)
        return CommandResponse(ok=False, error=CommandFailure(kind=e.kind, message=e.message))

    adapter = result_adapter(type(request))
    payload = adapter.dump_python(result, mode="json") if adapter is not None else None
    return CommandResponse(ok=True, result=payload)


@router.post("/commands", response_model=CommandResponse)
async def invoke_command(envelope: CommandEnvelope):
    """Execute one command from the UI process."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, dispatch, envelope.request)
