"""
Editor session: the UI-side source of truth for what the user sees and does.

The session holds the last fetched tree projection, the selection, at most
one edit buffer, and dirty/saving flags. It is the only component that talks
to the command channel on behalf of the UI.

State machine::

    VIEWING --begin_edit ok--> EDITING
    EDITING --commit_edit ok / cancel_edit--> VIEWING
    EDITING --commit_edit failed--> EDITING (error attached, buffer kept)

Responses are tagged with the identity they were issued for. A detail
fetch whose entity is no longer selected, or a page fetch issued against a
projection that has since been replaced, is dropped instead of applied.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Dict, List, NamedTuple, Optional

from api.commands import (
    CommandFailure,
    CreateEmpty,
    GetEntity,
    GetProjection,
    GetSectionPage,
    LoadBinarySymbols,
    MergeSymbols,
    OpenFromContent,
    OpenFromLocation,
    SaveToLocation,
    UpdateContainerDescription,
    UpdateEntity,
    UpdateProjectMetadata,
)
from api.schemas import (
    DatasetMetadata,
    EntityKind,
    ImportSymbol,
    MergeResult,
    TreeContainer,
    TreeItem,
    TreeSection,
)
from api.shared.logger import get_logger

from .channel import ChannelResult, CommandChannel
from .recents import RecentFileEntry, RecentFileRegistry, RecentKind
from .search import filter_projection

logger = get_logger(__name__)

DEFAULT_PAGE_SIZE = 200


class EditorState(str, Enum):
    VIEWING = "viewing"
    EDITING = "editing"


class ItemKey(NamedTuple):
    """Structured identity of one tree item."""

    container: str
    kind: EntityKind
    name: str


class SectionKey(NamedTuple):
    container: str
    kind: EntityKind


class SessionStateError(Exception):
    """An action is not valid in the session's current state."""


class EditorSession:
    """Projection cache, selection and edit buffer for one UI instance.

    Args:
        channel: Command channel to the canonical store.
        recents: Registry updated after successful opens and binary loads.
        page_size: Items materialized per section before ``show_more``.
    """

    def __init__(
        self,
        channel: CommandChannel,
        recents: Optional[RecentFileRegistry] = None,
        page_size: int = DEFAULT_PAGE_SIZE,
    ):
        if page_size < 1:
            raise ValueError("page_size must be at least 1")
        self.channel = channel
        self.recents = recents
        self.page_size = page_size

        self.metadata: Optional[DatasetMetadata] = None
        self.projection: List[TreeContainer] = []
        self.location: Optional[str] = None
        self.display_name: Optional[str] = None

        self.state = EditorState.VIEWING
        self.selection: Optional[ItemKey] = None
        self.edit_key: Optional[ItemKey] = None
        self.edit_buffer = None
        self.error: Optional[CommandFailure] = None

        self.dirty = False
        self.saving = False
        self.query = ""

        self._items: Dict[ItemKey, TreeItem] = {}
        self._sections: Dict[SectionKey, TreeSection] = {}
        self._limits: Dict[SectionKey, int] = {}

        # Bumped whenever the projection is replaced wholesale
        self._generation = 0
        self._projection_ticket = 0
        self._edit_ticket = 0
        self._pending_edit: Optional[ItemKey] = None

    # ============================================================================
    # Queries
    # ============================================================================

    @property
    def is_loaded(self) -> bool:
        return self.metadata is not None

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def selected_item(self) -> Optional[TreeItem]:
        if self.selection is None:
            return None
        return self._items.get(self.selection)

    def item(self, key: ItemKey) -> Optional[TreeItem]:
        return self._items.get(key)

    def section(self, key: SectionKey) -> Optional[TreeSection]:
        return self._sections.get(key)

    def first_item_key(self) -> Optional[ItemKey]:
        """First item of the first container, if that container has any."""
        if not self.projection:
            return None
        container = self.projection[0]
        for section in container.sections:
            if section.items:
                first = section.items[0]
                return ItemKey(container.name, first.kind, first.name)
        return None

    def visible_limit(self, key: SectionKey) -> int:
        return self._limits.get(key, self.page_size)

    def visible_items(self, key: SectionKey) -> List[TreeItem]:
        """Items of one section currently materialized for display."""
        section = self._sections.get(key)
        if section is None:
            return []
        return section.items[: self.visible_limit(key)]

    def has_more(self, key: SectionKey) -> bool:
        section = self._sections.get(key)
        if section is None:
            return False
        return self.visible_limit(key) < section.item_count

    @property
    def filtered_projection(self) -> List[TreeContainer]:
        return filter_projection(self.projection, self.query)

    async def set_query(self, query: str) -> List[TreeContainer]:
        """Set the search query and return the filtered projection.

        A non-blank query needs every item of every section, so sections
        still paged out are fetched first. Once they are, later keystrokes
        filter locally without touching the channel.
        """
        self.query = query
        if query.strip():
            await self._materialize_all()
        return self.filtered_projection

    async def _materialize_all(self) -> bool:
        for key, section in list(self._sections.items()):
            loaded = len(section.items)
            if loaded < section.item_count and not await self._fetch_page(
                key, loaded, section.item_count - loaded
            ):
                return False
        return True

    # ============================================================================
    # Selection
    # ============================================================================

    def select(self, key: Optional[ItemKey]) -> Optional[ItemKey]:
        """Select an item; unknown keys fall back to the first item.

        Selecting anything other than an entity whose detail is being fetched
        makes that fetch stale.
        """
        if key != self._pending_edit:
            self._pending_edit = None
        return self._resolve_selection(key)

    def _resolve_selection(self, key: Optional[ItemKey]) -> Optional[ItemKey]:
        if key is not None and key in self._items:
            self.selection = key
        else:
            self.selection = self.first_item_key()
        return self.selection

    # ============================================================================
    # Dataset lifecycle
    # ============================================================================

    def _require_loaded(self) -> None:
        if not self.is_loaded:
            raise SessionStateError("No dataset loaded")

    def _reset_editor(self) -> None:
        self.state = EditorState.VIEWING
        self.edit_key = None
        self.edit_buffer = None
        self._pending_edit = None
        self._edit_ticket += 1

    def _record_recent(self, kind: RecentKind, path: str) -> None:
        if self.recents is None:
            return
        self.recents.record(kind, RecentFileEntry(name=Path(path).name, path=str(path)))

    async def _open(self, request, location: Optional[str], display_name: Optional[str]) -> bool:
        """Send an open/create request; ``True`` once the new dataset is in place."""
        result = await self.channel.send(request)
        if not result.ok:
            # Prior dataset, projection and selection stay as they were
            self.error = result.error
            return False

        self._reset_editor()
        self.metadata = result.value
        self.location = location
        self.display_name = display_name or self.metadata.project_name
        self.dirty = False
        self.error = None
        self.selection = None
        self.projection = []
        self._index([])
        await self.refresh()
        return True

    async def open_content(self, contents: str, name: Optional[str] = None) -> bool:
        return await self._open(OpenFromContent(contents=contents), None, name)

    async def open_location(self, path: str) -> bool:
        opened = await self._open(OpenFromLocation(path=path), path, Path(path).name)
        if opened:
            self._record_recent(RecentKind.DATASET, path)
        return opened

    async def create_empty(self) -> bool:
        return await self._open(CreateEmpty(), None, None)

    async def refresh(self) -> bool:
        """Replace the projection with a fresh one from the store."""
        self._require_loaded()
        self._projection_ticket += 1
        ticket = self._projection_ticket

        result = await self.channel.send(GetProjection(section_limit=self.page_size))
        if ticket != self._projection_ticket:
            logger.debug("Dropping superseded projection response")
            return False
        if not result.ok:
            self.error = result.error
            return False

        previous = self.selection
        self.projection = result.value
        self._generation += 1
        self._index(self.projection)

        if previous is not None and previous not in self._items:
            await self._load_through(previous)
            if ticket != self._projection_ticket:
                return False
        self._resolve_selection(previous)
        if self.query.strip():
            await self._materialize_all()
        return True

    def _index(self, projection: List[TreeContainer]) -> None:
        self._items = {}
        self._sections = {}
        self._limits = {}
        for container in projection:
            for section in container.sections:
                self._sections[SectionKey(container.name, section.kind)] = section
                for item in section.items:
                    self._items[ItemKey(container.name, item.kind, item.name)] = item

    async def _load_through(self, key: ItemKey) -> None:
        """Materialize the rest of a section so a selection past the first page survives."""
        section_key = SectionKey(key.container, key.kind)
        section = self._sections.get(section_key)
        if section is None or len(section.items) >= section.item_count:
            return
        loaded = len(section.items)
        fetched = await self._fetch_page(section_key, loaded, section.item_count - loaded)
        if fetched and key in self._items:
            section = self._sections[section_key]
            position = next(i for i, item in enumerate(section.items) if item.name == key.name)
            pages = position // self.page_size + 1
            self._limits[section_key] = max(self.visible_limit(section_key), pages * self.page_size)

    async def show_more(self, key: SectionKey) -> bool:
        """Grow a section's visible window by one page, fetching items as needed."""
        section = self._sections.get(key)
        if section is None:
            return False
        limit = self.visible_limit(key) + self.page_size
        wanted = min(limit, section.item_count)
        loaded = len(section.items)
        # The window only grows over items actually fetched
        if loaded < wanted and not await self._fetch_page(key, loaded, wanted - loaded):
            return False
        self._limits[key] = max(self.visible_limit(key), limit)
        return True

    async def _fetch_page(self, key: SectionKey, offset: int, limit: int) -> bool:
        generation = self._generation
        result = await self.channel.send(
            GetSectionPage(container=key.container, kind=key.kind, offset=offset, limit=limit)
        )
        if generation != self._generation:
            logger.debug("Dropping page of %s/%s from an old projection", key.container, key.kind.value)
            return False
        if not result.ok:
            self.error = result.error
            return False

        page = result.value
        section = self._sections.get(key)
        if section is None:
            return False
        # Another fetch may already have appended part of this page
        skip = len(section.items) - page.offset
        if skip < 0:
            return False
        fresh = page.items[skip:]
        if fresh:
            self._replace_section(key, section.model_copy(update={"items": section.items + fresh}))
        for item in fresh:
            self._items[ItemKey(key.container, item.kind, item.name)] = item
        return True

    def _replace_section(self, key: SectionKey, section: TreeSection) -> None:
        """Swap in a grown section; cached models are never mutated in place."""
        containers = []
        for container in self.projection:
            if container.name == key.container:
                sections = [section if s.kind == key.kind else s for s in container.sections]
                container = container.model_copy(update={"sections": sections})
            containers.append(container)
        self.projection = containers
        self._sections[key] = section

    async def save(self, path: Optional[str] = None) -> bool:
        """Save to ``path``, or to the location the dataset was opened from."""
        self._require_loaded()
        target = path or self.location
        if not target:
            raise SessionStateError("No save location")

        self.saving = True
        try:
            result = await self.channel.send(SaveToLocation(path=target))
        finally:
            self.saving = False
        if not result.ok:
            self.error = result.error
            return False

        self.location = target
        self.dirty = False
        self.error = None
        self._record_recent(RecentKind.DATASET, target)
        return True

    # ============================================================================
    # Editing
    # ============================================================================

    async def begin_edit(self, key: ItemKey) -> bool:
        """Fetch the full record for ``key`` and enter the editing state.

        On failure the read-only view stays and the error is attached.

        Raises:
            SessionStateError: If no dataset is loaded or an edit is already open.
        """
        self._require_loaded()
        if self.state is EditorState.EDITING:
            raise SessionStateError(f"Already editing {self.edit_key.name}")

        if key in self._items:
            self.selection = key
        self._edit_ticket += 1
        ticket = self._edit_ticket
        self._pending_edit = key

        result = await self.channel.send(GetEntity(kind=key.kind, name=key.name, container=key.container))
        if ticket != self._edit_ticket or self._pending_edit != key:
            logger.debug("Dropping stale detail for %s", key.name)
            return False
        self._pending_edit = None
        if not result.ok:
            self.error = result.error
            return False

        self.state = EditorState.EDITING
        self.edit_key = key
        self.edit_buffer = result.value
        self.error = None
        return True

    async def commit_edit(self, detail) -> bool:
        """Submit ``detail`` for the entity being edited.

        On success the session returns to viewing, follows a rename with the
        selection and refreshes the projection. On failure it stays editing
        with ``detail`` kept as the buffer.
        """
        if self.state is not EditorState.EDITING:
            raise SessionStateError("No edit in progress")

        key = self.edit_key
        self.edit_buffer = detail
        result = await self.channel.send(
            UpdateEntity(kind=key.kind, name=key.name, detail=detail, container=key.container)
        )
        if not result.ok:
            if self.edit_key == key:
                self.error = result.error
            return False

        self.dirty = True
        if self.edit_key == key:
            self._reset_editor()
            self.error = None
            self.selection = ItemKey(key.container, key.kind, detail.name)
        await self.refresh()
        return True

    def cancel_edit(self) -> None:
        """Discard the edit buffer and any in-flight detail fetch."""
        self._reset_editor()
        self.error = None

    # ============================================================================
    # Metadata and import
    # ============================================================================

    async def update_project_metadata(
        self, name: str, long_identifier: str = "", header_comment: Optional[str] = None
    ) -> bool:
        self._require_loaded()
        result = await self.channel.send(
            UpdateProjectMetadata(name=name, long_identifier=long_identifier, header_comment=header_comment)
        )
        return self._apply_metadata(result)

    async def update_container_description(self, container: str, long_identifier: str) -> bool:
        self._require_loaded()
        result = await self.channel.send(
            UpdateContainerDescription(container=container, long_identifier=long_identifier)
        )
        if not self._apply_metadata(result):
            return False
        return await self.refresh()

    def _apply_metadata(self, result: ChannelResult) -> bool:
        if not result.ok:
            self.error = result.error
            return False
        self.metadata = result.value
        self.dirty = True
        self.error = None
        return True

    async def load_binary(self, path: str) -> Optional[List[ImportSymbol]]:
        """Read candidate symbols from a compiled binary."""
        result = await self.channel.send(LoadBinarySymbols(path=path))
        if not result.ok:
            self.error = result.error
            return None
        self.error = None
        self._record_recent(RecentKind.BINARY, path)
        return result.value

    async def merge_symbols(
        self, symbols: List[ImportSymbol], container: Optional[str] = None
    ) -> Optional[MergeResult]:
        """Create Measurements for new symbols and refresh the tree."""
        self._require_loaded()
        result = await self.channel.send(MergeSymbols(container=container, symbols=symbols))
        if not result.ok:
            self.error = result.error
            return None

        merged: MergeResult = result.value
        self.metadata = merged.metadata
        self.error = None
        if merged.created_count:
            self.dirty = True
        await self.refresh()
        return merged
