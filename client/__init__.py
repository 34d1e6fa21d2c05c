"""
UI-side core for the calibration database editor.

This package provides:
- Command channels to the backend (channel.py)
- The editor session: projection cache, selection and edit buffer (session.py)
- Search/filter over the last fetched projection (search.py)
- Recent-file registries (recents.py)
"""

from .channel import ChannelResult, CommandChannel, HttpCommandChannel, LocalCommandChannel
from .recents import RecentFileEntry, RecentFileRegistry, RecentKind
from .search import filter_projection
from .session import EditorSession, EditorState, ItemKey, SectionKey, SessionStateError

__all__ = [
    "ChannelResult",
    "CommandChannel",
    "EditorSession",
    "EditorState",
    "HttpCommandChannel",
    "ItemKey",
    "LocalCommandChannel",
    "RecentFileEntry",
    "RecentFileRegistry",
    "RecentKind",
    "SectionKey",
    "SessionStateError",
    "filter_projection",
]
