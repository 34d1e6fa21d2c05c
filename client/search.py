"""
Search/filter over the last fetched tree projection.

Pure and synchronous: nothing here calls the backend or mutates the input.
"""

from typing import List

from api.schemas import TreeContainer, TreeItem


def item_matches(item: TreeItem, needle: str) -> bool:
    """Case-insensitive substring match on name, kind and description."""
    if needle in item.name.casefold():
        return True
    if needle in item.kind.value.casefold():
        return True
    return bool(item.description) and needle in item.description.casefold()


def filter_projection(projection: List[TreeContainer], query: str) -> List[TreeContainer]:
    """Keep only items matching ``query``.

    A section survives if any of its items match, a container if any of its
    sections survive. A blank query returns ``projection`` itself.
    Surviving sections report the number of matches as ``item_count``.
    """
    needle = query.strip().casefold()
    if not needle:
        return projection

    result = []
    for container in projection:
        sections = []
        for section in container.sections:
            items = [item for item in section.items if item_matches(item, needle)]
            if items:
                sections.append(section.model_copy(update={"items": items, "item_count": len(items)}))
        if sections:
            result.append(container.model_copy(update={"sections": sections}))
    return result
