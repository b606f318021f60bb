from __future__ import annotations

from typing import Iterable

from querypackager.models import PreviewDescription, PreviewEntry, Resource


def render_preview(resources: Iterable[Resource]) -> PreviewDescription:
    """
    Listing of what a package built from these resources would contain.
    Reads nothing from the store; output is sorted by path.
    """
    entries = tuple(
        PreviewEntry(path=r.path, kind=r.kind, size_bytes=r.size_bytes)
        for r in sorted(resources, key=lambda r: r.path)
    )
    return PreviewDescription(entries=entries)
