from __future__ import annotations

import base64
from pathlib import Path

from querypackager.config import THUMBNAIL_RESOURCE_PATH

# 1x1 transparent PNG
_THUMBNAIL_PNG = base64.b64decode(
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg=="
)


def make_demo_store(root: str, with_thumbnail: bool = True) -> Path:
    """
    Small content tree: three pages under /content/site (only two of which
    carry a _jcr_content/meta node) and a DAM folder.
    """
    base = Path(root)
    pages = {
        "home": True,
        "about": True,
        "contact": False,
    }
    for page, has_meta in pages.items():
        content = base / "content" / "site" / page / "_jcr_content"
        content.mkdir(parents=True, exist_ok=True)
        (content / "page.json").write_text(f'{{"title": "{page.title()}"}}\n', encoding="utf-8")
        if has_meta:
            (content / "meta").mkdir(exist_ok=True)
            (content / "meta" / "tags.json").write_text('["demo"]\n', encoding="utf-8")

    dam = base / "content" / "dam" / "site"
    dam.mkdir(parents=True, exist_ok=True)
    (dam / "logo.png").write_bytes(_THUMBNAIL_PNG)
    (dam / "brochure.pdf").write_bytes(b"%PDF-1.4 dummy")

    if with_thumbnail:
        thumb = base / THUMBNAIL_RESOURCE_PATH.lstrip("/")
        thumb.parent.mkdir(parents=True, exist_ok=True)
        thumb.write_bytes(_THUMBNAIL_PNG)

    return base
