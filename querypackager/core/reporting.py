# -*- coding: utf-8 -*-
from __future__ import annotations

import html
from collections import Counter
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from querypackager.config import APP_NAME, APP_VERSION
from querypackager.models import PackageIdentity, PackageProperties, PreviewDescription, QuerySpec

_STYLE = """
body { font-family: system-ui, sans-serif; margin: 2em; color: #222; }
section { border-top: 3px solid #36c; padding: 0.5em 0 1em 0; margin-top: 1em; }
dl { display: grid; grid-template-columns: max-content auto; gap: 4px 16px; }
dt { color: #777; }
dd { margin: 0; font-weight: 600; }
table { border-collapse: collapse; width: 100%; }
td, th { padding: 4px 8px; border-bottom: 1px solid #e4e4e4; text-align: left; font-size: 13px; }
tt { background: #f2f2f2; padding: 0 3px; }
.note { color: #666; font-size: 12px; }
"""


def _h(value: Any) -> str:
    return html.escape("" if value is None else str(value))


def _fmt_size(n: int) -> str:
    if n < 1024:
        return f"{n} B"
    size = float(n)
    for unit in ("KB", "MB", "GB"):
        size /= 1024
        if size < 1024 or unit == "GB":
            break
    return f"{size:.1f} {unit}"


def _field(label: str, value: Any) -> str:
    return f"<dt>{_h(label)}</dt><dd>{_h(value)}</dd>"


def build_preview_html(
    query: QuerySpec,
    identity: PackageIdentity,
    properties: PackageProperties,
    description: PreviewDescription,
    tool_name: str = APP_NAME,
    tool_version: str = APP_VERSION,
) -> str:
    """
    Self-contained HTML page describing the package a preview would build.
    """
    kinds = Counter(e.kind for e in description.entries)
    total_bytes = sum(e.size_bytes for e in description.entries)
    generated = datetime.now(timezone.utc).isoformat(timespec="seconds")

    rows = "".join(
        f"<tr><td><tt>{_h(e.path)}</tt></td><td>{_h(e.kind)}</td><td>{_h(e.import_mode)}</td>"
        f"<td>{_h(_fmt_size(e.size_bytes)) if e.kind == 'file' else ''}</td></tr>"
        for e in description.entries
    ) or '<tr><td colspan="4" class="note">No resources matched.</td></tr>'

    summary = ", ".join(f"{count} {kind}(s)" for kind, count in sorted(kinds.items())) or "nothing"

    package_fields = "".join([
        _field("Group", identity.group),
        _field("Name", identity.name),
        _field("Version", identity.version),
        _field("ACL Handling", properties.acl_handling.value),
        _field("Conflict Resolution", properties.conflict_resolution.value),
        _field("Description", properties.description),
    ])
    query_fields = "".join([
        _field("Language", query.language),
        _field("Statement", query.statement),
        _field("Relative Path", query.relative_path or "-"),
    ])

    return f"""<!doctype html>
<html>
<head>
  <meta charset="utf-8">
  <title>{_h(tool_name)} Preview - {_h(identity.group)}/{_h(identity.name)} {_h(identity.version)}</title>
  <style>{_STYLE}</style>
</head>
<body>
  <h1>Package Preview</h1>
  <p class="note">{_h(tool_name)} {_h(tool_version)} - generated {_h(generated)} UTC</p>
  <section><h2>Package</h2><dl>{package_fields}</dl></section>
  <section><h2>Query</h2><dl>{query_fields}</dl></section>
  <section>
    <h2>Filter Set</h2>
    <p class="note">{description.total} root(s): {_h(summary)}; {_h(_fmt_size(total_bytes))} in matched files</p>
    <table>
      <thead><tr><th>Root Path</th><th>Kind</th><th>Import Mode</th><th>Size</th></tr></thead>
      <tbody>{rows}</tbody>
    </table>
  </section>
</body>
</html>
"""


def write_report_html(html_text: str, report_path: str) -> str:
    p = Path(report_path)
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(html_text, encoding="utf-8")
    return str(p)
