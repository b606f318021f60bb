from __future__ import annotations

import logging
from pathlib import Path

from querypackager.core.service import QueryPackager
from querypackager.core.settings import from_json_dict
from querypackager.core.store import FileContentStore
from querypackager.demo import make_demo_store


def main():
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    root = make_demo_store("demo_store/content_root")
    print(f"Created demo content store at: {root.resolve()}")

    packager = QueryPackager(FileContentStore(str(root)), str(Path("demo_store/packages")))
    config = {"query": "/content/site/*/_jcr_content", "relPath": "meta"}
    print(packager.respond(config, preview=True))

    settings = from_json_dict(config)
    report = Path("demo_store/reports/preview.html")
    packager.preview_report(settings.to_request(), str(report))
    print(f"Preview report: {report.resolve()}")

    print(packager.respond(config, preview=False))

if __name__ == "__main__":
    main()
