from __future__ import annotations

import json
from typing import Any, Dict, Iterable, List

from querypackager.core.errors import SerializationFailure
from querypackager.models import ErrorKind, ErrorResult, PreviewResult, Resource, Result, SuccessResult


def _filter_sets(resources: Iterable[Resource]) -> List[Dict[str, str]]:
    return [
        {"rootPath": r.path, "importMode": "REPLACE"}
        for r in sorted(resources, key=lambda r: r.path)
    ]


def render_result(result: Result) -> Dict[str, Any]:
    if isinstance(result, SuccessResult):
        pkg = result.package
        return {
            "status": result.status,
            "path": pkg.path,
            "name": pkg.identity.name,
            "group": pkg.identity.group,
            "version": pkg.identity.version,
            "thumbnailAttached": pkg.thumbnail_attached,
            "filterSets": _filter_sets(pkg.resources),
        }
    if isinstance(result, PreviewResult):
        return {
            "status": result.status,
            "filterSets": _filter_sets(result.resources),
        }
    if isinstance(result, ErrorResult):
        return {
            "status": result.status,
            "kind": result.kind.value,
            "msg": result.message,
        }
    raise SerializationFailure(f"Unknown result type: {type(result).__name__}")


def result_to_json(result: Result) -> str:
    try:
        return json.dumps(render_result(result), ensure_ascii=False)
    except (TypeError, ValueError) as e:
        raise SerializationFailure(f"Result could not be encoded ({e})") from e


def error_json(kind: ErrorKind, message: str) -> str:
    return json.dumps({"status": "error", "kind": kind.value, "msg": message}, ensure_ascii=False)
