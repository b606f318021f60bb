from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Type, TypeVar

from querypackager.config import (
    DEFAULT_PACKAGE_DESCRIPTION,
    DEFAULT_PACKAGE_GROUP_NAME,
    DEFAULT_PACKAGE_NAME,
    DEFAULT_PACKAGE_VERSION,
    DEFAULT_QUERY_LANGUAGE,
)
from querypackager.core.errors import ConfigurationError
from querypackager.models import (
    AclHandling,
    ConflictResolution,
    PackageIdentity,
    PackageProperties,
    PackagerRequest,
    QuerySpec,
)

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=Enum)


@dataclass(frozen=True)
class PackagerSettings:
    query: QuerySpec = field(default_factory=lambda: QuerySpec(statement=""))
    identity: PackageIdentity = field(default_factory=PackageIdentity)
    properties: PackageProperties = field(default_factory=PackageProperties)

    def to_request(self, preview: bool = False) -> PackagerRequest:
        return PackagerRequest(
            query=self.query,
            preview=preview,
            identity=self.identity,
            properties=self.properties,
        )


def _norm(s: str) -> str:
    return "".join(c for c in s if c.isalnum()).lower()


def _parse_enum(enum_cls: Type[E], raw: Any, default: E, key: str) -> E:
    """
    Accepts the enum value ("MergePreserve", "IncrementVersion"), its
    Python name ("MERGE_PRESERVE") or any spelling that differs only in
    case and separators.
    """
    if raw is None or not str(raw).strip():
        return default
    wanted = _norm(str(raw))
    for member in enum_cls:
        if wanted in (_norm(member.name), _norm(member.value)):
            return member
    allowed = ", ".join(m.value for m in enum_cls)
    raise ConfigurationError(f"Invalid {key}: '{raw}' (expected one of: {allowed})")


def _str(d: Dict[str, Any], key: str, default: str) -> str:
    v = d.get(key)
    if v is None:
        return default
    v = str(v).strip()
    return v or default


def _optional_str(d: Dict[str, Any], key: str) -> Optional[str]:
    v = d.get(key)
    if v is None or not str(v).strip():
        return None
    return str(v).strip()


def from_json_dict(d: Dict[str, Any]) -> PackagerSettings:
    d = d or {}
    query = QuerySpec(
        statement=str(d.get("query") or "").strip(),
        language=_str(d, "queryLanguage", DEFAULT_QUERY_LANGUAGE),
        relative_path=_optional_str(d, "relPath"),
    )
    identity = PackageIdentity(
        name=_str(d, "packageName", DEFAULT_PACKAGE_NAME),
        group=_str(d, "packageGroupName", DEFAULT_PACKAGE_GROUP_NAME),
        version=_str(d, "packageVersion", DEFAULT_PACKAGE_VERSION),
    )
    properties = PackageProperties(
        acl_handling=_parse_enum(AclHandling, d.get("packageACLHandling"), AclHandling.OVERWRITE,
                                 "packageACLHandling"),
        description=_str(d, "packageDescription", DEFAULT_PACKAGE_DESCRIPTION),
        conflict_resolution=_parse_enum(ConflictResolution, d.get("conflictResolution"),
                                        ConflictResolution.INCREMENT_VERSION, "conflictResolution"),
    )
    return PackagerSettings(query=query, identity=identity, properties=properties)


def to_json_dict(settings: PackagerSettings) -> Dict[str, Any]:
    d: Dict[str, Any] = {
        "queryLanguage": settings.query.language,
        "query": settings.query.statement,
        "packageName": settings.identity.name,
        "packageGroupName": settings.identity.group,
        "packageVersion": settings.identity.version,
        "packageDescription": settings.properties.description,
        "packageACLHandling": settings.properties.acl_handling.value,
        "conflictResolution": settings.properties.conflict_resolution.value,
    }
    if settings.query.relative_path:
        d["relPath"] = settings.query.relative_path
    return d


def load_settings(path: str) -> PackagerSettings:
    p = Path(path)
    if not p.exists():
        logger.warning("Query packager configuration could not be found: %s", p)
        return PackagerSettings()

    try:
        d = json.loads(p.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise ConfigurationError(f"Failed reading configuration {p} ({e})") from e
    if not isinstance(d, dict):
        raise ConfigurationError(f"Configuration must be a JSON object: {p}")
    return from_json_dict(d)


def save_settings(settings: PackagerSettings, path: str) -> Path:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(json.dumps(to_json_dict(settings), indent=2), encoding="utf-8")
    return p
