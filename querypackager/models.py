from __future__ import annotations

import posixpath
from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, Optional, Tuple, Union

from querypackager.config import (
    DEFAULT_PACKAGE_DESCRIPTION,
    DEFAULT_PACKAGE_GROUP_NAME,
    DEFAULT_PACKAGE_NAME,
    DEFAULT_PACKAGE_VERSION,
    DEFAULT_QUERY_LANGUAGE,
)


def canonical_path(path: str) -> str:
    """
    Rooted, normalized, forward-slash content path ("/a/b").
    """
    p = (path or "").replace("\\", "/").strip()
    return posixpath.normpath("/" + p.lstrip("/"))


class AclHandling(Enum):
    IGNORE = "IGNORE"
    OVERWRITE = "OVERWRITE"
    MERGE = "MERGE"
    MERGE_PRESERVE = "MERGE_PRESERVE"
    CLEAR = "CLEAR"


class ConflictResolution(Enum):
    NONE = "None"
    REPLACE = "Replace"
    INCREMENT_VERSION = "IncrementVersion"


class ErrorKind(Enum):
    REPOSITORY_FAILURE = "RepositoryFailure"
    EMPTY_PACKAGE_REFUSED = "EmptyPackageRefused"
    ARCHIVE_BUILD_FAILURE = "ArchiveBuildFailure"
    SERIALIZATION_FAILURE = "SerializationFailure"
    INVALID_CONFIGURATION = "InvalidConfiguration"


@dataclass(frozen=True)
class QuerySpec:
    statement: str
    language: str = DEFAULT_QUERY_LANGUAGE
    relative_path: Optional[str] = None  # e.g. "_jcr_content/meta"; never rooted


@dataclass(frozen=True)
class Resource:
    """
    A node in the content store. Equality and hashing use the canonical
    path only, so a set of resources is deduplicated by path.
    """
    path: str
    kind: str = field(default="file", compare=False)  # file | folder
    size_bytes: int = field(default=0, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "path", canonical_path(self.path))

    @property
    def name(self) -> str:
        return self.path.rsplit("/", 1)[-1]


ResourceSet = FrozenSet[Resource]


@dataclass(frozen=True)
class PackageIdentity:
    name: str = DEFAULT_PACKAGE_NAME
    group: str = DEFAULT_PACKAGE_GROUP_NAME
    version: str = DEFAULT_PACKAGE_VERSION


@dataclass(frozen=True)
class PackageProperties:
    acl_handling: AclHandling = AclHandling.OVERWRITE
    description: str = DEFAULT_PACKAGE_DESCRIPTION
    conflict_resolution: ConflictResolution = ConflictResolution.INCREMENT_VERSION


@dataclass(frozen=True)
class BuiltPackage:
    identity: PackageIdentity  # as written; version may have been bumped
    path: str
    resources: ResourceSet
    properties: PackageProperties
    thumbnail_attached: bool = False


@dataclass(frozen=True)
class PreviewEntry:
    path: str
    kind: str
    size_bytes: int
    import_mode: str = "replace"


@dataclass(frozen=True)
class PreviewDescription:
    entries: Tuple[PreviewEntry, ...] = ()

    @property
    def total(self) -> int:
        return len(self.entries)


@dataclass(frozen=True)
class PackagerRequest:
    query: QuerySpec
    preview: bool = False
    identity: PackageIdentity = PackageIdentity()
    properties: PackageProperties = PackageProperties()


@dataclass(frozen=True)
class SuccessResult:
    package: BuiltPackage
    status: str = field(default="success", init=False)


@dataclass(frozen=True)
class PreviewResult:
    resources: ResourceSet
    description: PreviewDescription
    status: str = field(default="preview", init=False)


@dataclass(frozen=True)
class ErrorResult:
    kind: ErrorKind
    message: str
    status: str = field(default="error", init=False)


Result = Union[SuccessResult, PreviewResult, ErrorResult]
