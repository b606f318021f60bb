from __future__ import annotations

import hashlib
import json
import logging
import os
import tempfile
import zipfile
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Protocol, Tuple

from querypackager.config import (
    APP_NAME,
    APP_VERSION,
    ARCHIVE_CONTENT_ROOT,
    ARCHIVE_DEFINITION_PATH,
    ARCHIVE_THUMBNAIL_PATH,
    HASH_ALGO_DEFAULT,
)
from querypackager.core.errors import ArchiveBuildFailure, PackagerError, SerializationFailure
from querypackager.core.store import StoreSession
from querypackager.models import (
    BuiltPackage,
    ConflictResolution,
    PackageIdentity,
    PackageProperties,
    Resource,
    ResourceSet,
)

logger = logging.getLogger(__name__)


class ArchiveBuilder(Protocol):
    def build(
        self,
        resources: ResourceSet,
        identity: PackageIdentity,
        properties: PackageProperties,
    ) -> BuiltPackage:
        ...

    def attach_thumbnail(self, package: BuiltPackage, image: Resource) -> BuiltPackage:
        ...


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def _hash_file(path: Path, algo: str, chunk_size: int = 1024 * 1024) -> str:
    h = hashlib.new(algo)
    with path.open("rb") as f:
        for chunk in iter(lambda: f.read(chunk_size), b""):
            h.update(chunk)
    return h.hexdigest()


# -------------------------
# Versions
# -------------------------
def version_key(version: str) -> Tuple[Tuple[int, Any], ...]:
    """
    Sort key for dotted versions: numeric segments compare as numbers and
    sort before text segments ("1.10" > "1.9", "1.0" < "1.0.0").
    """
    key = []
    for seg in version.strip().split("."):
        if seg.isdigit():
            key.append((0, int(seg)))
        else:
            key.append((1, seg))
    return tuple(key)


def bump_version(version: str) -> str:
    """
    Next minor version: 1.0.0 -> 1.1.0, 2.3 -> 2.4, 7 -> 8.
    A non-numeric minor segment gets ".1" appended instead.
    """
    segs = version.strip().split(".")
    if len(segs) == 1:
        return str(int(segs[0]) + 1) if segs[0].isdigit() else f"{segs[0]}.1"
    if not segs[1].isdigit():
        return f"{version.strip()}.1"
    segs[1] = str(int(segs[1]) + 1)
    segs[2:] = ["0" if s.isdigit() else s for s in segs[2:]]
    return ".".join(segs)


def next_version(requested: str, existing: Iterable[str]) -> str:
    taken = list(existing)
    if requested not in taken:
        return requested
    latest = max(taken, key=version_key)
    candidate = bump_version(latest)
    while candidate in taken:
        candidate = bump_version(candidate)
    return candidate


# -------------------------
# Package definition
# -------------------------
def build_definition_dict(
    identity: PackageIdentity,
    properties: PackageProperties,
    requested_version: str,
    resources: ResourceSet,
    files: List[Dict[str, Any]],
    hash_algo: str = HASH_ALGO_DEFAULT,
) -> Dict[str, Any]:
    return {
        "tool": APP_NAME,
        "toolVersion": APP_VERSION,
        "created_utc": _utc_now_iso(),
        "name": identity.name,
        "group": identity.group,
        "version": identity.version,
        "requestedVersion": requested_version,
        "description": properties.description,
        "acHandling": properties.acl_handling.value,
        "conflictResolution": properties.conflict_resolution.value,
        "filter": [
            {"root": r.path, "mode": "replace"}
            for r in sorted(resources, key=lambda r: r.path)
        ],
        "hashAlgo": hash_algo,
        "files": files,
    }


def read_definition(archive_path: str) -> Dict[str, Any]:
    with zipfile.ZipFile(archive_path) as zf:
        return json.loads(zf.read(ARCHIVE_DEFINITION_PATH).decode("utf-8"))


def _check_path_segment(label: str, value: str) -> None:
    """
    Group, name and version become one file system segment each.
    """
    if not value or value.strip() in (".", "..") or any(c in value for c in ("/", "\\", "\0")):
        raise ArchiveBuildFailure(f"Invalid package {label}: '{value}'")


class ZipArchiveBuilder:
    """
    Writes packages as zip files under packages_root/<group>/<name>-<version>.zip.

    Content goes below jcr_root/ using its content path, the package
    definition (identity, policy, filter roots and file hashes) goes to
    META-INF/vault/definition.json. Archives are written to a temporary
    file first and moved into place once complete.
    """

    def __init__(self, session: StoreSession, packages_root: str, hash_algo: str = HASH_ALGO_DEFAULT):
        if hash_algo not in ("sha1", "md5", "sha256"):
            raise ValueError(f"Unsupported hash algo: {hash_algo}")
        self.session = session
        self.packages_root = Path(packages_root).resolve()
        self.hash_algo = hash_algo

    def package_path(self, identity: PackageIdentity) -> Path:
        for label, value in (("group", identity.group), ("name", identity.name), ("version", identity.version)):
            _check_path_segment(label, value)
        return self.packages_root / identity.group / f"{identity.name}-{identity.version}.zip"

    def existing_versions(self, identity: PackageIdentity) -> List[str]:
        group_dir = self.packages_root / identity.group
        if not group_dir.is_dir():
            return []

        versions: List[str] = []
        for path in sorted(group_dir.glob("*.zip")):
            try:
                definition = read_definition(str(path))
            except (OSError, KeyError, ValueError, zipfile.BadZipFile) as e:
                logger.warning("Ignoring unreadable package %s (%s)", path, e)
                continue
            if definition.get("name") == identity.name:
                versions.append(str(definition.get("version", "")))
        return versions

    def _resolve_identity(self, identity: PackageIdentity, mode: ConflictResolution) -> PackageIdentity:
        target = self.package_path(identity)
        existing = self.existing_versions(identity)
        ours = identity.version in existing
        if not ours and not target.exists():
            return identity

        if mode is ConflictResolution.INCREMENT_VERSION:
            # "a"/"1.0-0" and "a-1.0"/"0" share a file name; a taken file is a conflict too
            taken = existing + [identity.version]
            version = next_version(identity.version, taken)
            while self.package_path(replace(identity, version=version)).exists():
                taken.append(version)
                version = next_version(identity.version, taken)
            logger.info("Package %s:%s:%s exists; using version %s",
                        identity.group, identity.name, identity.version, version)
            return replace(identity, version=version)
        if mode is ConflictResolution.REPLACE and ours:
            logger.info("Replacing existing package %s", target)
            return identity
        if not ours:
            raise ArchiveBuildFailure(f"Package file {target} belongs to a different package")
        raise ArchiveBuildFailure(
            f"Package already exists: {identity.group}/{identity.name}-{identity.version}"
        )

    def _write_atomic(self, target: Path, write) -> None:
        tmp_name: Optional[str] = None
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=str(target.parent), suffix=".partial")
            os.close(fd)
            with zipfile.ZipFile(tmp_name, "w", compression=zipfile.ZIP_DEFLATED) as zf:
                write(zf)
            os.replace(tmp_name, target)
            tmp_name = None
        except PackagerError:
            raise
        except (OSError, zipfile.BadZipFile) as e:
            raise ArchiveBuildFailure(f"Failed writing package {target} ({e})") from e
        finally:
            if tmp_name and os.path.exists(tmp_name):
                os.remove(tmp_name)

    def build(
        self,
        resources: ResourceSet,
        identity: PackageIdentity,
        properties: PackageProperties,
    ) -> BuiltPackage:
        final_identity = self._resolve_identity(identity, properties.conflict_resolution)
        target = self.package_path(final_identity)

        def _write(zf: zipfile.ZipFile) -> None:
            seen = set()
            files: List[Dict[str, Any]] = []
            for resource in sorted(resources, key=lambda r: r.path):
                if resource.kind == "folder":
                    zf.writestr(f"{ARCHIVE_CONTENT_ROOT}{resource.path}/", b"")
                for content_path, fs_path in self.session.iter_files(resource):
                    # Nested filter roots share files
                    if content_path in seen:
                        continue
                    seen.add(content_path)
                    zf.write(fs_path, f"{ARCHIVE_CONTENT_ROOT}{content_path}")
                    files.append({
                        "path": content_path,
                        "size_bytes": fs_path.stat().st_size,
                        self.hash_algo: _hash_file(fs_path, self.hash_algo),
                    })

            definition = build_definition_dict(
                final_identity, properties, identity.version, resources, files, self.hash_algo,
            )
            try:
                payload = json.dumps(definition, indent=2, ensure_ascii=False)
            except (TypeError, ValueError) as e:
                raise SerializationFailure(f"Package definition could not be encoded ({e})") from e
            zf.writestr(ARCHIVE_DEFINITION_PATH, payload)

        self._write_atomic(target, _write)
        logger.info("Wrote package %s (%d filter root(s))", target, len(resources))

        return BuiltPackage(
            identity=final_identity,
            path=str(target),
            resources=resources,
            properties=properties,
        )

    def attach_thumbnail(self, package: BuiltPackage, image: Resource) -> BuiltPackage:
        data = self.session.read_bytes(image)
        source = Path(package.path)

        def _write(zf: zipfile.ZipFile) -> None:
            with zipfile.ZipFile(source) as old:
                for info in old.infolist():
                    if info.filename == ARCHIVE_THUMBNAIL_PATH:
                        continue
                    zf.writestr(info, old.read(info.filename))
            zf.writestr(ARCHIVE_THUMBNAIL_PATH, data)

        self._write_atomic(source, _write)
        return replace(package, thumbnail_attached=True)
