from __future__ import annotations

import logging
import os
import posixpath
import re
from contextlib import contextmanager
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Pattern, Protocol, Tuple

from querypackager.core.errors import QueryError, RepositoryFailure
from querypackager.models import Resource, canonical_path

logger = logging.getLogger(__name__)

QUERY_LANGUAGES = ("glob", "regex")


class QueryExecutor(Protocol):
    def execute(self, language: str, statement: str) -> Iterable[str]:
        ...


class ResourceResolver(Protocol):
    def resolve(self, path: str) -> Optional[Resource]:
        ...

    def child_of(self, resource: Resource, relative_path: str) -> Optional[Resource]:
        ...


def _glob_to_regex(pattern: str) -> Pattern[str]:
    # "*" stays within one segment, "**" crosses segments, "**/" may match nothing
    out: List[str] = []
    i = 0
    while i < len(pattern):
        c = pattern[i]
        if pattern.startswith("**/", i):
            out.append("(?:.*/)?")
            i += 3
            continue
        if pattern.startswith("**", i):
            out.append(".*")
            i += 2
            continue
        if c == "*":
            out.append("[^/]*")
        elif c == "?":
            out.append("[^/]")
        else:
            out.append(re.escape(c))
        i += 1
    return re.compile("".join(out))


def compile_query(language: str, statement: str) -> Pattern[str]:
    lang = (language or "").strip().lower()
    if lang not in QUERY_LANGUAGES:
        raise QueryError(f"Unsupported query language: {language}")
    if lang == "glob":
        return _glob_to_regex(statement.strip())
    try:
        return re.compile(statement.strip())
    except re.error as e:
        raise QueryError(f"Malformed {language} statement: {statement} ({e})") from e


class FileContentStore:
    """
    Content store backed by a directory tree; content path "/" is the root
    folder. Hidden files and folders are not part of the content tree.
    """

    def __init__(self, root: str, ignore_hidden: bool = True):
        self.root = Path(root).resolve()
        self.ignore_hidden = ignore_hidden

    def fs_path(self, path: str) -> Path:
        rel = canonical_path(path).lstrip("/")
        return self.root / rel if rel else self.root

    @contextmanager
    def open_session(self) -> Iterator["StoreSession"]:
        session = StoreSession(self)
        try:
            yield session
        finally:
            session.close()


class StoreSession:
    """
    One request's view of a FileContentStore.

    The query index is a snapshot taken when the session opens; resolve()
    always looks at the live tree, so entries removed after the snapshot
    show up as resolution gaps rather than errors.
    """

    def __init__(self, store: FileContentStore):
        self.store = store
        self._closed = False
        self._index = self._scan()

    def _scan(self) -> List[str]:
        root = self.store.root
        if not root.is_dir():
            raise RepositoryFailure(f"Content root is not a directory: {root}")

        paths: List[str] = []
        for dirpath, dirnames, filenames in os.walk(root):
            if self.store.ignore_hidden:
                dirnames[:] = [d for d in dirnames if not d.startswith(".")]
                filenames = [f for f in filenames if not f.startswith(".")]

            base = Path(dirpath)
            for name in dirnames + filenames:
                rel = str((base / name).relative_to(root)).replace("\\", "/")
                paths.append("/" + rel)

        paths.sort()
        logger.debug("Indexed %d content paths under %s", len(paths), root)
        return paths

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        self._closed = True
        self._index = []

    def _check_open(self) -> None:
        if self._closed:
            raise RepositoryFailure("Store session is closed.")

    # -------------------------
    # Query execution
    # -------------------------
    def execute(self, language: str, statement: str) -> List[str]:
        self._check_open()
        pattern = compile_query(language, statement)
        return [p for p in self._index if pattern.fullmatch(p)]

    # -------------------------
    # Resource resolution
    # -------------------------
    def resolve(self, path: str) -> Optional[Resource]:
        self._check_open()
        cpath = canonical_path(path)
        if self.store.ignore_hidden and any(seg.startswith(".") for seg in cpath.split("/") if seg):
            return None

        fs = self.store.fs_path(cpath)
        try:
            st = fs.stat()
        except OSError:
            return None

        if fs.is_dir():
            return Resource(path=cpath, kind="folder", size_bytes=0)
        return Resource(path=cpath, kind="file", size_bytes=int(st.st_size))

    def child_of(self, resource: Resource, relative_path: str) -> Optional[Resource]:
        rel = (relative_path or "").strip().lstrip("/")
        if not rel:
            return None
        return self.resolve(posixpath.join(resource.path, rel))

    def iter_files(self, resource: Resource) -> Iterator[Tuple[str, Path]]:
        """
        Yields (content path, filesystem path) for every file at or below
        the resource, in path order.
        """
        self._check_open()
        fs = self.store.fs_path(resource.path)
        if fs.is_file():
            yield resource.path, fs
            return

        for dirpath, dirnames, filenames in os.walk(fs):
            dirnames.sort()
            if self.store.ignore_hidden:
                dirnames[:] = [d for d in dirnames if not d.startswith(".")]
            for name in sorted(filenames):
                if self.store.ignore_hidden and name.startswith("."):
                    continue
                full = Path(dirpath) / name
                rel = str(full.relative_to(self.store.root)).replace("\\", "/")
                yield "/" + rel, full

    def read_bytes(self, resource: Resource) -> bytes:
        self._check_open()
        try:
            return self.store.fs_path(resource.path).read_bytes()
        except OSError as e:
            raise RepositoryFailure(f"Failed reading {resource.path} ({e})") from e
