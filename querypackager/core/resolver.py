from __future__ import annotations

import logging
from typing import Optional, Set

from querypackager.core.errors import PackagerError, QueryError, RepositoryFailure
from querypackager.core.store import QueryExecutor, ResourceResolver
from querypackager.models import QuerySpec, Resource, ResourceSet

logger = logging.getLogger(__name__)


def _lookup(fn, *args) -> Optional[Resource]:
    try:
        return fn(*args)
    except PackagerError:
        raise
    except Exception as e:
        raise RepositoryFailure(f"Resource lookup failed: {e}") from e


def resolve_resources(
    query: QuerySpec,
    executor: QueryExecutor,
    resolver: ResourceResolver,
) -> ResourceSet:
    """
    Runs the query and turns its matches into a unique set of resources.

    Matches that no longer resolve are skipped. With a relative path set,
    each match is replaced by its child at that path, and a match without
    that child contributes nothing.
    """
    if not (query.statement or "").strip():
        raise QueryError("Query statement is required.")

    try:
        matches = list(executor.execute(query.language, query.statement))
    except PackagerError:
        raise
    except Exception as e:
        raise QueryError(f"Query execution failed: {e}") from e

    rel_path = (query.relative_path or "").strip()
    resources: Set[Resource] = set()

    for path in matches:
        resource = _lookup(resolver.resolve, path)
        if resource is None:
            logger.debug("Skipping unresolvable match: %s", path)
            continue

        if rel_path:
            child = _lookup(resolver.child_of, resource, rel_path)
            if child is None:
                logger.debug("No '%s' below %s; skipping match", rel_path, resource.path)
                continue
            resources.add(child)
        else:
            resources.add(resource)

    logger.info("Query matched %d path(s); %d unique resource(s)", len(matches), len(resources))
    return frozenset(resources)
