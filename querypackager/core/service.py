from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, replace
from typing import Any, Dict, Iterator, Union

from querypackager.config import THUMBNAIL_RESOURCE_PATH
from querypackager.core.archive import ArchiveBuilder, ZipArchiveBuilder
from querypackager.core.assembler import PackageAssembler
from querypackager.core.errors import PackagerError
from querypackager.core.preview import render_preview
from querypackager.core.reporting import build_preview_html, write_report_html
from querypackager.core.resolver import resolve_resources
from querypackager.core.responses import error_json, result_to_json
from querypackager.core.settings import PackagerSettings, from_json_dict
from querypackager.core.store import FileContentStore, QueryExecutor, ResourceResolver
from querypackager.models import ErrorKind, ErrorResult, PackagerRequest, PreviewResult, Result, SuccessResult

logger = logging.getLogger(__name__)


@dataclass
class RequestContext:
    """Collaborators owned by a single request."""
    executor: QueryExecutor
    resolver: ResourceResolver
    builder: ArchiveBuilder
    thumbnail_path: str = THUMBNAIL_RESOURCE_PATH


def handle_request(request: PackagerRequest, context: RequestContext) -> Result:
    """
    Resolves the request's query, then either previews the resources or
    builds a package from them. Failures come back as an ErrorResult.
    """
    mode = "PREVIEW" if request.preview else "PACKAGING"
    logger.info("---- %s START ----", mode)
    logger.info("Query (%s): %s | relPath: %s",
                request.query.language, request.query.statement, request.query.relative_path)

    result: Result
    try:
        resources = resolve_resources(request.query, context.executor, context.resolver)

        if request.preview:
            result = PreviewResult(resources=resources, description=render_preview(resources))
        else:
            assembler = PackageAssembler(context.builder, context.resolver, context.thumbnail_path)
            package = assembler.build(resources, request.identity, request.properties)
            result = SuccessResult(package=package)
    except PackagerError as e:
        logger.error("%s: %s", e.kind.value, e)
        result = ErrorResult(kind=e.kind, message=str(e))

    logger.info("---- %s DONE ----", mode)
    return result


class QueryPackager:
    """
    Runs packaging requests against a FileContentStore, writing packages
    below packages_root. Every request gets its own store session, closed
    when the request ends.
    """

    def __init__(
        self,
        store: FileContentStore,
        packages_root: str,
        thumbnail_path: str = THUMBNAIL_RESOURCE_PATH,
    ):
        self.store = store
        self.packages_root = packages_root
        self.thumbnail_path = thumbnail_path

    @contextmanager
    def request_context(self) -> Iterator[RequestContext]:
        with self.store.open_session() as session:
            yield RequestContext(
                executor=session,
                resolver=session,
                builder=ZipArchiveBuilder(session, self.packages_root),
                thumbnail_path=self.thumbnail_path,
            )

    def handle(self, request: PackagerRequest) -> Result:
        try:
            with self.request_context() as context:
                return handle_request(request, context)
        except PackagerError as e:
            logger.error("%s: %s", e.kind.value, e)
            return ErrorResult(kind=e.kind, message=str(e))

    def preview_report(self, request: PackagerRequest, report_path: str) -> Result:
        """
        Previews the request and writes the preview as an HTML report. The
        report is only written for a successful preview; nothing is packaged.
        """
        result = self.handle(replace(request, preview=True))
        if isinstance(result, PreviewResult):
            html_text = build_preview_html(request.query, request.identity, request.properties,
                                           result.description)
            try:
                written = write_report_html(html_text, report_path)
            except OSError as e:
                logger.error("Failed writing preview report %s (%s)", report_path, e)
                return ErrorResult(kind=ErrorKind.REPOSITORY_FAILURE,
                                   message=f"Failed writing preview report {report_path} ({e})")
            logger.info("Preview report written: %s", written)
        return result

    def respond(
        self,
        configuration: Union[PackagerSettings, Dict[str, Any], None],
        preview: bool = False,
    ) -> str:
        """
        Parses the configuration, handles the request and returns the JSON
        response. Always returns a response, error or not.
        """
        logger.debug("Preview mode: %s", preview)
        try:
            if isinstance(configuration, PackagerSettings):
                settings = configuration
            else:
                settings = from_json_dict(configuration or {})
            result = self.handle(settings.to_request(preview=preview))
            return result_to_json(result)
        except PackagerError as e:
            # SerializationFailure and ConfigurationError land here
            logger.error("%s", e)
            return error_json(e.kind, str(e))
