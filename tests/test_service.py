import json
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from querypackager.core.service import QueryPackager, RequestContext, handle_request
from querypackager.core.store import FileContentStore, StoreSession
from querypackager.demo import make_demo_store
from querypackager.models import (
    ErrorKind,
    ErrorResult,
    PackageIdentity,
    PackagerRequest,
    PreviewResult,
    QuerySpec,
    Resource,
    SuccessResult,
)

PAGES = "/content/site/*/_jcr_content"


class TestQueryPackager(unittest.TestCase):
    def setUp(self):
        self._tin = tempfile.TemporaryDirectory()
        self._tout = tempfile.TemporaryDirectory()
        self.packages = Path(self._tout.name) / "packages"

    def tearDown(self):
        self._tin.cleanup()
        self._tout.cleanup()

    def _packager(self, with_thumbnail=True):
        root = make_demo_store(self._tin.name, with_thumbnail=with_thumbnail)
        return QueryPackager(FileContentStore(str(root)), str(self.packages))

    def test_preview_lists_projected_resources(self):
        packager = self._packager()
        request = PackagerRequest(query=QuerySpec(statement=PAGES, relative_path="meta"), preview=True)

        result = packager.handle(request)
        self.assertIsInstance(result, PreviewResult)
        self.assertEqual(
            [e.path for e in result.description.entries],
            [
                "/content/site/about/_jcr_content/meta",
                "/content/site/home/_jcr_content/meta",
            ],
        )
        self.assertFalse(self.packages.exists())

        again = packager.handle(request)
        self.assertEqual(again.description, result.description)

    def test_empty_set_preview_is_not_an_error(self):
        packager = self._packager()
        result = packager.handle(PackagerRequest(query=QuerySpec(statement="/nothing/**"), preview=True))
        self.assertIsInstance(result, PreviewResult)
        self.assertEqual(result.description.total, 0)

    def test_empty_set_commit_is_refused(self):
        packager = self._packager()
        result = packager.handle(PackagerRequest(query=QuerySpec(statement="/nothing/**")))
        self.assertIsInstance(result, ErrorResult)
        self.assertEqual(result.kind, ErrorKind.EMPTY_PACKAGE_REFUSED)
        self.assertEqual(result.status, "error")
        self.assertFalse(self.packages.exists())

    def test_commit_without_thumbnail(self):
        packager = self._packager(with_thumbnail=False)
        result = packager.handle(PackagerRequest(query=QuerySpec(statement=PAGES, relative_path="meta")))

        self.assertIsInstance(result, SuccessResult)
        self.assertEqual(result.status, "success")
        pkg = result.package
        self.assertFalse(pkg.thumbnail_attached)
        self.assertEqual(pkg.identity, PackageIdentity(name="query", group="Query", version="1.0.0"))
        self.assertEqual(len(pkg.resources), 2)
        self.assertTrue(Path(pkg.path).exists())

    def test_commit_with_thumbnail(self):
        packager = self._packager()
        result = packager.handle(PackagerRequest(query=QuerySpec(statement=PAGES)))
        self.assertIsInstance(result, SuccessResult)
        self.assertTrue(result.package.thumbnail_attached)
        self.assertEqual(len(result.package.resources), 3)

    def test_query_failure_becomes_error_result(self):
        packager = self._packager()
        result = packager.handle(PackagerRequest(query=QuerySpec(statement="(", language="regex")))
        self.assertIsInstance(result, ErrorResult)
        self.assertEqual(result.kind, ErrorKind.REPOSITORY_FAILURE)

    def test_unreachable_store_becomes_error_result(self):
        packager = QueryPackager(FileContentStore(str(Path(self._tin.name) / "missing")), str(self.packages))
        result = packager.handle(PackagerRequest(query=QuerySpec(statement=PAGES)))
        self.assertIsInstance(result, ErrorResult)
        self.assertEqual(result.kind, ErrorKind.REPOSITORY_FAILURE)

    def test_session_released_on_error(self):
        packager = self._packager()
        with mock.patch.object(StoreSession, "close", autospec=True) as close:
            result = packager.handle(PackagerRequest(query=QuerySpec(statement="/nothing/**")))
        self.assertIsInstance(result, ErrorResult)
        close.assert_called_once()

    def test_request_context_closes_session(self):
        packager = self._packager()
        with packager.request_context() as context:
            session = context.executor
            self.assertFalse(session.closed)
        self.assertTrue(session.closed)

    def test_collaborator_errors_become_error_results(self):
        executor = mock.Mock()
        executor.execute.return_value = ["/content/a"]
        resolver = mock.Mock()
        resolver.resolve.side_effect = ConnectionError("store went away")
        context = RequestContext(executor=executor, resolver=resolver, builder=mock.Mock())

        result = handle_request(PackagerRequest(query=QuerySpec(statement="q"), preview=True), context)
        self.assertIsInstance(result, ErrorResult)
        self.assertEqual(result.kind, ErrorKind.REPOSITORY_FAILURE)
        self.assertIn("store went away", result.message)

        resolver = mock.Mock()
        resolver.resolve.return_value = Resource("/content/a")
        builder = mock.Mock()
        builder.build.side_effect = RuntimeError("disk full")
        context = RequestContext(executor=executor, resolver=resolver, builder=builder)

        result = handle_request(PackagerRequest(query=QuerySpec(statement="q")), context)
        self.assertIsInstance(result, ErrorResult)
        self.assertEqual(result.kind, ErrorKind.ARCHIVE_BUILD_FAILURE)

    def test_preview_report_written_without_packaging(self):
        packager = self._packager()
        report = Path(self._tout.name) / "reports" / "preview.html"
        request = PackagerRequest(query=QuerySpec(statement=PAGES, relative_path="meta"))

        result = packager.preview_report(request, str(report))
        self.assertIsInstance(result, PreviewResult)
        self.assertTrue(report.exists())
        self.assertIn("/content/site/home/_jcr_content/meta", report.read_text(encoding="utf-8"))
        self.assertFalse(self.packages.exists())

    def test_preview_report_skipped_on_error(self):
        packager = self._packager()
        report = Path(self._tout.name) / "preview.html"
        result = packager.preview_report(
            PackagerRequest(query=QuerySpec(statement="(", language="regex")), str(report)
        )
        self.assertIsInstance(result, ErrorResult)
        self.assertFalse(report.exists())


class TestRespond(unittest.TestCase):
    def setUp(self):
        self._tin = tempfile.TemporaryDirectory()
        self._tout = tempfile.TemporaryDirectory()
        root = make_demo_store(self._tin.name)
        self.packager = QueryPackager(FileContentStore(str(root)), self._tout.name)

    def tearDown(self):
        self._tin.cleanup()
        self._tout.cleanup()

    def test_preview_json(self):
        out = json.loads(self.packager.respond({"query": PAGES, "relPath": "meta"}, preview=True))
        self.assertEqual(out["status"], "preview")
        self.assertEqual(
            [f["rootPath"] for f in out["filterSets"]],
            ["/content/site/about/_jcr_content/meta", "/content/site/home/_jcr_content/meta"],
        )

    def test_success_json_and_version_increment(self):
        config = {"query": "/content/dam/**", "packageName": "dam", "packageGroupName": "assets"}
        first = json.loads(self.packager.respond(config))
        second = json.loads(self.packager.respond(config))

        self.assertEqual(first["status"], "success")
        self.assertEqual(first["name"], "dam")
        self.assertEqual(first["group"], "assets")
        self.assertEqual(first["version"], "1.0.0")
        self.assertTrue(first["thumbnailAttached"])
        self.assertEqual(second["version"], "1.1.0")
        self.assertNotEqual(first["path"], second["path"])

    def test_empty_config_is_an_error_response(self):
        out = json.loads(self.packager.respond({}))
        self.assertEqual(out["status"], "error")
        self.assertEqual(out["kind"], "RepositoryFailure")

    def test_invalid_config_is_an_error_response(self):
        out = json.loads(self.packager.respond({"query": PAGES, "conflictResolution": "Merge"}))
        self.assertEqual(out["status"], "error")
        self.assertEqual(out["kind"], "InvalidConfiguration")
        self.assertIn("conflictResolution", out["msg"])

    def test_empty_commit_response(self):
        out = json.loads(self.packager.respond({"query": "/nothing/**"}))
        self.assertEqual(out, {
            "status": "error",
            "kind": "EmptyPackageRefused",
            "msg": "Refusing to create a package with no filter set rules.",
        })


if __name__ == "__main__":
    unittest.main()
