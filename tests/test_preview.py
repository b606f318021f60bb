import unittest

from querypackager.core.preview import render_preview
from querypackager.models import Resource


class TestPreview(unittest.TestCase):
    def test_sorted_listing(self):
        resources = frozenset([
            Resource("/content/b", kind="folder"),
            Resource("/content/a/file.txt", kind="file", size_bytes=5),
        ])
        desc = render_preview(resources)
        self.assertEqual([e.path for e in desc.entries], ["/content/a/file.txt", "/content/b"])
        self.assertEqual(desc.entries[0].size_bytes, 5)
        self.assertEqual(desc.entries[1].kind, "folder")
        self.assertTrue(all(e.import_mode == "replace" for e in desc.entries))

    def test_repeatable(self):
        resources = frozenset(Resource(f"/content/{i}") for i in range(20))
        self.assertEqual(render_preview(resources), render_preview(resources))

    def test_empty(self):
        desc = render_preview(frozenset())
        self.assertEqual(desc.total, 0)
        self.assertEqual(desc.entries, ())


if __name__ == "__main__":
    unittest.main()
