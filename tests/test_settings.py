import tempfile
import unittest
from pathlib import Path

from querypackager.core.errors import ConfigurationError
from querypackager.core.settings import PackagerSettings, from_json_dict, load_settings, save_settings
from querypackager.models import AclHandling, ConflictResolution, PackageIdentity, PackageProperties


class TestSettings(unittest.TestCase):
    def test_defaults(self):
        s = from_json_dict({})
        self.assertEqual(s.query.language, "glob")
        self.assertEqual(s.query.statement, "")
        self.assertIsNone(s.query.relative_path)
        self.assertEqual(s.identity, PackageIdentity(name="query", group="Query", version="1.0.0"))
        self.assertEqual(s.properties, PackageProperties())
        self.assertEqual(s.properties.acl_handling, AclHandling.OVERWRITE)
        self.assertEqual(s.properties.conflict_resolution, ConflictResolution.INCREMENT_VERSION)

    def test_blank_values_fall_back_to_defaults(self):
        s = from_json_dict({"packageName": "  ", "relPath": "", "packageVersion": None})
        self.assertEqual(s.identity.name, "query")
        self.assertEqual(s.identity.version, "1.0.0")
        self.assertIsNone(s.query.relative_path)

    def test_original_enum_spellings(self):
        s = from_json_dict({
            "query": "/content/**",
            "queryLanguage": "regex",
            "relPath": "_jcr_content",
            "packageACLHandling": "MergePreserve",
            "conflictResolution": "Replace",
        })
        self.assertEqual(s.query.language, "regex")
        self.assertEqual(s.query.relative_path, "_jcr_content")
        self.assertEqual(s.properties.acl_handling, AclHandling.MERGE_PRESERVE)
        self.assertEqual(s.properties.conflict_resolution, ConflictResolution.REPLACE)

        s2 = from_json_dict({"packageACLHandling": "merge_preserve", "conflictResolution": "increment-version"})
        self.assertEqual(s2.properties.acl_handling, AclHandling.MERGE_PRESERVE)
        self.assertEqual(s2.properties.conflict_resolution, ConflictResolution.INCREMENT_VERSION)

    def test_invalid_enum(self):
        with self.assertRaises(ConfigurationError):
            from_json_dict({"packageACLHandling": "Sometimes"})

    def test_to_request(self):
        s = from_json_dict({"query": "/content/**"})
        req = s.to_request(preview=True)
        self.assertTrue(req.preview)
        self.assertEqual(req.query.statement, "/content/**")
        self.assertEqual(req.identity, s.identity)

    def test_missing_file_gives_defaults(self):
        with tempfile.TemporaryDirectory() as td:
            s = load_settings(str(Path(td) / "configuration.json"))
        self.assertEqual(s, PackagerSettings())

    def test_save_and_load(self):
        with tempfile.TemporaryDirectory() as td:
            original = from_json_dict({
                "query": "/content/site/*",
                "relPath": "meta",
                "packageName": "site",
                "packageACLHandling": "Clear",
                "conflictResolution": "None",
            })
            path = save_settings(original, str(Path(td) / "cfg" / "configuration.json"))
            self.assertTrue(path.exists())
            self.assertEqual(load_settings(str(path)), original)

    def test_unreadable_file(self):
        with tempfile.TemporaryDirectory() as td:
            p = Path(td) / "configuration.json"
            p.write_text("{not json", encoding="utf-8")
            with self.assertRaises(ConfigurationError):
                load_settings(str(p))
            p.write_text("[1, 2]", encoding="utf-8")
            with self.assertRaises(ConfigurationError):
                load_settings(str(p))


if __name__ == "__main__":
    unittest.main()
