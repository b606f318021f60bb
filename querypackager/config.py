APP_NAME = "Query Packager"
APP_VERSION = "0.3.0"

HASH_ALGO_DEFAULT = "sha1"

DEFAULT_QUERY_LANGUAGE = "glob"

DEFAULT_PACKAGE_NAME = "query"
DEFAULT_PACKAGE_GROUP_NAME = "Query"
DEFAULT_PACKAGE_VERSION = "1.0.0"
DEFAULT_PACKAGE_DESCRIPTION = (
    "Query Package initially defined by a Query Packager configuration."
)

# Looked up in the content store after every successful build
THUMBNAIL_RESOURCE_PATH = "/apps/querypackager/definition/package-thumbnail.png"

# Layout inside a built archive
ARCHIVE_CONTENT_ROOT = "jcr_root"
ARCHIVE_DEFINITION_PATH = "META-INF/vault/definition.json"
ARCHIVE_THUMBNAIL_PATH = "META-INF/vault/definition/thumbnail.png"
