from __future__ import annotations

from querypackager.models import ErrorKind


class PackagerError(Exception):
    """Base for failures that abort a request and map to an ErrorResult."""
    kind = ErrorKind.REPOSITORY_FAILURE


class RepositoryFailure(PackagerError):
    kind = ErrorKind.REPOSITORY_FAILURE


class QueryError(RepositoryFailure):
    """Malformed statement, unknown language or unreachable store."""


class EmptyPackageRefused(PackagerError):
    kind = ErrorKind.EMPTY_PACKAGE_REFUSED

    def __init__(self, message: str = "Refusing to create a package with no filter set rules."):
        super().__init__(message)


class ArchiveBuildFailure(PackagerError):
    kind = ErrorKind.ARCHIVE_BUILD_FAILURE


class SerializationFailure(PackagerError):
    kind = ErrorKind.SERIALIZATION_FAILURE


class ConfigurationError(PackagerError):
    kind = ErrorKind.INVALID_CONFIGURATION
