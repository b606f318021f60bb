from __future__ import annotations

import logging

from querypackager.config import THUMBNAIL_RESOURCE_PATH
from querypackager.core.archive import ArchiveBuilder
from querypackager.core.errors import ArchiveBuildFailure, EmptyPackageRefused, PackagerError
from querypackager.core.store import ResourceResolver
from querypackager.models import BuiltPackage, PackageIdentity, PackageProperties, ResourceSet

logger = logging.getLogger(__name__)


class PackageAssembler:
    """
    Builds a package from a resolved resource set.

    Empty sets are refused before the archive builder is touched. The
    thumbnail is best-effort: when it is missing or cannot be attached the
    package is returned without one.
    """

    def __init__(
        self,
        builder: ArchiveBuilder,
        resolver: ResourceResolver,
        thumbnail_path: str = THUMBNAIL_RESOURCE_PATH,
    ):
        self.builder = builder
        self.resolver = resolver
        self.thumbnail_path = thumbnail_path

    def build(
        self,
        resources: ResourceSet,
        identity: PackageIdentity,
        properties: PackageProperties,
    ) -> BuiltPackage:
        if not resources:
            raise EmptyPackageRefused()

        try:
            package = self.builder.build(resources, identity, properties)
        except PackagerError:
            raise
        except Exception as e:
            raise ArchiveBuildFailure(f"Package build failed: {e}") from e

        logger.debug("Built package %s", package.path)
        return self._attach_thumbnail(package)

    def _attach_thumbnail(self, package: BuiltPackage) -> BuiltPackage:
        # Any failure here leaves the built package as it is
        try:
            thumbnail = self.resolver.resolve(self.thumbnail_path)
            if thumbnail is None:
                logger.warning("Package thumbnail not found: %s", self.thumbnail_path)
                return package
            return self.builder.attach_thumbnail(package, thumbnail)
        except Exception as e:
            logger.warning("Could not attach thumbnail to %s: %s", package.path, e)
            return package
