"""Package fetchers.

A fetcher downloads the packaged bytes of one locked registry package.
Verification against the lock checksum happens in the resolver, so a
fetcher only has to report transport and registry failures.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from types import TracebackType
from typing import Self

import httpx
import structlog

from shipwright_core.errors import FetchError
from shipwright_core.manifest.models import LockedPackage
from shipwright_core.schemas.release_spec import RegistryConfig

logger = structlog.get_logger(__name__)


class PackageFetcher(ABC):
    """Downloads locked packages from their source."""

    @abstractmethod
    def fetch(self, package: LockedPackage) -> bytes:
        """Return the packaged bytes for a locked registry package.

        Raises:
            FetchError: If the package cannot be downloaded.
        """

    def close(self) -> None:  # noqa: B027
        """Release any held resources."""

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()


class RegistryFetcher(PackageFetcher):
    """Fetch .crate files over HTTPS from a crates.io-compatible download endpoint.

    Attributes:
        config: Registry download configuration.

    Example:
        >>> with RegistryFetcher(RegistryConfig()) as fetcher:
        ...     data = fetcher.fetch(locked_package)
    """

    def __init__(
        self,
        config: RegistryConfig,
        *,
        client: httpx.Client | None = None,
    ) -> None:
        self.config = config
        self._owns_client = client is None
        self._client = client or httpx.Client(
            timeout=config.timeout_seconds,
            follow_redirects=True,
            headers={"User-Agent": "shipwright"},
        )
        self._log = logger.bind(component="registry_fetcher")

    def download_url(self, package: LockedPackage) -> str:
        return self.config.download_url.format(name=package.name, version=package.version)

    def fetch(self, package: LockedPackage) -> bytes:
        url = self.download_url(package)
        self._log.debug("package_fetch_started", package=package.name, version=package.version)

        try:
            response = self._client.get(url)
        except httpx.TimeoutException as e:
            raise FetchError(
                package.name,
                package.version,
                f"registry did not respond within {self.config.timeout_seconds}s",
                internal_details=f"GET {url}: {e}",
            ) from e
        except httpx.HTTPError as e:
            raise FetchError(
                package.name,
                package.version,
                "registry unreachable",
                internal_details=f"GET {url}: {type(e).__name__}: {e}",
            ) from e

        if response.status_code == 404:
            raise FetchError(package.name, package.version, "not found in registry")
        if response.status_code != 200:
            raise FetchError(
                package.name,
                package.version,
                f"registry returned HTTP {response.status_code}",
                internal_details=f"GET {url}",
            )

        self._log.debug(
            "package_fetch_completed",
            package=package.name,
            version=package.version,
            size=len(response.content),
        )
        return response.content

    def close(self) -> None:
        if self._owns_client:
            self._client.close()
