"""Remote state fetch module.

This module handles:
- Fetching the previous run's manifests from the publishing host
- Downloading the previous run's bundle
- Treating any non-success response as "no prior run"
- Bounded retry on transport errors

A missing remote resource is the legitimate first-run condition and never
aborts the pipeline. Transport errors that persist after retrying do.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import TypeVar

import httpx

from blockbuild.errors import FetchError

logger = logging.getLogger(__name__)

# Remote resource names published by every run
HASHES_FILE = "hashes.txt"
COMMITS_FILE = "commits.txt"
BUNDLE_FILE = "out.tar.gz"

# Chunk size for downloads (bytes)
DOWNLOAD_CHUNK_SIZE = 64 * 1024  # 64 KB

# Delay between retries (seconds), multiplied by the attempt number
RETRY_BACKOFF = 1.0

T = TypeVar("T")


@dataclass
class PriorState:
    """State published by the previous run.

    Attributes:
        hashes: Previous hash manifest text (informational).
        commits: Previous commit manifest text.
        bundle_path: Local path of the downloaded previous bundle.
    """

    hashes: str | None = None
    commits: str | None = None
    bundle_path: Path | None = None

    @property
    def is_first_run(self) -> bool:
        return self.hashes is None and self.commits is None and self.bundle_path is None


class RemoteStateFetcher:
    """Fetches prior-run resources relative to the configured host.

    The client must be created with base_url set to the host.
    """

    def __init__(
        self,
        client: httpx.Client,
        retries: int = 2,
        backoff: float = RETRY_BACKOFF,
    ) -> None:
        self.client = client
        self.retries = retries
        self.backoff = backoff

    def _with_retry(self, path: str, attempt_fn: Callable[[], T]) -> T:
        attempts = self.retries + 1
        for attempt in range(1, attempts + 1):
            try:
                return attempt_fn()
            except httpx.RequestError as e:
                if attempt == attempts:
                    code = (
                        "timeout"
                        if isinstance(e, httpx.TimeoutException)
                        else "network_error"
                    )
                    raise FetchError(
                        f"Network error fetching {path} after {attempts} attempt(s): {e}",
                        code=code,
                    ) from e
                logger.warning(
                    "Fetching %s failed (attempt %d/%d): %s", path, attempt, attempts, e
                )
                time.sleep(self.backoff * attempt)
        raise AssertionError("unreachable")

    def fetch_text(self, path: str) -> str | None:
        """Fetch a text resource.

        Args:
            path: Path relative to the host.

        Returns:
            Resource content, or None if the host did not return success.

        Raises:
            FetchError: If the request fails at the transport level.
        """

        def attempt() -> str | None:
            response = self.client.get(path)
            if not response.is_success:
                logger.info(
                    "No previous %s (HTTP %d)", path, response.status_code
                )
                return None
            return response.text

        return self._with_retry(path, attempt)

    def download(self, path: str, dest_path: Path) -> bool:
        """Stream a binary resource to dest_path.

        Args:
            path: Path relative to the host.
            dest_path: Destination file.

        Returns:
            True if downloaded, False if the host did not return success.

        Raises:
            FetchError: If the request fails at the transport level.
        """

        def attempt() -> bool:
            with self.client.stream("GET", path) as response:
                if not response.is_success:
                    logger.info(
                        "No previous %s (HTTP %d)", path, response.status_code
                    )
                    return False

                dest_path.parent.mkdir(parents=True, exist_ok=True)
                total_bytes = 0
                with dest_path.open("wb") as f:
                    for chunk in response.iter_bytes(DOWNLOAD_CHUNK_SIZE):
                        f.write(chunk)
                        total_bytes += len(chunk)

            logger.info("Downloaded %s (%d bytes)", path, total_bytes)
            return True

        try:
            return self._with_retry(path, attempt)
        except FetchError:
            dest_path.unlink(missing_ok=True)
            raise


def create_client(host: str, timeout: float) -> httpx.Client:
    """Create an HTTP client rooted at the publishing host."""
    return httpx.Client(base_url=host, timeout=timeout, follow_redirects=True)


def fetch_prior_state(fetcher: RemoteStateFetcher, tmp_dir: Path) -> PriorState:
    """Fetch every resource published by the previous run.

    Args:
        fetcher: Remote state fetcher.
        tmp_dir: Directory receiving the downloaded bundle.

    Returns:
        PriorState; absent resources are None.
    """
    logger.info("Fetching previous build information...")
    hashes = fetcher.fetch_text(HASHES_FILE)
    commits = fetcher.fetch_text(COMMITS_FILE)

    bundle_path: Path | None = tmp_dir / BUNDLE_FILE
    if not fetcher.download(BUNDLE_FILE, bundle_path):
        logger.info("No previous build artifacts found")
        bundle_path = None

    state = PriorState(hashes=hashes, commits=commits, bundle_path=bundle_path)
    if state.is_first_run:
        logger.info("No previous run found, every module will be built")
    if hashes is not None:
        logger.debug("Previous hash manifest has %d entries", len(hashes.splitlines()))
    return state


__all__ = [
    "BUNDLE_FILE",
    "COMMITS_FILE",
    "HASHES_FILE",
    "PriorState",
    "RemoteStateFetcher",
    "create_client",
    "fetch_prior_state",
]
