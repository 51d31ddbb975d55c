"""Launcher snapshot retrieval from the upstream repository."""

from concurrent.futures import ThreadPoolExecutor
from typing import List, Sequence

from devenv.constants import GITHUB_RAW_URL, HTTP_TIMEOUT
from devenv.errors import FetchError


class ArtifactFetcher:
    """Fetches the launcher text at a given upstream tag."""

    def __init__(
        self,
        repo: str,
        path: str,
        logger,
        requests_module,
        raw_url: str = GITHUB_RAW_URL,
    ):
        self.repo = repo
        self.path = path.lstrip("/")
        self.logger = logger
        self.requests = requests_module
        self.raw_url = raw_url.rstrip("/")

    def url_for(self, tag: str) -> str:
        return f"{self.raw_url}/{self.repo}/{tag}/{self.path}"

    def fetch(self, tag: str) -> str:
        url = self.url_for(tag)
        self.logger.info("Fetching launcher %s from %s", tag, url)

        try:
            response = self.requests.get(url, timeout=HTTP_TIMEOUT)
        except self.requests.RequestException as exc:
            raise FetchError(f"Download failed for launcher {tag}: {exc}") from exc

        if response.status_code == 404:
            raise FetchError(f"Launcher version {tag} does not exist in {self.repo}.")

        try:
            response.raise_for_status()
        except self.requests.RequestException as exc:
            raise FetchError(f"Download failed for launcher {tag}: {exc}") from exc

        return response.text

    def fetch_many(self, tags: Sequence[str]) -> List[str]:
        """Fetch independent tags concurrently, keeping the input order."""
        if not tags:
            return []

        with ThreadPoolExecutor(max_workers=len(tags)) as executor:
            futures = [executor.submit(self.fetch, tag) for tag in tags]
            return [future.result() for future in futures]
