"""Upstream version discovery for the launcher self-upgrade."""

from typing import Iterable, List, Optional

from packaging import version

from devenv.constants import GITHUB_API_URL, HTTP_TIMEOUT
from devenv.errors import ResolutionError


class VersionResolver:
    """Lists upstream tags and picks the one to upgrade to."""

    PAGE_SIZE = 100

    def __init__(self, repo: str, logger, requests_module, api_url: str = GITHUB_API_URL):
        self.repo = repo
        self.logger = logger
        self.requests = requests_module
        self.api_url = api_url.rstrip("/")

    def list_tags(self) -> List[str]:
        url: Optional[str] = f"{self.api_url}/repos/{self.repo}/tags"
        params: Optional[dict] = {"per_page": self.PAGE_SIZE}
        tags: List[str] = []

        while url:
            self.logger.debug("Listing tags from %s", url)
            try:
                response = self.requests.get(url, params=params, timeout=HTTP_TIMEOUT)
                response.raise_for_status()
                payload = response.json()
            except self.requests.RequestException as exc:
                raise ResolutionError(f"Could not list tags for {self.repo}: {exc}") from exc
            except ValueError as exc:
                raise ResolutionError(f"Tag listing for {self.repo} is not valid JSON: {exc}") from exc

            if not isinstance(payload, list):
                raise ResolutionError(f"Unexpected tag listing format for {self.repo}.")

            tags.extend(item["name"] for item in payload if isinstance(item, dict) and "name" in item)

            # The next page URL already carries the query string.
            url = (getattr(response, "links", None) or {}).get("next", {}).get("url")
            params = None

        return tags

    def latest(self, tags: Iterable[str]) -> str:
        parsed = []
        for tag in tags:
            try:
                parsed.append((version.parse(tag), tag))
            except version.InvalidVersion:
                self.logger.debug("Ignoring non-version tag: %s", tag)

        if not parsed:
            raise ResolutionError(f"No version tags found for {self.repo}.")

        releases = [item for item in parsed if not item[0].is_prerelease]
        candidates = releases or parsed
        return max(candidates, key=lambda item: item[0])[1]

    def resolve(self, requested: Optional[str] = None) -> str:
        if requested:
            return requested
        return self.latest(self.list_tags())
