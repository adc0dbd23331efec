# github.py
from __future__ import annotations

import json
import urllib.error
import urllib.request
from pathlib import Path
from typing import List, Optional
from urllib.parse import quote, urljoin

DEFAULT_API_URL = "https://api.github.com"


class GitHubError(Exception):
    """Raised when a GitHub API request fails."""

    def __init__(self, status: int | None, message: str):
        super().__init__(f"GitHub API error ({status}): {message}" if status else message)
        self.status = status
        self.message = message


class GitHubClient:
    """Minimal client for the GitHub releases API."""

    def __init__(self, token: str, repository: str, api_url: str = DEFAULT_API_URL, timeout: float = 120):
        """
        Args:
            token: Token with contents:write (and discussions:write when a
                discussion category is requested)
            repository: "owner/name"
            api_url: REST API base URL (GitHub Enterprise uses a different one)
        """
        if "/" not in repository:
            raise ValueError(f"repository must look like 'owner/name', got {repository!r}")
        self.token = token
        self.repository = repository
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout

    def _request(
        self,
        method: str,
        url: str,
        data: Optional[dict] = None,
        body: Optional[bytes] = None,
        content_type: str = "application/json",
    ):
        """
        Make an HTTP request and return the parsed JSON response.

        `url` is either absolute (asset uploads go to uploads.github.com) or a
        path relative to the API base URL.

        Raises:
            GitHubError: If the request fails
        """
        if not url.startswith("http"):
            url = urljoin(self.api_url + "/", url.lstrip("/"))

        headers = {
            "Accept": "application/vnd.github+json",
            "Authorization": f"Bearer {self.token}",
            "X-GitHub-Api-Version": "2022-11-28",
            "Content-Type": content_type,
        }
        if data is not None:
            body = json.dumps(data).encode("utf-8")

        req = urllib.request.Request(url, data=body, headers=headers, method=method)

        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as response:
                payload = response.read().decode("utf-8")
                return json.loads(payload) if payload else {}
        except urllib.error.HTTPError as e:
            error_body = e.read().decode("utf-8") if e.fp else ""
            raise GitHubError(e.code, f"{method} {url} failed: {e.reason}. {error_body}".strip())
        except urllib.error.URLError as e:
            raise GitHubError(None, f"Network error: {e.reason}")
        except json.JSONDecodeError as e:
            raise GitHubError(None, f"Invalid JSON response: {e}")

    def _repo_path(self, suffix: str) -> str:
        return f"/repos/{self.repository}/{suffix.lstrip('/')}"

    # ------------------------------------------------------------------
    # Releases
    # ------------------------------------------------------------------

    def get_release_by_tag(self, tag: str) -> Optional[dict]:
        try:
            return self._request("GET", self._repo_path(f"releases/tags/{quote(tag, safe='')}"))
        except GitHubError as e:
            if e.status == 404:
                return None
            raise

    def create_release(self, tag: str, *, name: str | None = None, discussion_category: str | None = None) -> dict:
        data = {"tag_name": tag, "name": name or tag, "draft": False, "prerelease": False}
        if discussion_category:
            data["discussion_category_name"] = discussion_category
        return self._request("POST", self._repo_path("releases"), data=data)

    def update_release(self, release_id: int, **fields) -> dict:
        return self._request("PATCH", self._repo_path(f"releases/{release_id}"), data=fields)

    def publish_release(self, tag: str, *, discussion_category: str | None = None) -> dict:
        """Create the release for `tag`, or update the existing one."""
        release = self.get_release_by_tag(tag)
        if release is None:
            return self.create_release(tag, discussion_category=discussion_category)

        fields = {"draft": False}
        if discussion_category:
            fields["discussion_category_name"] = discussion_category
        return self.update_release(release["id"], **fields)

    # ------------------------------------------------------------------
    # Assets
    # ------------------------------------------------------------------

    def list_assets(self, release_id: int) -> List[dict]:
        return self._request("GET", self._repo_path(f"releases/{release_id}/assets?per_page=100")) or []

    def delete_asset(self, asset_id: int) -> None:
        self._request("DELETE", self._repo_path(f"releases/assets/{asset_id}"))

    def upload_asset(self, release: dict, path: Path) -> dict:
        """Upload `path` to `release`, replacing a same-named asset."""
        for asset in self.list_assets(release["id"]):
            if asset.get("name") == path.name:
                self.delete_asset(asset["id"])

        # upload_url is an RFC 6570 template: ".../assets{?name,label}"
        upload_url = release["upload_url"].split("{", 1)[0]
        return self._request(
            "POST",
            f"{upload_url}?name={quote(path.name)}",
            body=path.read_bytes(),
            content_type="application/gzip" if path.name.endswith(".gz") else "application/octet-stream",
        )
