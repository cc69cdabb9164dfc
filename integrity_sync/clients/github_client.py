"""
GitHub REST client for issues.
"""

from typing import Callable, Dict, Optional
from urllib.parse import quote

import requests

from ..constants import GITHUB_ACCEPT, GITHUB_API_BASE_URL, GITHUB_API_VERSION
from ..exceptions import AuthError, ErrorCode
from .base_client import CapabilityClient


class GitHubClient(CapabilityClient):
    service_name = "github"
    error_code = ErrorCode.GITHUB_REQUEST_FAILED

    def __init__(
        self,
        token_provider: Callable[[], Optional[str]],
        http: Optional[requests.Session] = None,
        timeout: int = 30,
        base_url: str = GITHUB_API_BASE_URL,
    ):
        super().__init__(base_url, http=http, timeout=timeout)
        self.token_provider = token_provider

    def has_token(self) -> bool:
        return bool(self.token_provider())

    def _current_token(self) -> str:
        token = self.token_provider()
        if not token:
            raise AuthError("GitHub token not configured", error_code=ErrorCode.GITHUB_NO_TOKEN)
        return token

    def _reacquire_token(self, rejected_token: str) -> str:
        # Static tokens can only change through configuration
        return self._current_token()

    def _get_headers(self, token: str) -> Dict[str, str]:
        headers = super()._get_headers(token)
        headers["Accept"] = GITHUB_ACCEPT
        headers["X-GitHub-Api-Version"] = GITHUB_API_VERSION
        return headers

    @staticmethod
    def _issues_path(owner: str, repo: str) -> str:
        return f"repos/{quote(owner, safe='')}/{quote(repo, safe='')}/issues"

    def create_issue(self, owner: str, repo: str, title: str, body: str) -> Dict:
        return self.request(
            "POST", self._issues_path(owner, repo), json={"title": title, "body": body}
        )

    def get_issue(self, owner: str, repo: str, number: int) -> Optional[Dict]:
        return self.request("GET", f"{self._issues_path(owner, repo)}/{int(number)}")

    def update_issue_state(self, owner: str, repo: str, number: int, state: str) -> Optional[Dict]:
        return self.request(
            "PATCH", f"{self._issues_path(owner, repo)}/{int(number)}", json={"state": state}
        )
