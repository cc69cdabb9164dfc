"""
Microsoft Graph client for the Microsoft To Do API.

List groups only exist on the beta endpoint, so group and list navigation
goes to ``/beta`` while task operations and subscriptions use ``/v1.0``.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Optional
from urllib.parse import quote

import requests

from ..auth.token_manager import TokenManager
from ..constants import GRAPH_BASE_URL, GRAPH_BETA_BASE_URL, MAILBOX_NOT_ENABLED, Limits
from ..enums import TodoTaskStatus
from ..exceptions import ErrorCode, FeatureUnavailableError
from .base_client import CapabilityClient


def _seg(value: str) -> str:
    return quote(value, safe="")


class TodoClient(CapabilityClient):
    service_name = "graph"
    error_code = ErrorCode.GRAPH_REQUEST_FAILED

    def __init__(
        self,
        token_manager: TokenManager,
        http: Optional[requests.Session] = None,
        timeout: int = 30,
        base_url: str = GRAPH_BASE_URL,
        beta_url: str = GRAPH_BETA_BASE_URL,
    ):
        super().__init__(base_url, http=http, timeout=timeout)
        self.beta_url = beta_url.rstrip("/")
        self.token_manager = token_manager

    def _current_token(self) -> str:
        return self.token_manager.acquire().access_token

    def _reacquire_token(self, rejected_token: str) -> str:
        credential = self.token_manager.acquire(force_refresh=True, stale_token=rejected_token)
        return credential.access_token

    def _raise_for_status(self, method: str, url: str, response: requests.Response) -> None:
        if MAILBOX_NOT_ENABLED in response.text:
            raise FeatureUnavailableError(
                http_status=response.status_code, response_body=response.text, url=url
            )
        super()._raise_for_status(method, url, response)

    def _beta(self, path: str) -> str:
        return f"{self.beta_url}/{path.lstrip('/')}"

    def iter_collection(self, path: str, params: Optional[Dict[str, Any]] = None) -> Iterator[Dict]:
        """Yield every item of a collection, following ``@odata.nextLink``."""
        page = self.request("GET", path, params=params) or {}
        pages = 1
        while True:
            yield from page.get("value", [])
            next_link = page.get("@odata.nextLink")
            if not next_link:
                return
            if pages >= Limits.MAX_PAGES:
                self.logger.warning(
                    "Stopped following Graph paging", extra={"path": path, "pages": pages}
                )
                return
            # nextLink already carries the query string
            page = self.request("GET", next_link) or {}
            pages += 1

    # ---- list groups and lists ----------------------------------------------

    def list_groups(self) -> List[Dict]:
        return list(self.iter_collection(self._beta("me/todo/listGroups")))

    def get_group(self, group_id: str) -> Optional[Dict]:
        return self.request("GET", self._beta(f"me/todo/listGroups/{_seg(group_id)}"))

    def list_lists_in_group(self, group_id: str) -> List[Dict]:
        return list(self.iter_collection(self._beta(f"me/todo/listGroups/{_seg(group_id)}/lists")))

    def create_list_in_group(self, group_id: str, display_name: str) -> Dict:
        return self.request(
            "POST",
            self._beta(f"me/todo/listGroups/{_seg(group_id)}/lists"),
            json={"displayName": display_name},
        )

    def get_list(self, list_id: str) -> Optional[Dict]:
        """Fetch a list from the beta endpoint, which includes its ``groupId``."""
        return self.request("GET", self._beta(f"me/todo/lists/{_seg(list_id)}"))

    def list_lists(self) -> List[Dict]:
        return list(self.iter_collection("me/todo/lists"))

    # ---- tasks ----------------------------------------------------------------

    def list_tasks(self, list_id: str, include_completed: bool = False) -> List[Dict]:
        params = {"$select": "id,title,body,status"}
        if not include_completed:
            params["$filter"] = f"status ne '{TodoTaskStatus.COMPLETED.value}'"
        return list(self.iter_collection(f"me/todo/lists/{_seg(list_id)}/tasks", params=params))

    def get_task(self, list_id: str, task_id: str) -> Optional[Dict]:
        return self.request("GET", f"me/todo/lists/{_seg(list_id)}/tasks/{_seg(task_id)}")

    def create_task(self, list_id: str, title: str, body: str) -> Dict:
        return self.request(
            "POST",
            f"me/todo/lists/{_seg(list_id)}/tasks",
            json={"title": title, "body": {"content": body, "contentType": "text"}},
        )

    def update_task(
        self,
        list_id: str,
        task_id: str,
        status: Optional[str] = None,
        body: Optional[str] = None,
    ) -> Optional[Dict]:
        patch: Dict[str, Any] = {}
        if status is not None:
            patch["status"] = status
        if body is not None:
            patch["body"] = {"content": body, "contentType": "text"}
        return self.request(
            "PATCH", f"me/todo/lists/{_seg(list_id)}/tasks/{_seg(task_id)}", json=patch
        )

    # ---- subscriptions --------------------------------------------------------

    def renew_subscription(self, subscription_id: str, expiration: datetime) -> Optional[Dict]:
        expiration_utc = expiration.astimezone(timezone.utc)
        return self.request(
            "PATCH",
            f"subscriptions/{_seg(subscription_id)}",
            json={"expirationDateTime": expiration_utc.strftime("%Y-%m-%dT%H:%M:%S.000Z")},
        )
