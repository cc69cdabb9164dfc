"""
Authenticated HTTP client shared by the Graph and GitHub clients.

Every outbound call goes through ``CapabilityClient.request``:

- a 401 triggers exactly one credential re-acquisition and one retry
- 204 (or an empty body) is a successful ``None``
- any other non-2xx becomes a CapabilityError, never retried here
"""

from typing import Any, Dict, Optional

import requests

from ..constants import USER_AGENT, Timeouts
from ..exceptions import CapabilityError, ErrorCode
from ..utils.logger import get_logger


class CapabilityClient:
    service_name = "external"
    error_code = ErrorCode.EXTERNAL_API_ERROR

    def __init__(
        self,
        base_url: str,
        http: Optional[requests.Session] = None,
        timeout: int = Timeouts.EXTERNAL_API_CALL,
    ):
        self.base_url = base_url.rstrip("/")
        self.http = http or requests.Session()
        self.timeout = timeout
        self.logger = get_logger()

    # ---- credential hooks -------------------------------------------------

    def _current_token(self) -> str:
        raise NotImplementedError

    def _reacquire_token(self, rejected_token: str) -> str:
        raise NotImplementedError

    def _get_headers(self, token: str) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": USER_AGENT,
        }

    # ---- request pipeline -------------------------------------------------

    def _url(self, path: str) -> str:
        if path.startswith(("http://", "https://")):
            return path
        return f"{self.base_url}/{path.lstrip('/')}"

    def request(
        self,
        method: str,
        path: str,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Optional[Any]:
        """
        Perform an authenticated call and return the decoded JSON body.

        Raises:
            AuthError: No credential could be produced.
            CapabilityError: Network failure or non-2xx response.
        """
        url = self._url(path)
        token = self._current_token()
        response = self._send(method, url, token, json, params)

        if response.status_code == 401:
            self.logger.warning(
                f"{self.service_name} rejected credential, re-acquiring once",
                extra={"method": method, "url": url},
            )
            token = self._reacquire_token(token)
            response = self._send(method, url, token, json, params)

        return self._handle_response(method, url, response)

    def _send(
        self,
        method: str,
        url: str,
        token: str,
        json: Optional[Dict[str, Any]],
        params: Optional[Dict[str, Any]],
    ) -> requests.Response:
        try:
            return self.http.request(
                method,
                url,
                headers=self._get_headers(token),
                json=json,
                params=params,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise CapabilityError(
                f"{self.service_name} request failed: {e}",
                service_name=self.service_name,
                error_code=self.error_code,
                cause=e,
                method=method,
                url=url,
            )

    def _handle_response(self, method: str, url: str, response: requests.Response) -> Optional[Any]:
        if response.status_code == 204 or (response.ok and not response.content):
            return None

        if not response.ok:
            self._raise_for_status(method, url, response)

        try:
            return response.json()
        except ValueError as e:
            raise CapabilityError(
                f"{self.service_name} returned a non-JSON body",
                service_name=self.service_name,
                http_status=response.status_code,
                error_code=self.error_code,
                cause=e,
                method=method,
                url=url,
            )

    def _raise_for_status(self, method: str, url: str, response: requests.Response) -> None:
        body = response.text
        raise CapabilityError(
            f"{self.service_name} API error {response.status_code}: {body[:200]}",
            service_name=self.service_name,
            http_status=response.status_code,
            response_body=body,
            error_code=self.error_code,
            method=method,
            url=url,
        )
