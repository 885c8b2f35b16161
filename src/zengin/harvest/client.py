"""Transport for the zengin lookup service built on requests."""

from __future__ import annotations

from typing import Mapping

import requests
from requests import Response
from requests.exceptions import RequestException

from zengin.config.policies import RemoteServicePolicy
from zengin.entities.core import LiveInstitution, SearchKey
from zengin.utils.logging import get_logger


class NetworkError(Exception):
    """Raised when a request to the lookup service cannot be completed."""

    def __init__(self, message: str, *, error_type: str = "network") -> None:
        super().__init__(message)
        self.error_type = error_type


def _decode_body(response: Response) -> str:
    # Without a declared charset requests falls back to ISO-8859-1 for text/*.
    content_type = response.headers.get("content-type", "")
    if "charset=" not in content_type.lower():
        response.encoding = response.apparent_encoding or "utf-8"
    return response.text


class RemoteQueryClient:
    """Stateless client issuing the two POST shapes the service understands.

    Every call performs network I/O; nothing is cached and the HTTP status is
    not inspected, so any body that arrives is handed to the parser.
    """

    def __init__(self, policy: RemoteServicePolicy | None = None) -> None:
        self.policy = policy or RemoteServicePolicy()
        self._logger = get_logger(component="remote_client", user_agent=self.policy.user_agent)

    def fetch_institution_page(self, key: SearchKey) -> str:
        fields = self.policy.form_fields
        return self._post(self.policy.institution_endpoint, {fields.institution_key: key})

    def fetch_branch_page(self, institution: LiveInstitution, key: SearchKey) -> str:
        fields = self.policy.form_fields
        form = {fields.branch_key: key, fields.branch_token: institution.query_token}
        return self._post(self.policy.branch_endpoint, form)

    def _post(self, url: str, form: Mapping[str, str]) -> str:
        headers = {"User-Agent": self.policy.user_agent}
        try:
            response = requests.post(
                url,
                data=dict(form),
                headers=headers,
                timeout=self.policy.request_timeout_seconds,
            )
        except requests.Timeout as exc:
            raise NetworkError(f"Request to {url} timed out: {exc}", error_type="timeout") from exc
        except RequestException as exc:
            raise NetworkError(f"Request to {url} failed: {exc}") from exc

        try:
            body = _decode_body(response)
        except RequestException as exc:
            raise NetworkError(f"Reading response from {url} failed: {exc}") from exc
        finally:
            response.close()
        self._logger.debug(
            "Fetched page",
            url=url,
            status=response.status_code,
            size=len(body),
        )
        return body


__all__ = ["NetworkError", "RemoteQueryClient"]
