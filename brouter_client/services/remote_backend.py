# brouter_client/services/remote_backend.py

from __future__ import annotations

from typing import Optional

import httpx
from pydantic import BaseModel, ValidationError

from brouter_client.core.config import settings
from brouter_client.core.exceptions import (
    NetworkError,
    ProfileUploadError,
    RemoteError,
    RemoteTimeout,
)
from brouter_client.core.logger import logger
from brouter_client.models.routing import RouteRequest
from brouter_client.services.request_builder import request_params


class _UploadProfileResponse(BaseModel):
    profileid: str = ""
    error: Optional[str] = None


class RemoteBackend:
    """Issues route requests against `{base_url}/brouter`.

    No retries happen here; a caller that wants them wraps the Router.
    """

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = (base_url or settings.BASE_URL).rstrip("/")
        if not self.base_url:
            raise ValueError("brouter base URL is not configured.")
        self.timeout = timeout if timeout is not None else settings.REQUEST_TIMEOUT
        self._transport = transport

    def _get_client(self, timeout: float) -> httpx.Client:
        return httpx.Client(timeout=httpx.Timeout(timeout), transport=self._transport)

    def _send(self, method: str, url: str, timeout: float | None, **kwargs) -> httpx.Response:
        effective_timeout = timeout if timeout is not None else self.timeout
        client = self._get_client(effective_timeout)
        try:
            response = client.request(method, url, **kwargs)
        except httpx.TimeoutException as e:
            logger.warning(f"brouter request to {url} timed out after {effective_timeout}s")
            raise RemoteTimeout(url, effective_timeout) from e
        except httpx.HTTPError as e:
            raise NetworkError(
                f"Failed to connect to brouter service at {self.base_url}: {e}", url
            ) from e
        finally:
            client.close()

        if not response.is_success:
            raise RemoteError(response.status_code, response.text)
        return response

    def fetch(self, request: RouteRequest, timeout: float | None = None) -> bytes:
        """Return the raw body of a successful route request."""
        url = f"{self.base_url}/brouter"
        params = request_params(request)
        logger.info(f"Requesting {request.profile} route along {params['lonlats']} from {url}")
        response = self._send("GET", url, timeout, params=params)
        return response.content

    def upload_profile(self, data: bytes, timeout: float | None = None) -> str:
        """Upload a custom profile and return the profile id the server assigned.

        The id can be used as the profile name of later requests.
        """
        url = f"{self.base_url}/brouter/profile"
        response = self._send("POST", url, timeout, content=data)
        try:
            reply = _UploadProfileResponse.model_validate_json(response.content)
        except ValidationError as e:
            raise ProfileUploadError(
                f"Unexpected profile upload reply: {response.text[:200]}",
                {"body": response.text},
            ) from e
        if reply.error:
            raise ProfileUploadError(f"Error uploading profile: {reply.error}", {"error": reply.error})
        logger.info(f"Uploaded custom profile as {reply.profileid}")
        return reply.profileid
