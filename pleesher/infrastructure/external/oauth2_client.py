"""OAuth2 client-credentials transport for the Pleesher API.

Requests go to {root_url}/{api_version}/{uri} with a bearer token; the
token itself comes from {root_url}/token. All calls are blocking (sync
httpx.Client).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

import httpx

from pleesher.domain.exceptions import ApiError, NoSuchObjectError, PleesherException
from pleesher.infrastructure.cache.local_storage import LocalStorage
from pleesher.infrastructure.cache.storage_protocol import Storage
from pleesher.shared.telemetry.logging import get_logger

logger = get_logger(__name__)

DEFAULT_ROOT_URL = "https://pleesher.com/api"
INVALID_TOKEN_ERROR = "invalid_token"


def encode_params(data: dict[str, Any] | None) -> dict[str, Any]:
    """Flatten request data into PHP-style form fields.

    None values are dropped, booleans become 1/0 and sequences become
    indexed fields (goal_ids[0], goal_ids[1], ...).
    """
    fields: dict[str, Any] = {}
    for name, value in (data or {}).items():
        if value is None:
            continue
        if isinstance(value, (list, tuple)):
            for index, item in enumerate(value):
                fields[f"{name}[{index}]"] = int(item) if isinstance(item, bool) else item
        elif isinstance(value, bool):
            fields[name] = int(value)
        else:
            fields[name] = value
    return fields


class OAuth2Client(ABC):
    """Base API client: bearer calls, error mapping and token retry.

    Subclasses provide token acquisition (_get_access_token) and renewal
    (_refresh_access_token). Tokens are typically kept in cache_storage.

    Attributes:
        in_error: Set once a call has failed; never reset.
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        api_version: str = "1.0",
        root_url: str = DEFAULT_ROOT_URL,
        http_client: httpx.Client | None = None,
        timeout: float = 30.0,
        cache_storage: Storage | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            client_id: OAuth2 client id.
            client_secret: OAuth2 client secret.
            api_version: Version segment of API URLs.
            root_url: API root (without trailing slash).
            http_client: Optional httpx.Client for DI/testing.
            timeout: Request timeout in seconds for the default client.
            cache_storage: Cache chain; defaults to a LocalStorage.
        """
        self.client_id = client_id
        self.client_secret = client_secret
        self.api_version = api_version
        self.root_url = root_url.rstrip("/")
        self.in_error = False
        self._http = http_client or httpx.Client(timeout=timeout)
        self.cache_storage: Storage = cache_storage or LocalStorage()

    def set_cache_storage(self, cache_storage: Storage, scope: str | None = None) -> None:
        """Replace the cache chain; select scope on it when one is given."""
        self.cache_storage = cache_storage
        if scope is not None:
            self.cache_storage.set_scope(scope)

    def close(self) -> None:
        """Close the underlying HTTP client."""
        self._http.close()

    def __enter__(self) -> OAuth2Client:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def call(self, verb: str, uri: str, data: dict[str, Any] | None = None) -> Any:
        """Call an API endpoint and return its decoded JSON result.

        A rejected token (error 'invalid_token') is renewed and the call
        retried once.

        Raises:
            NoSuchObjectError: The API answered 404.
            ApiError: Any other error answer, unparsable body or transport failure.
        """
        logger.info("API call %s %s", verb, uri)
        try:
            try:
                return self._result_contents(self._call_webservice(verb, uri, data))
            except ApiError as e:
                if e.error_code != INVALID_TOKEN_ERROR:
                    raise
                logger.info("Access token rejected; requesting a new one")
                self._refresh_access_token()
                return self._result_contents(self._call_webservice(verb, uri, data))
        except PleesherException:
            self.in_error = True
            raise

    def _call_webservice(
        self, verb: str, uri: str, data: dict[str, Any] | None = None
    ) -> httpx.Response:
        """Send one bearer-authenticated request; GET data goes in the query string."""
        verb = verb.upper()
        fields = encode_params(data)
        access_token = self._get_access_token()
        return self._send(
            verb,
            f"{self.root_url}/{self.api_version}/{uri}",
            params=fields if verb == "GET" else None,
            data=None if verb == "GET" else fields,
            headers={"Authorization": f"Bearer {access_token['access_token']}"},
        )

    def _request_token(self) -> dict[str, Any]:
        """Fetch a new client-credentials token (basic auth)."""
        logger.info("Requesting API access token")
        response = self._send(
            "POST",
            f"{self.root_url}/token",
            data={"grant_type": "client_credentials"},
            auth=(self.client_id, self.client_secret),
        )
        return self._result_contents(response)

    def _send(self, verb: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            return self._http.request(verb, url, **kwargs)
        except httpx.HTTPError as e:
            logger.error("API request %s %s failed: %s", verb, url, e)
            raise ApiError(f"Could not execute request ({e})") from e

    @staticmethod
    def _result_contents(response: httpx.Response) -> Any:
        """Decode a response body, mapping error statuses to exceptions."""
        try:
            contents = response.json()
        except ValueError as e:
            logger.error(
                "API result error (status %d): %s", response.status_code, response.text
            )
            raise ApiError(
                "Could not parse webservice query result", status_code=response.status_code
            ) from e

        if response.status_code == 200:
            return contents

        error = contents if isinstance(contents, dict) else {}
        description = error.get("error_description") or f"HTTP {response.status_code}"
        if response.status_code == 404:
            raise NoSuchObjectError(description, error.get("error"), response.status_code)
        raise ApiError(description, error.get("error"), response.status_code)

    @abstractmethod
    def _get_access_token(self) -> dict[str, Any]:
        """Return a valid token object with at least 'access_token'."""
        ...

    @abstractmethod
    def _refresh_access_token(self) -> None:
        """Discard the current token so the next call fetches a new one."""
        ...
