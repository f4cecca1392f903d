from __future__ import annotations

import logging
from typing import Any, Callable, Mapping, TypeVar

import httpx
import pydantic

from portal.errors import NetworkError, ServerError, ValidationError, error_for_status

logger = logging.getLogger(__name__)

TokenProvider = Callable[[], str | None]
ModelT = TypeVar("ModelT", bound=pydantic.BaseModel)


def _extract_error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text or response.reason_phrase or "Unknown server error"

    if isinstance(data, Mapping):
        details = data.get("details")
        if isinstance(details, Mapping) and details:
            return ", ".join(str(value) for value in details.values())
        detail = data.get("detail")
        if isinstance(detail, str):
            return detail
        if isinstance(detail, Mapping) and "msg" in detail:
            return str(detail["msg"])
        if isinstance(detail, list) and detail and isinstance(detail[0], Mapping):
            return str(detail[0].get("msg", detail[0]))
        for key in ("message", "error", "errorMessage"):
            value = data.get(key)
            if isinstance(value, str) and value:
                return value
    return "The request could not be completed"


class PortalHTTPClient:
    """Async JSON/bytes client for the portal backend.

    Every request carries ``Authorization: Bearer <token>`` when the token
    provider returns one. Transport failures become :class:`NetworkError`,
    error statuses become the matching :class:`APIError` subclass.
    """

    def __init__(
        self,
        base_url: str,
        *,
        token_provider: TokenProvider | None = None,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._token_provider = token_provider or (lambda: None)
        self.timeout = timeout
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout, transport=transport)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "PortalHTTPClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    def _build_url(self, path: str) -> str:
        normalized = path if path.startswith("/") else f"/{path}"
        return f"{self.base_url}{normalized}"

    def _headers(self, accept: str, extra: Mapping[str, str] | None) -> dict[str, str]:
        headers: dict[str, str] = {"Accept": accept}
        token = self._token_provider()
        if token:
            headers["Authorization"] = f"Bearer {token}"
        if extra:
            headers.update(extra)
        return headers

    async def _send(self, method: str, path: str, *, accept: str, **kwargs: Any) -> httpx.Response:
        url = self._build_url(path)
        headers = self._headers(accept, kwargs.pop("headers", None))
        try:
            response = await self._client.request(method, url, headers=headers, timeout=self.timeout, **kwargs)
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed without a response: %s", method, url, exc)
            raise NetworkError(f"Request to {path} failed: {exc}") from exc

        if response.status_code >= 400:
            message = _extract_error_message(response)
            logger.debug("%s %s -> %s %s", method, url, response.status_code, message)
            raise error_for_status(response.status_code, message, response=response)
        return response

    @staticmethod
    def _decode(response: httpx.Response) -> Any:
        if response.status_code == 204 or not response.content:
            return None
        content_type = response.headers.get("Content-Type", "")
        if "application/json" in content_type:
            try:
                return response.json()
            except ValueError:
                return response.text
        return response.text

    async def _request_bytes(self, method: str, path: str, **kwargs: Any) -> bytes:
        response = await self._send(method, path, accept="*/*", **kwargs)
        return response.content

    async def _request_model(
        self,
        method: str,
        path: str,
        schema: type[ModelT],
        *,
        empty: Any = None,
        **kwargs: Any,
    ) -> ModelT:
        """Send a request and validate the body; a malformed body is a :class:`ServerError`."""

        response = await self._send(method, path, accept="application/json", **kwargs)
        data = self._decode(response)
        try:
            return schema.model_validate(empty if data is None else data)
        except pydantic.ValidationError as exc:
            logger.warning(
                "%s %s returned a body that is not a valid %s: %s",
                method,
                path,
                schema.__name__,
                response.text[:200],
            )
            raise ServerError(
                f"Unexpected response from the server for {path}",
                status_code=response.status_code,
                response=response,
            ) from exc

    @staticmethod
    def _payload(schema: type[ModelT], **fields: Any) -> dict[str, Any]:
        try:
            model = schema(**fields)
        except pydantic.ValidationError as exc:
            first = exc.errors()[0]
            field = ".".join(str(part) for part in first.get("loc", ())) or schema.__name__
            raise ValidationError(f"Invalid {field}: {first.get('msg', 'invalid value')}") from exc
        return model.model_dump(mode="json", by_alias=True, exclude_none=True)
