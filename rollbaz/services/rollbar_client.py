"""
Rollbar API client for item lookup, listing and updates
"""

import json
import logging
from typing import Any

import aiohttp
from pydantic import ValidationError as PydanticValidationError

from rollbaz.errors import (
    ApiError,
    ConfigError,
    DecodeError,
    RollbazError,
    TransportError,
)
from rollbaz.models.config import DEFAULT_BASE_URL
from rollbaz.models.rollbar import (
    ApiEnvelope,
    Item,
    ItemInstance,
    ItemPatch,
    describe_validation_error,
    parse_instances,
    parse_item,
    parse_item_by_counter,
    parse_items,
    parse_top_active_items,
)
from rollbaz.services.issue_filter import trim_items
from rollbaz.services.redact import redact_string

logger = logging.getLogger(__name__)

ACCESS_TOKEN_HEADER = "X-Rollbar-Access-Token"
MAX_ERROR_BODY_BYTES = 2048
UNKNOWN_API_ERROR = "unknown error from Rollbar"


class RollbarClient:
    """Service for interacting with the Rollbar API

    A session may be injected; otherwise each request opens its own.
    """

    def __init__(
        self,
        access_token: str,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 8.0,
        session: aiohttp.ClientSession | None = None,
    ):
        if not access_token.strip():
            raise ConfigError("rollbar access token is required")

        self.access_token = access_token
        self.base_url = base_url.rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self.session = session
        self.headers = {ACCESS_TOKEN_HEADER: access_token}

    async def resolve_item_id_by_counter(self, counter: int) -> int:
        result = await self._get_result(f"/item_by_counter/{counter}", "item_by_counter")
        try:
            return parse_item_by_counter(result)
        except DecodeError as e:
            raise self._redacted(e) from e

    async def get_item(self, item_id: int) -> Item:
        result = await self._get_result(f"/item/{item_id}/", "item")
        try:
            return parse_item(result)
        except DecodeError as e:
            raise self._redacted(e.with_context("decode item response")) from e

    async def update_item(self, item_id: int, patch: ItemPatch) -> None:
        body = await self._request(
            "PATCH", f"/item/{item_id}", "update item", payload=patch.to_payload()
        )
        envelope = self._decode_envelope(body, "update item")
        if envelope.err != 0:
            raise self._wrap(
                ApiError, envelope.message or UNKNOWN_API_ERROR, "rollbar update item"
            )

    async def list_active_items(self, limit: int = 0) -> list[Item]:
        result = await self._get_result("/reports/top_active_items", "top active items")
        try:
            items = parse_top_active_items(result)
        except DecodeError as e:
            raise self._redacted(e.with_context("decode top active items")) from e

        return trim_items(items, limit)

    async def list_items(self, status: str = "", page: int = 0) -> list[Item]:
        params = {}
        if status:
            params["status"] = status
        if page > 0:
            params["page"] = str(page)

        result = await self._get_result("/items", "items", params=params or None)
        try:
            return parse_items(result)
        except DecodeError as e:
            raise self._redacted(e.with_context("decode items response")) from e

    async def get_latest_instance(self, item_id: int) -> ItemInstance | None:
        result = await self._get_result(
            f"/item/{item_id}/instances", "item instances", params={"per_page": "1"}
        )
        try:
            instances = parse_instances(result)
        except DecodeError as e:
            raise self._redacted(e.with_context("decode instances response")) from e

        if not instances:
            return None
        return instances[-1]

    async def _get_result(
        self, endpoint: str, op: str, params: dict[str, str] | None = None
    ) -> Any:
        """GET an endpoint and unwrap the ``{"err", "result", "message"}`` envelope"""
        body = await self._request("GET", endpoint, op, params=params)
        envelope = self._decode_envelope(body, op)

        if envelope.err != 0:
            raise self._wrap(ApiError, envelope.message or UNKNOWN_API_ERROR, f"rollbar {op}")
        if envelope.result is None:
            raise self._wrap(DecodeError, "missing result", f"{op} response")

        return envelope.result

    def _decode_envelope(self, body: bytes, op: str) -> ApiEnvelope:
        try:
            return ApiEnvelope.model_validate_json(body)
        except PydanticValidationError as e:
            raise self._wrap(
                DecodeError, describe_validation_error(e), f"decode {op} envelope"
            ) from e

    async def _request(
        self,
        method: str,
        endpoint: str,
        op: str,
        params: dict[str, str] | None = None,
        payload: dict[str, Any] | None = None,
    ) -> bytes:
        """Make authenticated request to Rollbar API"""
        url = f"{self.base_url}{endpoint}"
        headers = dict(self.headers)
        data = None
        if payload is not None:
            headers["Content-Type"] = "application/json"
            data = json.dumps(payload)

        logger.debug(f"{method} {endpoint} ({op})")

        try:
            if self.session is not None:
                return await self._send(self.session, method, url, op, headers, params, data)

            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                return await self._send(session, method, url, op, headers, params, data)
        except aiohttp.ClientError as e:
            raise self._wrap(TransportError, str(e) or type(e).__name__, f"request {op}") from e
        except TimeoutError as e:
            raise self._wrap(TransportError, "timed out", f"request {op}") from e

    async def _send(
        self,
        session: aiohttp.ClientSession,
        method: str,
        url: str,
        op: str,
        headers: dict[str, str],
        params: dict[str, str] | None,
        data: str | None,
    ) -> bytes:
        async with session.request(
            method, url, headers=headers, params=params, data=data, timeout=self.timeout
        ) as response:
            body = await response.read()
            if response.status < 200 or response.status >= 300:
                excerpt = body[:MAX_ERROR_BODY_BYTES].decode("utf-8", errors="replace")
                logger.debug(f"{op} failed with status {response.status}")
                raise self._wrap(
                    TransportError,
                    f"status {response.status}: {excerpt.strip()}",
                    f"{op} returned non-success status",
                )
            return body

    def _wrap(self, error_cls: type[RollbazError], message: str, operation: str) -> RollbazError:
        return error_cls(f"{operation}: {redact_string(message, self.access_token)}")

    def _redacted(self, error: RollbazError) -> RollbazError:
        return type(error)(redact_string(str(error), self.access_token))
