from __future__ import annotations

import asyncio
import time
from typing import Any, Awaitable, Callable
from urllib.parse import quote

import httpx

from notifysend.core.config import get_settings
from notifysend.core.errors import TransportAuthError, TransportError
from notifysend.domain.models import THROTTLED_STATUS_CODE
from notifysend.providers.messaging.base import SendMessageResponse, SendMessageResult
from notifysend.services.resilience import RetryPolicy, backoff_seconds, is_transient_error
from notifysend.services.telemetry import increment_counter, record_external_call


_INTEGRATION = "messaging.bot_connector"
# Refresh tokens slightly early so a send never races token expiry.
_TOKEN_REFRESH_MARGIN_S = 60
_ERROR_BODY_LIMIT = 1024


class BotConnectorTransport:
    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        time_source: Callable[[], float] | None = None,
    ) -> None:
        self._settings = get_settings()
        self._client = client
        self._sleep = sleep
        self._time = time_source or time.monotonic
        self._token: str | None = None
        self._token_expires_at = 0.0
        self._token_lock = asyncio.Lock()

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is not None:
            return self._client
        # Reuse a single client per transport for connection pooling.
        timeout_s = self._settings.ext_call_timeout_ms / 1000.0
        self._client = httpx.AsyncClient(timeout=timeout_s)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _get_token(self) -> str:
        async with self._token_lock:
            if self._token and self._time() < self._token_expires_at:
                return self._token
            try:
                response = await self._get_client().post(
                    self._settings.bot_token_url,
                    data={
                        "grant_type": "client_credentials",
                        "client_id": self._settings.bot_app_id or "",
                        "client_secret": self._settings.bot_app_password or "",
                        "scope": self._settings.bot_token_scope,
                    },
                )
            except httpx.HTTPError as exc:
                raise TransportAuthError("Bot token request failed") from exc
            if response.status_code >= 400:
                raise TransportAuthError(f"Bot token request rejected ({response.status_code})")
            body = response.json()
            token = body.get("access_token")
            if not isinstance(token, str) or not token:
                raise TransportAuthError("Bot token response missing access_token")
            expires_in = int(body.get("expires_in") or 3600)
            self._token = token
            self._token_expires_at = self._time() + max(0, expires_in - _TOKEN_REFRESH_MARGIN_S)
            return token

    def _invalidate_token(self) -> None:
        self._token = None
        self._token_expires_at = 0.0

    def _throttle_backoff_s(self, attempt: int, response: httpx.Response) -> float:
        # Honor the service's Retry-After hint, otherwise back off exponentially within bounds.
        cap_s = max(self._settings.send_backoff_ms, self._settings.send_backoff_max_ms) / 1000.0
        retry_after = response.headers.get("Retry-After")
        if retry_after:
            try:
                return min(cap_s, max(0.0, float(retry_after)))
            except ValueError:
                pass
        base_s = max(1, self._settings.send_backoff_ms) / 1000.0
        return min(cap_s, base_s * (2 ** (attempt - 1)))

    async def send(
        self,
        payload: dict[str, Any],
        *,
        service_url: str,
        conversation_id: str,
        max_attempts: int,
    ) -> SendMessageResponse:
        url = f"{service_url.rstrip('/')}/v3/conversations/{quote(conversation_id, safe='')}/activities"
        attempts = max(1, int(max_attempts))
        policy = RetryPolicy(
            timeout_ms=self._settings.ext_call_timeout_ms,
            backoff_ms=self._settings.send_backoff_ms,
        )
        client = self._get_client()
        result = SendMessageResponse(result_type=SendMessageResult.FAILED, status_code=0)

        # Timeouts, network errors and 429s all draw from the same attempt budget.
        for attempt in range(1, attempts + 1):
            token = await self._get_token()
            start = time.monotonic()
            try:
                response = await asyncio.wait_for(
                    client.post(url, json=payload, headers={"Authorization": f"Bearer {token}"}),
                    timeout=policy.timeout_ms / 1000.0,
                )
            except (httpx.HTTPError, TimeoutError, OSError) as exc:
                record_external_call(
                    integration=_INTEGRATION,
                    latency_ms=(time.monotonic() - start) * 1000.0,
                    success=False,
                )
                if attempt < attempts and is_transient_error(exc):
                    increment_counter("external_retries_total")
                    await self._sleep(backoff_seconds(policy, attempt))
                    continue
                raise TransportError(f"Messaging API unreachable: {type(exc).__name__}") from exc

            status = int(response.status_code)
            result.status_codes.append(status)
            record_external_call(
                integration=_INTEGRATION,
                latency_ms=(time.monotonic() - start) * 1000.0,
                success=200 <= status < 300,
            )

            if status == THROTTLED_STATUS_CODE:
                result.total_throttles += 1
                increment_counter("send_transport_throttled_total")
                if attempt < attempts:
                    await self._sleep(self._throttle_backoff_s(attempt, response))
                    continue
                result.result_type = SendMessageResult.THROTTLED
                result.status_code = status
                result.error_message = response.text[:_ERROR_BODY_LIMIT] or None
                return result

            if 200 <= status < 300:
                try:
                    body = response.json()
                except ValueError:
                    body = {}
                result.result_type = SendMessageResult.SUCCEEDED
                result.status_code = status
                result.activity_id = str(body.get("id") or "") if isinstance(body, dict) else ""
                return result

            if status == 401:
                # Drop the cached token so the next invocation re-authenticates.
                self._invalidate_token()
            result.result_type = SendMessageResult.FAILED
            result.status_code = status
            result.error_message = response.text[:_ERROR_BODY_LIMIT] or f"http_{status}"
            return result

        return result
