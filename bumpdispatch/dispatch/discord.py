"""Discord REST implementation of the outbound dispatcher."""
import httpx
import logging
from typing import Optional
from tenacity import (
    AsyncRetrying,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception,
    before_sleep_log
)
from bumpdispatch.core.config import settings
from bumpdispatch.dispatch import OutboundDispatcher, DispatchError
from bumpdispatch.dispatch.models import Destination, NotificationPayload


logger = logging.getLogger(__name__)

# Discord embed limits
TITLE_LIMIT = 256
DESCRIPTION_LIMIT = 4096
FIELD_NAME_LIMIT = 256
FIELD_VALUE_LIMIT = 1024
FOOTER_LIMIT = 2048
MAX_FIELDS = 25


class DiscordRateLimited(DispatchError):
    """429 from Discord; retry_after is the server-requested pause in seconds."""

    def __init__(self, message: str, retry_after: float = 0.0):
        super().__init__(message, status_code=429, retryable=True)
        self.retry_after = retry_after


def _truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[:limit - 3] + "..."


def build_message_body(payload: NotificationPayload) -> dict:
    """
    Convert a payload to a Discord create/edit message body.

    Args:
        payload: Rendered notification

    Returns:
        Dict with one embed and an optional link-button action row
    """
    embed = {
        "title": _truncate(payload.title, TITLE_LIMIT),
        "description": _truncate(payload.description, DESCRIPTION_LIMIT),
        "color": payload.color,
        "fields": [
            {
                "name": _truncate(f.name, FIELD_NAME_LIMIT),
                "value": _truncate(f.value, FIELD_VALUE_LIMIT) or "\u200b",
                "inline": f.inline,
            }
            for f in payload.fields[:MAX_FIELDS]
        ],
    }

    if payload.timestamp:
        embed["timestamp"] = payload.timestamp.isoformat()
    if payload.footer:
        embed["footer"] = {"text": _truncate(payload.footer, FOOTER_LIMIT)}
    if payload.thumbnail_url:
        embed["thumbnail"] = {"url": payload.thumbnail_url}

    components = []
    if payload.link:
        components = [{
            "type": 1,  # Action row
            "components": [{
                "type": 2,  # Button
                "style": 5,  # Link
                "label": payload.link.label,
                "url": payload.link.url,
            }]
        }]

    return {"embeds": [embed], "components": components}


class DiscordDispatcher(OutboundDispatcher):
    """Posts and edits channel messages through the Discord bot REST API."""

    def __init__(
        self,
        token: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        max_attempts: Optional[int] = None,
        backoff: float = 1.0,
        max_retry_wait: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None
    ):
        self.token = token if token is not None else settings.discord_bot_token
        self.base_url = (base_url or settings.discord_api_base).rstrip("/")
        self.timeout = timeout or settings.dispatch_timeout_seconds
        self.client = client or httpx.AsyncClient(timeout=self.timeout)
        self.max_retry_wait = settings.dispatch_max_retry_wait_seconds if max_retry_wait is None else max_retry_wait
        self._backoff_wait = wait_exponential(multiplier=backoff, min=backoff, max=10 * backoff)
        self._retrying = AsyncRetrying(
            stop=stop_after_attempt(max_attempts or settings.dispatch_max_attempts),
            wait=self._wait,
            retry=retry_if_exception(self._is_retryable),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.token)

    def _is_retryable(self, exc: BaseException) -> bool:
        """Transient errors, except rate limits asking for a longer pause than we allow."""
        if isinstance(exc, DiscordRateLimited) and exc.retry_after > self.max_retry_wait:
            logger.warning(
                f"Discord asked for a {exc.retry_after:.1f}s pause, over the {self.max_retry_wait:.1f}s limit; giving up"
            )
            return False
        return isinstance(exc, DispatchError) and exc.retryable

    def _wait(self, retry_state) -> float:
        """Exponential backoff, never shorter than Discord's retry_after and never over max_retry_wait."""
        delay = self._backoff_wait(retry_state)
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        if isinstance(exc, DiscordRateLimited):
            delay = max(delay, exc.retry_after)
        return min(delay, self.max_retry_wait)

    async def _request_once(self, method: str, path: str, body: dict) -> dict:
        """Single HTTP attempt mapped onto DispatchError."""
        try:
            response = await self.client.request(
                method,
                f"{self.base_url}{path}",
                json=body,
                headers={
                    "Authorization": f"Bot {self.token}",
                    "Content-Type": "application/json",
                },
                timeout=self.timeout
            )
        except httpx.TimeoutException as e:
            raise DispatchError(f"Discord request timed out: {e}", retryable=True)
        except httpx.TransportError as e:
            raise DispatchError(f"Discord connection error: {e}", retryable=True)

        if response.status_code == 429:
            retry_after = 0.0
            try:
                retry_after = float(response.json().get("retry_after", 0.0))
            except (ValueError, AttributeError):
                retry_after = float(response.headers.get("Retry-After", 0) or 0)
            raise DiscordRateLimited(f"Discord rate limited {method} {path}", retry_after=retry_after)

        if response.status_code >= 500:
            raise DispatchError(
                f"Discord server error {response.status_code} on {method} {path}",
                status_code=response.status_code,
                retryable=True
            )

        if response.status_code >= 400:
            raise DispatchError(
                f"Discord rejected {method} {path}: {response.status_code} {response.text[:200]}",
                status_code=response.status_code
            )

        if response.status_code == 204 or not response.content:
            return {}
        return response.json()

    async def _request(self, method: str, path: str, body: dict) -> dict:
        """HTTP call with retry on 429, 5xx, timeouts and connection errors."""
        if not self.is_configured:
            raise DispatchError("Discord bot token not configured")

        async for attempt in self._retrying.copy():
            with attempt:
                return await self._request_once(method, path, body)

    async def send(self, destination: Destination, payload: NotificationPayload) -> str:
        data = await self._request(
            "POST",
            f"/channels/{destination.channel_id}/messages",
            build_message_body(payload)
        )
        message_id = data.get("id")
        if not message_id:
            raise DispatchError(f"Discord did not return a message id for {destination.id}")
        return str(message_id)

    async def edit(self, destination: Destination, message_id: str, payload: NotificationPayload) -> None:
        await self._request(
            "PATCH",
            f"/channels/{destination.channel_id}/messages/{message_id}",
            build_message_body(payload)
        )

    async def close(self) -> None:
        await self.client.aclose()
