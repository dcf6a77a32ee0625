"""
Label Request Queue - Serialized, retrying calls to the labeling endpoint.

Each submission becomes one POST to an OpenAI-compatible
`/chat/completions` endpoint. Submissions are dispatched in FIFO order with
at most `max_concurrency` (default 1) calls in flight; a submission waiting
in backoff keeps its slot, other submissions wait their turn.

Transport policy:
- 429 and 5xx are retried forever with exponential backoff:
  min(max, base * 2**attempt) plus up to `jitter_ms` of jitter
- any other non-2xx status, or a transport failure (connect, DNS,
  timeout), resolves as an empty result
- an unparseable body or unexpected shape resolves as an empty result
- no API key (or labeling disabled) resolves as an empty result at once

There is no retry limit, so an endpoint stuck on 429 or 5xx stalls its
submission. Pass `timeout` to `submit()` for a bounded wait; on expiry the
call is cancelled, its slot is freed and the result is empty.
"""

from __future__ import annotations

import asyncio
import hashlib
import json
import random
import re
from dataclasses import dataclass
from typing import Any

import httpx
from loguru import logger

from cardgraph.config import Settings, get_settings
from cardgraph.exceptions import (
    MalformedResponseError,
    PermanentRemoteError,
    RemoteLabelingError,
    TransientRemoteError,
)
from cardgraph.semantic.prompts import build_messages

_FENCED_JSON = re.compile(r"```(?:json)?\s*([\s\S]*?)```")


@dataclass
class _PendingBatch:
    """A dispatched batch shared by identical concurrent submissions."""

    task: asyncio.Task
    waiters: int = 0


class LabelRequestQueue:
    """
    Rate-limited client for relation labeling requests.

    Example:
        >>> queue = LabelRequestQueue()
        >>> labels = await queue.submit([{"id": "a|b", "A": {...}, "B": {...}}])
        >>> labels
        [{'id': 'a|b', 'label': 'prerequisite-of'}]
        >>> await queue.close()
    """

    def __init__(
        self,
        settings: Settings | None = None,
        client: httpx.AsyncClient | None = None,
        max_concurrency: int | None = None,
    ):
        """
        Initialize the queue.

        Args:
            settings: Labeling configuration (default: global settings).
            client: Optional preconfigured HTTP client; the queue only closes
                    clients it created itself.
            max_concurrency: Override of settings.label_max_concurrency.
        """
        self.settings = settings or get_settings()
        self.max_concurrency = max(1, max_concurrency or self.settings.label_max_concurrency)
        self.base_backoff_ms = self.settings.label_base_backoff_ms
        self.max_backoff_ms = self.settings.label_max_backoff_ms
        self.jitter_ms = self.settings.label_jitter_ms

        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(self.settings.label_request_timeout),
            follow_redirects=True,
        )
        self._slots = asyncio.Semaphore(self.max_concurrency)
        self._pending: dict[str, _PendingBatch] = {}
        self.in_flight = 0

    async def close(self) -> None:
        """Close the HTTP client if the queue created it."""
        if self._owns_client:
            await self.client.aclose()

    async def __aenter__(self) -> LabelRequestQueue:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    @property
    def endpoint(self) -> str:
        return f"{self.settings.get_label_base_url()}/chat/completions"

    @staticmethod
    def _batch_key(pairs: list[dict[str, Any]]) -> str:
        raw = json.dumps(pairs, sort_keys=True, ensure_ascii=False, default=str)
        return hashlib.sha1(raw.encode("utf-8")).hexdigest()

    async def submit(
        self,
        pairs: list[dict[str, Any]],
        timeout: float | None = None,
    ) -> list[dict[str, Any]]:
        """
        Queue a batch of card pairs for labeling.

        Identical batches submitted while one is pending share its call.

        Args:
            pairs: Payload entries ({id, A, B}).
            timeout: Optional deadline in seconds, covering queueing,
                     backoff and the call itself.

        Returns:
            Raw {id, label} objects from the model; empty on any failure.
        """
        if not pairs:
            return []
        if not self.settings.edge_labeling_enabled:
            logger.debug("Edge labeling disabled; skipping remote call")
            return []
        if not self.settings.get_label_api_key():
            logger.warning("No labeling API key configured; edges keep default labels")
            return []

        key = self._batch_key(pairs)
        pending = self._pending.get(key)
        if pending is None or pending.task.cancelled() or pending.waiters == 0:
            pending = _PendingBatch(task=asyncio.ensure_future(self._dispatch(pairs)))
            self._pending[key] = pending
            pending.task.add_done_callback(lambda _task, key=key, batch=pending: self._forget(key, batch))
        else:
            logger.debug(f"Joining pending labeling batch {key[:8]}")

        pending.waiters += 1
        try:
            done, _ = await asyncio.wait({pending.task}, timeout=timeout)
            if pending.task in done:
                return pending.task.result()
            logger.warning(f"Labeling batch of {len(pairs)} pairs timed out after {timeout}s")
            return []
        finally:
            pending.waiters -= 1
            if pending.waiters == 0 and not pending.task.done():
                pending.task.cancel()

    def _forget(self, key: str, batch: _PendingBatch) -> None:
        if self._pending.get(key) is batch:
            del self._pending[key]

    async def _dispatch(self, pairs: list[dict[str, Any]]) -> list[dict[str, Any]]:
        async with self._slots:
            self.in_flight += 1
            try:
                return await self.fetch_labels(pairs)
            finally:
                self.in_flight -= 1

    async def fetch_labels(self, pairs: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Run one labeling call (with retries) and parse its result."""
        body = {
            "model": self.settings.label_model,
            "messages": build_messages(pairs, self.settings.label_prompt_max_chars),
            "temperature": self.settings.label_temperature,
        }
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.settings.get_label_api_key()}",
        }
        try:
            response = await self._post_with_retry(body, headers)
            labels = self.parse_labels(response)
        except RemoteLabelingError as e:
            logger.warning(f"Labeling batch of {len(pairs)} pairs failed: {e}")
            return []

        logger.info(f"Received {len(labels)} labels for {len(pairs)} pairs")
        return labels

    def _backoff_delay(self, attempt: int) -> float:
        """Delay in seconds before retry number `attempt` (0-based)."""
        delay_ms = min(self.max_backoff_ms, self.base_backoff_ms * 2 ** min(attempt, 32))
        return (delay_ms + random.uniform(0, self.jitter_ms)) / 1000.0

    async def _post_with_retry(self, body: dict[str, Any], headers: dict[str, str]) -> httpx.Response:
        attempt = 0
        while True:
            try:
                response = await self.client.post(self.endpoint, json=body, headers=headers)
            except (httpx.RequestError, httpx.InvalidURL) as e:
                raise PermanentRemoteError(f"Request error: {e!r}") from e

            status = response.status_code
            if response.is_success:
                return response
            if status != 429 and status < 500:
                raise PermanentRemoteError(f"HTTP {status}", status)

            error = TransientRemoteError(f"HTTP {status}", status)
            wait_time = self._backoff_delay(attempt)
            attempt += 1
            logger.warning(f"Labeling endpoint: {error} on attempt {attempt}. Retrying in {wait_time:.2f}s...")
            await asyncio.sleep(wait_time)

    @staticmethod
    def parse_labels(response: httpx.Response) -> list[dict[str, Any]]:
        """
        Extract the [{id, label}] array from a chat-completion response.

        Raises:
            MalformedResponseError: If the body or the message content is
                not JSON of the expected shape.
        """
        try:
            data = response.json()
        except ValueError as e:
            raise MalformedResponseError(f"Response is not JSON: {e}") from e

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise MalformedResponseError("Response has no choices[0].message.content") from e
        if not content:
            return []
        if not isinstance(content, str):
            raise MalformedResponseError(f"Message content is {type(content).__name__}, not str")

        fenced = _FENCED_JSON.search(content)
        raw = fenced.group(1) if fenced else content
        try:
            parsed = json.loads(raw.strip())
        except ValueError as e:
            raise MalformedResponseError(f"Message content is not JSON: {e}") from e

        if not isinstance(parsed, list):
            raise MalformedResponseError(f"Expected a JSON array, got {type(parsed).__name__}")
        return [item for item in parsed if isinstance(item, dict)]
