"""SQS consumer: queue messages in, relayed results out.

Cycle per poll:
1. receive up to `queue_batch_size` messages (long polling);
2. parse each body as a `DriverQuery`;
3. run the batch through the orchestrator;
4. for every result, send it to the response queue, then delete the
   original message. A message is deleted only after its relay succeeded.

boto3 is synchronous, so its calls run in a worker thread
(`asyncio.to_thread`) and never block the event loop driving the browser.
"""

from __future__ import annotations

import asyncio
import json
import logging
from contextlib import aclosing
from dataclasses import dataclass
from typing import Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from core.config import AppSettings
from core.domain.models import DriverQuery, QueryResult
from core.services.batch_orchestrator import BatchOrchestrator

logger = logging.getLogger(__name__)


@dataclass
class PendingMessage:
    query: DriverQuery
    message_id: str
    receipt_handle: str


@dataclass
class PollStats:
    received: int = 0
    malformed: int = 0
    relayed: int = 0
    deleted: int = 0
    relay_failures: int = 0


def build_sqs_client(settings: AppSettings) -> Any:
    return boto3.client("sqs", region_name=settings.aws_region)


def parse_messages(messages: list[dict[str, Any]]) -> tuple[list[PendingMessage], int]:
    """Turn raw SQS messages into pending queries.

    Bodies that are not JSON are logged and left on the queue (its redrive policy
    decides what happens to them).
    """

    pending: list[PendingMessage] = []
    malformed = 0
    for message in messages:
        message_id = message.get("MessageId", "?")
        try:
            query = DriverQuery.from_untrusted(json.loads(message.get("Body") or ""))
        except json.JSONDecodeError as exc:
            logger.error("Ignoring malformed message %s: %s", message_id, exc)
            malformed += 1
            continue
        pending.append(
            PendingMessage(query=query, message_id=message_id, receipt_handle=message["ReceiptHandle"])
        )
    return pending, malformed


class QueueConsumer:
    def __init__(
        self,
        *,
        settings: AppSettings,
        orchestrator: BatchOrchestrator,
        client: Any | None = None,
    ) -> None:
        if not settings.queue_url or not settings.response_queue_url:
            raise ValueError("queue_url and response_queue_url must be configured")
        self._settings = settings
        self._orchestrator = orchestrator
        self._client = client or build_sqs_client(settings)
        self._queue_url = settings.queue_url
        self._response_queue_url = settings.response_queue_url

    async def poll_once(self) -> PollStats:
        stats = PollStats()
        response = await asyncio.to_thread(
            self._client.receive_message,
            QueueUrl=self._queue_url,
            MaxNumberOfMessages=self._settings.queue_batch_size,
            WaitTimeSeconds=self._settings.queue_wait_time_seconds,
        )
        messages = response.get("Messages") or []
        stats.received = len(messages)
        if not messages:
            return stats

        pending, stats.malformed = parse_messages(messages)
        logger.info("Received batch of %d message(s)", len(messages))

        # Results carry the query, not the message: match them back by identity.
        by_query = {id(item.query): item for item in pending}
        results = self._orchestrator.process_batch(item.query for item in pending)
        async with aclosing(results):
            async for result in results:
                item = by_query[id(result.payload)]
                if await self._relay(result, item):
                    stats.relayed += 1
                    if await self._delete(item):
                        stats.deleted += 1
                else:
                    stats.relay_failures += 1
                logger.info("Finished CPF %s, expired_at=%s", result.payload.label, result.result.expired_at)
        return stats

    async def _relay(self, result: QueryResult, item: PendingMessage) -> bool:
        try:
            await asyncio.to_thread(
                self._client.send_message,
                QueueUrl=self._response_queue_url,
                MessageBody=json.dumps(result.to_wire(), ensure_ascii=False),
            )
        except (BotoCoreError, ClientError) as exc:
            logger.error("Could not relay result of message %s: %s", item.message_id, exc)
            return False
        return True

    async def _delete(self, item: PendingMessage) -> bool:
        try:
            await asyncio.to_thread(
                self._client.delete_message,
                QueueUrl=self._queue_url,
                ReceiptHandle=item.receipt_handle,
            )
        except (BotoCoreError, ClientError) as exc:
            logger.error("Relayed message %s but could not delete it: %s", item.message_id, exc)
            return False
        return True

    async def run(self, *, max_polls: int | None = None) -> None:
        """Poll until `max_polls` is reached (forever when None).

        Errors of one poll are logged and polling continues.
        """

        polls = 0
        while max_polls is None or polls < max_polls:
            polls += 1
            logger.debug("Polling queue (poll %d)", polls)
            try:
                await self.poll_once()
            except (BotoCoreError, ClientError) as exc:
                logger.error("Queue error: %s", exc)
            except Exception:
                logger.exception("Unexpected error while consuming the queue")
