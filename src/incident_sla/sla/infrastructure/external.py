"""
SLA External Service Integrations
==================================

External services for SLA monitoring:
- Slack webhook notifications for breaches and near-breaches
- Log-only notifier when no webhook is configured
- APScheduler for the recurring breach and near-breach sweeps
"""

import asyncio
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

import httpx
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from incident_sla.config import settings
from incident_sla.sla.application import INotifier
from incident_sla.sla.domain import BreachRecord, NearBreachReport, TicketEvent
from incident_sla.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


class LoggingNotifier(INotifier):
    """Notifier that only writes structured log lines."""

    async def publish_event(self, event: TicketEvent) -> None:
        logger.info("Ticket event", extra=event.to_dict())

    async def notify_breaches(self, records: List[BreachRecord]) -> None:
        for record in records:
            logger.warning("SLA breach", extra=record.to_dict())

    async def notify_near_breaches(self, report: NearBreachReport) -> None:
        for warning in report.ack + report.resolve:
            logger.warning(
                "SLA near-breach",
                extra={
                    "ticket_id": warning.ticket_id,
                    "sla_type": warning.sla_type,
                    "deadline": warning.deadline.isoformat(),
                    "minutes_remaining": warning.minutes_remaining
                }
            )


class CircuitState:
    """Circuit breaker states."""
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """
    Circuit breaker for the notification webhook.

    States:
    - CLOSED: Normal operation, requests pass through
    - OPEN: After N failures, reject all requests for M seconds
    - HALF_OPEN: After timeout, allow one test request
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        recovery_timeout: float = 60.0
    ):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._last_failure_time: Optional[float] = None

    @property
    def state(self) -> str:
        if self._state == CircuitState.OPEN and self._last_failure_time:
            if time.monotonic() - self._last_failure_time >= self.recovery_timeout:
                self._state = CircuitState.HALF_OPEN
        return self._state

    def allow_request(self) -> bool:
        return self.state in (CircuitState.CLOSED, CircuitState.HALF_OPEN)

    def record_success(self) -> None:
        self._failure_count = 0
        self._state = CircuitState.CLOSED

    def record_failure(self) -> None:
        self._failure_count += 1
        self._last_failure_time = time.monotonic()

        if self._failure_count >= self.failure_threshold:
            self._state = CircuitState.OPEN
            logger.warning(
                "Circuit breaker opened",
                extra={
                    "failure_count": self._failure_count,
                    "recovery_timeout": self.recovery_timeout
                }
            )


class SlackNotifier(INotifier):
    """
    Slack webhook notifier with circuit breaker and retry logic.

    Breaches and near-breaches go to Slack; status-change events are only
    logged since every ticket produces several of them.
    """

    def __init__(
        self,
        webhook_url: Optional[str] = None,
        channel: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        max_retries: int = 3
    ):
        self._webhook_url = webhook_url if webhook_url is not None else settings.slack_webhook_url
        self._channel = channel or settings.slack_channel
        self._http_client = http_client
        self._owns_client = http_client is None
        self._max_retries = max_retries
        self._circuit_breaker = CircuitBreaker(failure_threshold=5, recovery_timeout=60)

    async def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=settings.slack_timeout_seconds)
        return self._http_client

    async def publish_event(self, event: TicketEvent) -> None:
        logger.info("Ticket event", extra=event.to_dict())

    async def notify_breaches(self, records: List[BreachRecord]) -> None:
        if not records:
            return
        lines = [
            f"• `{r.ticket_id}` missed its *{self._clock_name(r.sla_type)}* deadline "
            f"by {r.duration_minutes_past_deadline} min"
            for r in records
        ]
        await self._send(self._build_message(":rotating_light: SLA Breach Alert", lines))

    async def notify_near_breaches(self, report: NearBreachReport) -> None:
        warnings = report.ack + report.resolve
        if not warnings:
            return
        lines = [
            f"• `{w.ticket_id}` {self._clock_name(w.sla_type)} due in {w.minutes_remaining:.0f} min "
            f"({w.deadline.isoformat()})"
            for w in warnings
        ]
        await self._send(self._build_message(":warning: SLA Near-Breach Warning", lines))

    @staticmethod
    def _clock_name(sla_type: str) -> str:
        return "acknowledgment" if sla_type == "ack" else "resolution"

    def _build_message(self, header: str, lines: List[str]) -> Dict[str, Any]:
        """Build Slack Block Kit message."""
        return {
            "channel": self._channel,
            "blocks": [
                {
                    "type": "header",
                    "text": {"type": "plain_text", "text": header, "emoji": True}
                },
                {
                    "type": "section",
                    "text": {"type": "mrkdwn", "text": "\n".join(lines)}
                }
            ]
        }

    async def _send(self, message: Dict[str, Any]) -> bool:
        """
        Post a message to the webhook.

        Returns:
            True if sent successfully, False otherwise
        """
        if not self._webhook_url:
            logger.debug("Slack webhook URL not configured, skipping notification")
            return False

        if not self._circuit_breaker.allow_request():
            logger.warning("Circuit breaker open, skipping Slack notification")
            return False

        for attempt in range(self._max_retries):
            try:
                client = await self._get_client()
                response = await client.post(self._webhook_url, json=message)

                if response.status_code == 200:
                    self._circuit_breaker.record_success()
                    logger.info("Slack notification sent")
                    return True

                logger.warning(
                    "Slack webhook returned non-200",
                    extra={"status_code": response.status_code, "attempt": attempt + 1}
                )
            except httpx.HTTPError as e:
                logger.error(
                    "Slack notification failed",
                    extra={"error": str(e), "attempt": attempt + 1}
                )

            if attempt < self._max_retries - 1:
                await asyncio.sleep(2 ** attempt)

        self._circuit_breaker.record_failure()
        return False

    async def close(self) -> None:
        """Close HTTP client."""
        if self._http_client and self._owns_client:
            await self._http_client.aclose()
        self._http_client = None


def build_notifier() -> INotifier:
    """Slack when a webhook is configured, log-only otherwise."""
    if settings.slack_webhook_url:
        return SlackNotifier()
    return LoggingNotifier()


class SLAScheduler:
    """
    Wrapper for APScheduler running the SLA sweeps.

    Each job runs with max_instances=1. In-flight sweeps are tracked so
    stop() can cancel them cooperatively; a cancelled scan leaves no
    partial marks because each per-ticket mark is one atomic update.
    """

    def __init__(self):
        self._scheduler: Optional[AsyncIOScheduler] = None
        self._running = False
        self._jobs: List[tuple] = []
        self._inflight: Set[asyncio.Task] = set()

    def add_job(
        self,
        job_id: str,
        job_func: Callable[[], Awaitable[Any]],
        interval_seconds: int
    ) -> None:
        """Register a sweep. Must be called before start()."""
        self._jobs.append((job_id, job_func, interval_seconds))

    async def start(self) -> None:
        """Start the scheduler with all registered jobs."""
        if self._running:
            logger.warning("SLA scheduler already running")
            return

        self._scheduler = AsyncIOScheduler()

        for job_id, job_func, interval_seconds in self._jobs:
            self._scheduler.add_job(
                self._tracked,
                "interval",
                args=[job_id, job_func],
                seconds=interval_seconds,
                id=job_id,
                name=job_id.replace("_", " ").title(),
                misfire_grace_time=interval_seconds,
                max_instances=1,
                coalesce=True,
                replace_existing=True
            )

        self._scheduler.start()
        self._running = True

        logger.info(
            "SLA scheduler started",
            extra={"jobs": {job_id: seconds for job_id, _, seconds in self._jobs}}
        )

    async def _tracked(self, job_id: str, job_func: Callable[[], Awaitable[Any]]) -> None:
        task = asyncio.current_task()
        if task is not None:
            self._inflight.add(task)
        try:
            await job_func()
        except asyncio.CancelledError:
            logger.info("SLA job cancelled", extra={"job_id": job_id})
            raise
        except Exception as e:
            logger.error("SLA job failed", extra={"job_id": job_id, "error": str(e)})
        finally:
            if task is not None:
                self._inflight.discard(task)

    async def stop(self) -> None:
        """Stop scheduling and cancel sweeps still running."""
        if not self._running:
            return

        if self._scheduler:
            self._scheduler.shutdown(wait=False)

        inflight = list(self._inflight)
        for task in inflight:
            task.cancel()
        if inflight:
            await asyncio.gather(*inflight, return_exceptions=True)

        self._running = False
        logger.info("SLA scheduler stopped")

    @property
    def is_running(self) -> bool:
        return self._running
