"""Outbound push of job posts and their people to the enrichment service.

Delivery is fire-and-forget relative to ingestion: failures are logged and
never raised, and nothing here retries.
"""

from __future__ import annotations

import time
from collections.abc import Sequence
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime, timedelta, timezone
from typing import Any

import httpx
import structlog

from leadgraph.config import Settings
from leadgraph.db import Store
from leadgraph.entity_resolution.deterministic import COMPANIES, JOB_POSTS, PEOPLE
from leadgraph.entity_resolution.links import JOB_POST_PEOPLE
from leadgraph.normalize import DECISION_MAKER
from leadgraph.schemas import (
    EnrichmentPushPayload,
    OutboundCompany,
    OutboundJobPost,
    OutboundPerson,
)

logger = structlog.get_logger(__name__)

DEFAULT_DESCRIPTION_MAX_BYTES = 6000

# Shared by all webhook instances; deliveries outlive the request that queued them
_executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="enrichment-push")


def truncate_utf8(text: str | None, max_bytes: int) -> str | None:
    """Cut *text* to at most *max_bytes* UTF-8 bytes.

    Prefers a paragraph break, then a sentence end, as long as that keeps
    at least half of what fits; otherwise cuts at the last whole character.
    """
    if text is None:
        return None
    encoded = text.encode("utf-8")
    if len(encoded) <= max_bytes:
        return text

    head = encoded[:max_bytes].decode("utf-8", errors="ignore")
    floor = len(head) // 2
    paragraph = head.rfind("\n\n")
    if paragraph >= floor:
        return head[:paragraph].rstrip()
    sentence = max(head.rfind(mark) for mark in (". ", "! ", "? ", ".\n"))
    if sentence >= floor:
        return head[: sentence + 1]
    return head.rstrip()


def person_line(person: OutboundPerson) -> str:
    parts = [person.full_name, person.title, person.email, person.phone, person.linkedin_url]
    return ", ".join(p for p in parts if p)


def people_text(people: Sequence[OutboundPerson]) -> str:
    return "\n".join(person_line(p) for p in people)


def _as_text(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def _outbound_person(row: dict) -> OutboundPerson:
    return OutboundPerson(
        full_name=row["full_name"],
        title=row.get("title"),
        email=row.get("email"),
        phone=row.get("phone"),
        linkedin_url=row.get("linkedin_url"),
    )


def build_enrichment_payload(
    store: Store,
    job_post_id: Any,
    *,
    max_bytes: int = DEFAULT_DESCRIPTION_MAX_BYTES,
) -> EnrichmentPushPayload | None:
    """Assemble the outbound payload for one job post, or ``None`` if it is gone."""
    job = store.find_by_identifiers(JOB_POSTS, [{"id": job_post_id}])
    if job is None:
        return None
    company = store.find_by_identifiers(COMPANIES, [{"id": job["company_id"]}]) or {}

    links = store.select_where(JOB_POST_PEOPLE, {"job_post_id": [job_post_id]})
    people = {
        str(p["id"]): p
        for p in store.select_where(PEOPLE, {"id": [link["person_id"] for link in links]})
    }
    decision_ids = [str(l["person_id"]) for l in links if l["role"] == DECISION_MAKER]
    contact_ids = [
        str(l["person_id"])
        for l in links
        if l["role"] != DECISION_MAKER and str(l["person_id"]) not in decision_ids
    ]
    decision_makers = [_outbound_person(people[i]) for i in dict.fromkeys(decision_ids) if i in people]
    contact_persons = [_outbound_person(people[i]) for i in dict.fromkeys(contact_ids) if i in people]

    return EnrichmentPushPayload(
        job_post=OutboundJobPost(
            finn_id=job["finn_id"],
            finn_url=job["finn_url"],
            title=job.get("title"),
            description=truncate_utf8(job.get("description"), max_bytes),
            location=job.get("location"),
            employment_type=job.get("employment_type"),
            salary=job.get("salary"),
            publication_date=_as_text(job.get("publication_date")),
            expiration_date=_as_text(job.get("expiration_date")),
            application_url=job.get("application_url"),
            sector=job.get("sector"),
            industries=job.get("industries"),
            source=job.get("source"),
        ),
        company=OutboundCompany(**{
            field: _as_text(company.get(field)) for field in OutboundCompany.model_fields
        }),
        decision_makers=decision_makers,
        contact_persons=contact_persons,
        decision_makers_text=people_text(decision_makers),
        contact_persons_text=people_text(contact_persons),
    )


class EnrichmentWebhook:
    """HTTP client for the enrichment service's inbound webhook."""

    def __init__(self, settings: Settings, client: httpx.Client | None = None) -> None:
        self.url = settings.enrichment_webhook_url
        self.batch_delay = settings.enrichment_batch_delay
        self._client = client or httpx.Client(
            timeout=settings.enrichment_webhook_timeout,
            headers={"Content-Type": "application/json"},
        )

    @property
    def enabled(self) -> bool:
        return bool(self.url)

    def send(self, payload: EnrichmentPushPayload) -> bool:
        """POST one payload. Returns False on any failure instead of raising."""
        finn_id = payload.job_post.finn_id
        if not self.enabled:
            logger.info("enrichment_webhook_disabled", finn_id=finn_id)
            return False
        try:
            resp = self._client.post(self.url, json=payload.model_dump(mode="json"))
        except httpx.HTTPError as e:
            logger.warning("enrichment_webhook_error", finn_id=finn_id, error=str(e))
            return False
        if resp.is_error:
            logger.warning(
                "enrichment_webhook_rejected",
                finn_id=finn_id,
                status_code=resp.status_code,
                reason=resp.reason_phrase,
            )
            return False
        logger.info("enrichment_webhook_sent", finn_id=finn_id)
        return True

    def send_batch(
        self,
        payloads: Sequence[EnrichmentPushPayload],
        delay: float | None = None,
    ) -> dict[str, int]:
        """Send payloads one by one with *delay* seconds between requests."""
        pause = self.batch_delay if delay is None else delay
        stats = {"success": 0, "failed": 0}
        for i, payload in enumerate(payloads):
            if self.send(payload):
                stats["success"] += 1
            else:
                stats["failed"] += 1
            if pause > 0 and i < len(payloads) - 1:
                time.sleep(pause)
        return stats

    def dispatch(self, payload: EnrichmentPushPayload) -> Future:
        """Queue *payload* for delivery on a background thread.

        An exception escaping :meth:`send` is logged when the future settles.
        """
        finn_id = payload.job_post.finn_id

        def _log_failure(future: Future) -> None:
            exc = future.exception()
            if exc is not None:
                logger.warning("enrichment_push_failed", finn_id=finn_id, error=str(exc))

        future = _executor.submit(self.send, payload)
        future.add_done_callback(_log_failure)
        return future


def schedule_enrichment_push(
    store: Store,
    webhook: EnrichmentWebhook,
    job_post_id: Any,
    *,
    max_bytes: int = DEFAULT_DESCRIPTION_MAX_BYTES,
) -> bool:
    """Build the payload now and deliver it in the background.

    Never raises: anything that goes wrong is logged and reported as False.
    """
    if not webhook.enabled:
        return False
    try:
        payload = build_enrichment_payload(store, job_post_id, max_bytes=max_bytes)
        if payload is None:
            logger.warning("enrichment_push_missing_job_post", job_post_id=str(job_post_id))
            return False
        webhook.dispatch(payload)
    except Exception:
        logger.exception("enrichment_push_schedule_failed", job_post_id=str(job_post_id))
        return False
    return True


def run_enrichment_sync(
    store: Store,
    settings: Settings,
    webhook: EnrichmentWebhook | None = None,
    *,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Push every job post created in the last ``recent_job_post_hours`` hours.

    Returns
    -------
    dict
        ``{"status", "total_job_posts", "payloads_built", "synced", "failed"}``
    """
    webhook = webhook or EnrichmentWebhook(settings)
    stats: dict[str, Any] = {
        "status": "ok",
        "total_job_posts": 0,
        "payloads_built": 0,
        "synced": 0,
        "failed": 0,
    }
    if not webhook.enabled:
        stats["status"] = "skipped"
        logger.info("enrichment_sync_skipped", reason="webhook url not configured")
        return stats

    since = (now or datetime.now(timezone.utc)) - timedelta(hours=settings.recent_job_post_hours)
    job_posts = store.select_since(JOB_POSTS, "created_at", since)
    stats["total_job_posts"] = len(job_posts)

    payloads = []
    for job in job_posts:
        payload = build_enrichment_payload(
            store, job["id"], max_bytes=settings.enrichment_description_max_bytes
        )
        if payload is not None:
            payloads.append(payload)
    stats["payloads_built"] = len(payloads)

    result = webhook.send_batch(payloads)
    stats["synced"] = result["success"]
    stats["failed"] = result["failed"]
    logger.info("enrichment_sync_complete", **stats)
    return stats
