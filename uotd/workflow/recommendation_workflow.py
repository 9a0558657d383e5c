"""
Recommendation approval workflow.

States
------
    pending ──approve──▶ approved    (terminal; writes an announcement)
    pending ──reject───▶ rejected    (terminal; records reason)
    pending ──force────▶ superseded  (a forced re-check replaced it, or a
                                      published announcement already exists)
    pending ──sweep────▶ expired     (explicit ``expire_stale`` only)

Create is idempotent per (target_slot, target_date): an existing pending or
approved recommendation turns the call into a ``skipped`` outcome. ``force``
supersedes any pending row for the pair and inserts a fresh one; approved
rows are terminal and left as they are. The partial unique index on pending
rows makes the "one pending per slot-date" rule hold even when two triggers
race; the loser of such a race is reported as ``skipped``.

Approve and reject are single conditional updates on ``status = 'pending'``;
approval, the announcement insert and the back-reference all happen inside
one savepoint. Calls against a non-pending recommendation raise
``StateConflict``. Expired-but-pending recommendations may still be approved.
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime, timedelta
from typing import Optional

from uotd.db.connection import savepoint
from uotd.db.repositories.announcement_repo import AnnouncementRepository
from uotd.db.repositories.catalog_repo import UniformRepository
from uotd.db.repositories.recommendation_repo import RecommendationRepository
from uotd.models.recommendation import CreateOutcome, Recommendation
from uotd.taxonomy.weather_taxonomy import SYSTEM_ACTOR, RecommendationStatus
from uotd.utils.time_utils import utcnow
from uotd.workflow.announcements import build_recommendation_announcement

logger = logging.getLogger(__name__)


class StateConflict(RuntimeError):
    """Approve/reject attempted on a recommendation that is not pending."""

    def __init__(self, recommendation_id: int, status: str, detail: Optional[str] = None) -> None:
        self.recommendation_id = recommendation_id
        self.status = status
        message = detail or f"Recommendation {recommendation_id} is already {status}"
        super().__init__(message)


class RecommendationNotFound(LookupError):
    """No recommendation exists with the given id."""


class RecommendationWorkflow:
    """State machine over persisted recommendations.

    Args:
        conn:       Open SQLite connection (see ``get_connection``).
        speed_unit: Wind unit used in announcement text.
    """

    def __init__(self, conn: sqlite3.Connection, speed_unit: str = "mph") -> None:
        self.conn = conn
        self.speed_unit = speed_unit
        self.recommendations = RecommendationRepository(conn)
        self.announcements = AnnouncementRepository(conn)
        self.uniforms = UniformRepository(conn)

    # ── Create ────────────────────────────────────────────────────────────────

    def create(
        self,
        rec: Recommendation,
        force: bool = False,
        now: Optional[datetime] = None,
    ) -> CreateOutcome:
        """Insert ``rec`` as pending unless an active one exists for its slot/date.

        Args:
            rec:   New recommendation (``status`` is forced to pending).
            force: Supersede existing pending rows and insert regardless.
            now:   Supersession timestamp; defaults to ``utcnow()``.

        Returns:
            ``CreateOutcome`` — ``created`` with the new id, or ``skipped``
            with the id and status of the blocking recommendation.
        """
        now = now or utcnow()
        rec = rec.model_copy(update={"status": RecommendationStatus.PENDING, "recommendation_id": None})

        if not force:
            existing = self.recommendations.find_active(rec.target_slot, rec.target_date)
            if existing is not None:
                logger.info(
                    "Recommendation for %s %s already %s (id=%s); skipping.",
                    rec.target_date, rec.target_slot, existing.status, existing.recommendation_id,
                )
                return CreateOutcome(
                    status="skipped",
                    recommendation_id=existing.recommendation_id,
                    existing_status=existing.status,
                )

        try:
            with savepoint(self.conn, "create_recommendation"):
                superseded: list[int] = []
                if force:
                    superseded = self.recommendations.supersede_pending(
                        rec.target_slot, rec.target_date, rec.created_by, now
                    )
                new_id = self.recommendations.insert(rec)
        except sqlite3.IntegrityError:
            existing = self.recommendations.find_active(rec.target_slot, rec.target_date)
            logger.info(
                "Concurrent create for %s %s lost the race; skipping.",
                rec.target_date, rec.target_slot,
            )
            return CreateOutcome(
                status="skipped",
                recommendation_id=existing.recommendation_id if existing else None,
                existing_status=existing.status if existing else None,
            )

        if superseded:
            logger.info("Superseded pending recommendation(s) %s by forced create.", superseded)
        logger.info(
            "Created recommendation %d for %s %s (uniform=%s).",
            new_id, rec.target_date, rec.target_slot, rec.uniform_name,
        )
        return CreateOutcome(
            status="created",
            recommendation_id=new_id,
            superseded_ids=tuple(superseded),
        )

    # ── Decide ────────────────────────────────────────────────────────────────

    def _load(self, recommendation_id: int) -> Recommendation:
        rec = self.recommendations.get_by_id(recommendation_id)
        if rec is None:
            raise RecommendationNotFound(f"Recommendation {recommendation_id} not found")
        return rec

    def approve(
        self,
        recommendation_id: int,
        approved_by: str,
        custom_title: Optional[str] = None,
        custom_content: Optional[str] = None,
        approver_name: Optional[str] = None,
        now: Optional[datetime] = None,
        auto_published: bool = False,
    ) -> Recommendation:
        """Approve a pending recommendation and publish its announcement.

        Returns:
            The updated recommendation (``status=approved`` with
            ``announcement_id`` set).

        Raises:
            RecommendationNotFound: Unknown id.
            StateConflict: Not pending, or an announcement for the same slot
                and date was already published (the recommendation is then
                marked superseded).
        """
        now = now or utcnow()
        conflict: Optional[StateConflict] = None

        with savepoint(self.conn, "approve_recommendation"):
            rec = self._load(recommendation_id)
            if not rec.is_pending:
                raise StateConflict(recommendation_id, rec.status.value)

            published = self.announcements.find_published(rec.target_slot, rec.target_date)
            if published is not None:
                logger.warning(
                    "Announcement %s already exists for %s %s; superseding recommendation %d.",
                    published.announcement_id, rec.target_date, rec.target_slot, recommendation_id,
                )
                self.recommendations.mark_superseded(recommendation_id, approved_by, now)
                conflict = StateConflict(
                    recommendation_id,
                    RecommendationStatus.SUPERSEDED.value,
                    f"Announcement already exists for {rec.target_date} {rec.target_slot}",
                )
            else:
                if rec.is_expired(now):
                    logger.info("Approving recommendation %d after its expiry.", recommendation_id)

                if not self.recommendations.mark_approved(
                    recommendation_id, approved_by, now,
                    custom_title, custom_content, auto_published,
                ):
                    current = self._load(recommendation_id)
                    raise StateConflict(recommendation_id, current.status.value)

                uniform = self.uniforms.get_by_id(rec.uniform_id) if rec.uniform_id else None
                announcement = build_recommendation_announcement(
                    rec,
                    uniform,
                    author_id=approved_by,
                    author_name=approver_name,
                    published_at=now,
                    custom_title=custom_title,
                    custom_content=custom_content,
                    auto_published=auto_published,
                    speed_unit=self.speed_unit,
                )
                announcement_id = self.announcements.insert(announcement)
                self.recommendations.set_announcement(recommendation_id, announcement_id)

        if conflict is not None:
            raise conflict

        logger.info(
            "Recommendation %d approved by %s; announcement %d published.",
            recommendation_id, approved_by, announcement_id,
        )
        return self._load(recommendation_id)

    def reject(
        self,
        recommendation_id: int,
        rejected_by: str,
        reason: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Recommendation:
        """Reject a pending recommendation.

        Raises:
            RecommendationNotFound: Unknown id.
            StateConflict: Not pending.
        """
        now = now or utcnow()
        rec = self._load(recommendation_id)
        if not rec.is_pending:
            raise StateConflict(recommendation_id, rec.status.value)

        if not self.recommendations.mark_rejected(recommendation_id, rejected_by, now, reason):
            current = self._load(recommendation_id)
            raise StateConflict(recommendation_id, current.status.value)

        logger.info("Recommendation %d rejected by %s.", recommendation_id, rejected_by)
        return self._load(recommendation_id)

    # ── Maintenance ───────────────────────────────────────────────────────────

    def expire_stale(self, now: Optional[datetime] = None) -> list[int]:
        """Mark pending recommendations past ``expires_at`` as expired."""
        now = now or utcnow()
        expired = self.recommendations.expire_pending_before(now)
        if expired:
            logger.info("Expired %d recommendation(s): %s", len(expired), expired)
        else:
            logger.debug("No recommendations to expire.")
        return expired

    def auto_publish_pending(
        self,
        delay_minutes: int,
        now: Optional[datetime] = None,
    ) -> list[int]:
        """Approve, as ``system``, pending recommendations older than ``delay_minutes``.

        A recommendation that conflicts (already decided, or already
        published for its slot) is logged and skipped.

        Returns:
            Ids of the recommendations approved by this call.
        """
        now = now or utcnow()
        cutoff = now - timedelta(minutes=delay_minutes)
        published: list[int] = []

        for rec in self.recommendations.get_pending_created_before(cutoff):
            assert rec.recommendation_id is not None
            try:
                self.approve(
                    rec.recommendation_id,
                    approved_by=SYSTEM_ACTOR,
                    approver_name="System (Auto-publish)",
                    now=now,
                    auto_published=True,
                )
            except StateConflict as exc:
                logger.warning("Auto-publish skipped recommendation %d: %s", rec.recommendation_id, exc)
                continue
            published.append(rec.recommendation_id)

        if published:
            logger.info("Auto-published %d recommendation(s).", len(published))
        return published

    def count_pending(self) -> int:
        return self.recommendations.count_by_status(RecommendationStatus.PENDING)
