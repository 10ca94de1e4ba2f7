from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from uuid import UUID

from sqlalchemy.orm import Session, selectinload

from backend.app.models.job import Job


def _to_dt(d: date) -> datetime:
    """Convert a date to start-of-day UTC datetime."""
    return datetime(d.year, d.month, d.day, tzinfo=timezone.utc)


class JobRepository:
    """Read access to jobs and their requested products."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def get_job(self, job_id: UUID) -> Job | None:
        return (
            self.db.query(Job)
            .options(selectinload(Job.line_items))
            .filter(Job.id == job_id)
            .first()
        )

    def list_jobs_with_line_items(self) -> list[Job]:
        """Jobs that have at least one requested product, oldest first."""
        return (
            self.db.query(Job)
            .options(selectinload(Job.line_items))
            .filter(Job.line_items.any())
            .order_by(Job.created_at, Job.id)
            .all()
        )

    def list_jobs(
        self,
        created_from: date | None = None,
        created_to: date | None = None,
    ) -> list[Job]:
        query = self.db.query(Job).options(selectinload(Job.line_items))
        if created_from:
            query = query.filter(Job.created_at >= _to_dt(created_from))
        if created_to:
            query = query.filter(Job.created_at < _to_dt(created_to + timedelta(days=1)))
        return query.order_by(Job.created_at, Job.id).all()

    def job_ids_for_user(self, user_id: UUID) -> list[UUID]:
        rows = self.db.query(Job.id).filter(Job.assigned_to_id == user_id).all()
        return [r[0] for r in rows]
