from __future__ import annotations

from collections.abc import Iterable
from uuid import UUID

from sqlalchemy.orm import Session, joinedload

from backend.app.models.job import Job
from backend.app.models.metrics import JobMetrics


class MetricsRepository:
    """Persistence for the one-row-per-job metrics table.

    Does NOT call db.commit(); the caller owns the transaction.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    def get(self, job_id: UUID) -> JobMetrics | None:
        return self.db.query(JobMetrics).filter(JobMetrics.job_id == job_id).first()

    def list_metrics(self, job_ids: Iterable[UUID] | None = None) -> list[JobMetrics]:
        query = self.db.query(JobMetrics).options(
            joinedload(JobMetrics.job).joinedload(Job.customer)
        )
        if job_ids is not None:
            query = query.filter(JobMetrics.job_id.in_(list(job_ids)))
        return query.order_by(JobMetrics.last_updated.desc(), JobMetrics.job_id).all()

    def by_job_ids(self, job_ids: Iterable[UUID]) -> dict[UUID, JobMetrics]:
        return {m.job_id: m for m in self.list_metrics(job_ids)}

    def count(self) -> int:
        return self.db.query(JobMetrics).count()

    def save(self, metrics: JobMetrics) -> JobMetrics:
        self.db.add(metrics)
        self.db.flush()
        return metrics

    def delete_all(self) -> int:
        deleted = self.db.query(JobMetrics).delete()
        self.db.flush()
        return deleted

    def save_all(self, rows: Iterable[JobMetrics]) -> None:
        self.db.add_all(list(rows))
        self.db.flush()
