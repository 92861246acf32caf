# File: PROJECT_ROOT/utils/db_utils.py
import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.database.models import Job
from app.recommender.errors import EncodingError
from app.recommender.feature_encoder import content_hash, encode_job
from app.recommender.types import JobPosting, SalaryRange
from app.services.embedding_service import Embedder

log = logging.getLogger(__name__)

_JOB_FIELDS = (
    "company_name",
    "job_title",
    "department",
    "job_description",
    "requirements",
    "skills",
    "employment_type",
    "location",
    "salary_range",
    "is_active",
)


def _posting_from_entry(entry: dict) -> JobPosting:
    return JobPosting(
        id=entry["external_job_id"],
        company_name=entry.get("company_name") or "",
        job_title=entry.get("job_title") or "",
        description=entry.get("job_description") or "",
        department=entry.get("department"),
        requirements=entry.get("requirements"),
        skills=list(entry.get("skills") or []),
        employment_type=entry.get("employment_type"),
        location=entry.get("location"),
        salary_range=SalaryRange.from_dict(entry.get("salary_range")),
    )


def upsert_jobs_sqlalchemy(db_session: Session, jobs_to_upsert_data: list[dict], embedder: Embedder) -> dict:
    """
    Upserts job postings by 'external_job_id' using an existing SQLAlchemy session.

    Each job is re-encoded; its embedding is recomputed only when the hash of the
    encoded text differs from the stored content_hash, so editing the description
    or skills invalidates the old embedding. The caller commits.

    Returns:
        dict: {'new_jobs_added', 'jobs_updated', 'embeddings_computed', 'skipped'}.
    """
    stats = {"new_jobs_added": 0, "jobs_updated": 0, "embeddings_computed": 0, "skipped": 0}
    if not jobs_to_upsert_data:
        log.info("DB_UTILS (Upsert): No job data provided to upsert.")
        return stats

    log.info(f"DB_UTILS (Upsert): Preparing to process {len(jobs_to_upsert_data)} job entries for upsert.")
    for entry in jobs_to_upsert_data:
        external_id = entry.get("external_job_id")
        if not external_id:
            log.warning(f"DB_UTILS (Upsert): Skipping job due to missing 'external_job_id': {entry.get('job_title', 'N/A')}")
            stats["skipped"] += 1
            continue

        try:
            encoded = encode_job(_posting_from_entry(entry))
        except EncodingError as e:
            log.warning(f"DB_UTILS (Upsert): Skipping job {external_id}: {e}")
            stats["skipped"] += 1
            continue
        new_hash = content_hash(encoded)

        job = db_session.execute(select(Job).where(Job.external_job_id == external_id)).scalars().first()
        if job is None:
            job = Job(external_job_id=external_id)
            db_session.add(job)
            stats["new_jobs_added"] += 1
        else:
            stats["jobs_updated"] += 1

        for field_name in _JOB_FIELDS:
            if field_name in entry:
                setattr(job, field_name, entry[field_name])
        if job.is_active is None:
            job.is_active = True

        if job.content_hash != new_hash or job.embedding is None:
            log.debug(f"DB_UTILS (Upsert): Content changed for job {external_id}; recomputing embedding.")
            job.embedding = embedder.embed(encoded)
            job.content_hash = new_hash
            stats["embeddings_computed"] += 1

    db_session.flush()
    log.info(
        f"DB_UTILS (Upsert): {stats['new_jobs_added']} new, {stats['jobs_updated']} updated, "
        f"{stats['embeddings_computed']} embeddings computed, {stats['skipped']} skipped."
    )
    return stats
