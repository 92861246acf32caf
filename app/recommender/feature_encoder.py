# app/recommender/feature_encoder.py
"""Turns job postings and candidate profiles into the text that gets embedded.

Output must be byte-identical for identical input: embeddings are cached by
content_hash() of this text.
"""
import hashlib
from typing import Iterable, List, Optional, Tuple

from app.recommender.errors import EncodingError
from app.recommender.types import JobPosting, Requirements


def _clean(value) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _join(values: Optional[Iterable[str]]) -> Optional[str]:
    if not values:
        return None
    cleaned = [v for v in (_clean(v) for v in values) if v]
    return ", ".join(cleaned) or None


def _render(lines: List[Tuple[str, Optional[str]]]) -> str:
    return "\n".join(f"{label}: {value}" for label, value in lines if value)


def encode_job(job: JobPosting) -> str:
    missing = [
        name
        for name, value in (
            ("company_name", job.company_name),
            ("job_title", job.job_title),
            ("description", job.description),
        )
        if not _clean(value)
    ]
    if missing:
        raise EncodingError(f"Job '{job.id}' is missing required field(s): {', '.join(missing)}")

    return _render(
        [
            ("企業", _clean(job.company_name)),
            ("職種", _clean(job.job_title)),
            ("部署", _clean(job.department)),
            ("職務内容", _clean(job.description)),
            ("要件", _clean(job.requirements)),
            ("スキル", _join(job.skills)),
            ("勤務地", _clean(job.location)),
            ("雇用形態", _clean(job.employment_type)),
        ]
    )


def encode_profile(summary: Optional[str], requirements: Optional[Requirements], cv_summary: Optional[str] = None) -> str:
    requirements = requirements or Requirements()
    text = _render(
        [
            ("職務経歴", _clean(cv_summary)),
            ("相談内容", _clean(summary)),
            ("希望職種", _clean(requirements.desired_role)),
            ("希望業界", _clean(requirements.desired_industry)),
            ("スキル", _join(requirements.skills)),
            ("経験", _clean(requirements.experience)),
            ("希望勤務地", _clean(requirements.location)),
            ("希望年収", _clean(requirements.salary_expectation)),
            ("働き方", _clean(requirements.work_style)),
            ("キャリア目標", _clean(requirements.career_goals)),
            ("懸念事項", _join(requirements.concerns)),
        ]
    )
    if not text:
        raise EncodingError("Profile has no summary, CV summary or requirements to encode.")
    return text


def content_hash(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()
