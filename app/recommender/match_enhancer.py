# app/recommender/match_enhancer.py

import logging
import re
from typing import Dict, Iterable, List, Optional, Protocol, Sequence, Tuple, Union

from app.recommender.errors import InvalidArgument
from app.recommender.types import (
    CandidateProfile,
    ConsultationSession,
    JobPosting,
    MatchResult,
    MatchSignals,
    Requirements,
    SearchHit,
    merge_skills,
)
from app.recommender.vector_search import clip_similarity

logger = logging.getLogger(__name__)

VERY_HIGH_FIT_THRESHOLD = 0.8
HIGH_FIT_THRESHOLD = 0.7
SIGNAL_RELEVANCE_THRESHOLD = 0.7

# Salary expectations arrive as free text in 万円 (units of 10,000 yen), e.g. "600万円".
# Job salary ranges are stored in yen.
MAN_EN = 10_000
SALARY_TOLERANCE = 0.8

REMOTE_MARKERS = ("リモート", "remote")

REASON_VERY_HIGH_FIT = "非常に高い適合度"
REASON_HIGH_FIT = "高い適合度"
REASON_SKILL_PREFIX = "スキルマッチ: "
REASON_LOCATION = "勤務地が希望に合致"
REASON_SALARY = "給与条件が希望に合致"
REASON_PROFILE = "職歴との高い関連性"
REASON_CHAT = "相談内容との高い関連性"
REASON_SEPARATOR = " / "

RawCandidate = Union[SearchHit, Tuple[str, float]]


class JobReader(Protocol):
    def get_many(self, job_ids: Sequence[str]) -> Dict[str, JobPosting]:
        ...


def parse_salary_expectation(expectation: Optional[Union[str, int, float]]) -> Optional[int]:
    """Returns the expected annual salary in yen, or None when nothing usable was stated.

    Strings follow the 万円 convention: every non-digit is stripped and the rest
    is multiplied by MAN_EN ("600万円" -> 6,000,000). Numbers below MAN_EN are
    万円 figures too (600 -> 6,000,000); larger numbers are already yen.
    """
    if expectation is None or isinstance(expectation, bool):
        return None
    if isinstance(expectation, (int, float)):
        if expectation <= 0:
            return None
        if expectation < MAN_EN:
            return int(expectation * MAN_EN)
        return int(expectation)
    digits = re.sub(r"[^0-9]", "", str(expectation))
    if not digits:
        return None
    return int(digits) * MAN_EN


def match_skills(job_skills: Iterable[str], candidate_skills: Iterable[str]) -> List[str]:
    wanted = [s.lower() for s in candidate_skills if s and s.strip()]
    matched = []
    for skill in job_skills or []:
        if not skill or not skill.strip():
            continue
        needle = skill.lower()
        if any(cs in needle or needle in cs for cs in wanted):
            matched.append(skill)
    return matched


def is_location_compatible(job_location: Optional[str], desired_location: Optional[str]) -> bool:
    if not desired_location or not desired_location.strip():
        return True
    if not job_location:
        return False
    if desired_location.strip() in job_location:
        return True
    lowered = job_location.lower()
    return any(marker in lowered for marker in REMOTE_MARKERS)


def is_salary_compatible(job: JobPosting, expected_salary: Optional[int]) -> bool:
    if expected_salary is None:
        return True
    if job.salary_range is None or job.salary_range.min is None:
        return True
    return job.salary_range.min >= expected_salary * SALARY_TOLERANCE


def build_match_reason(similarity: float, signals: MatchSignals) -> str:
    reasons = []
    if similarity >= VERY_HIGH_FIT_THRESHOLD:
        reasons.append(REASON_VERY_HIGH_FIT)
    elif similarity >= HIGH_FIT_THRESHOLD:
        reasons.append(REASON_HIGH_FIT)

    if signals.skill_match:
        reasons.append(REASON_SKILL_PREFIX + ", ".join(signals.skill_match))
    # Location and salary clauses only make sense when the candidate asked for something.
    if signals.location_stated and signals.location_match:
        reasons.append(REASON_LOCATION)
    if signals.salary_stated and signals.salary_match:
        reasons.append(REASON_SALARY)

    if signals.profile_similarity is not None and signals.profile_similarity > SIGNAL_RELEVANCE_THRESHOLD:
        reasons.append(REASON_PROFILE)
    if signals.chat_similarity is not None and signals.chat_similarity > SIGNAL_RELEVANCE_THRESHOLD:
        reasons.append(REASON_CHAT)

    return REASON_SEPARATOR.join(reasons)


def _as_hit(candidate: RawCandidate) -> SearchHit:
    if isinstance(candidate, SearchHit):
        return candidate
    return SearchHit(*candidate)


class MatchEnhancer:
    """Turns raw similarity hits into a ranked, explained list of MatchResult.

    Ordering is by similarity only. Skill, location and salary signals feed the
    match reason and never change the rank.
    """

    def __init__(self, jobs: JobReader):
        self.jobs = jobs

    def enhance(
        self,
        raw_candidates: Sequence[RawCandidate],
        session: ConsultationSession,
        candidate: CandidateProfile,
        top_k: int,
    ) -> List[MatchResult]:
        if not isinstance(top_k, int) or isinstance(top_k, bool) or top_k <= 0:
            raise InvalidArgument(f"top_k must be a positive integer, got {top_k!r}")
        if not raw_candidates:
            logger.info(f"No raw candidates for session {session.id}; nothing to enhance.")
            return []

        ordered = sorted(
            (_as_hit(c) for c in raw_candidates),
            key=lambda h: (-clip_similarity(h.similarity), str(h.job_id)),
        )
        # A job is ranked once per session; keep its best hit.
        hits = []
        seen_ids = set()
        for hit in ordered:
            if hit.job_id in seen_ids:
                logger.debug(f"Ignoring duplicate hit for job {hit.job_id} (similarity {hit.similarity}).")
                continue
            seen_ids.add(hit.job_id)
            hits.append(hit)
        hits = hits[:top_k]

        job_map = self.jobs.get_many([h.job_id for h in hits])
        logger.debug(f"Fetched {len(job_map)} of {len(hits)} job records for session {session.id}.")

        requirements = session.extracted_requirements or Requirements()
        all_candidate_skills = merge_skills(candidate.skills_extracted, requirements.skills)
        desired_location = requirements.location
        expected_salary = parse_salary_expectation(requirements.salary_expectation)

        results: List[MatchResult] = []
        for hit in hits:
            job = job_map.get(hit.job_id)
            if job is None:
                logger.warning(f"Job {hit.job_id} returned by vector search no longer exists; dropping it.")
                continue

            signals = MatchSignals(
                skill_match=match_skills(job.skills, all_candidate_skills),
                location_match=is_location_compatible(job.location, desired_location),
                salary_match=is_salary_compatible(job, expected_salary),
                location_stated=bool(desired_location and desired_location.strip()),
                salary_stated=expected_salary is not None,
                profile_similarity=hit.profile_similarity,
                chat_similarity=hit.chat_similarity,
            )
            similarity = clip_similarity(hit.similarity)
            results.append(
                MatchResult(
                    session_id=session.id,
                    job_id=job.id,
                    similarity_score=similarity,
                    match_reason=build_match_reason(similarity, signals),
                    ranking=len(results) + 1,
                    signals=signals,
                    job=job,
                )
            )

        logger.info(f"Enhanced {len(results)} matches for session {session.id} (top_k={top_k}).")
        return results
