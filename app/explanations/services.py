# app/explanations/services.py

import json
import logging

from langchain_core.output_parsers import StrOutputParser
from langchain_core.prompts import PromptTemplate

from app.config import LLM_MAX_NEW_TOKENS, LLM_MODEL_PATH, LLM_MODEL_TYPE, LLM_TEMPERATURE
from app.recommender.errors import ExplanationFailure
from app.recommender.match_enhancer import MAN_EN
from app.recommender.types import CandidateProfile, ConsultationSession, JobPosting

logger = logging.getLogger(__name__)

FALLBACK_EXPLANATION = "この求人はあなたの経験とスキルに適合しています。"

EXPLANATION_PROMPT = (
    "あなたは転職マッチングの専門家です。\n"
    "以下の求人と候補者のマッチング理由を、候補者にわかりやすく説明してください。\n\n"
    "求人情報:\n"
    "- 企業: {company_name}\n"
    "- 職種: {job_title}\n"
    "- 職務内容: {description}\n"
    "- 必要スキル: {skills}\n"
    "- 勤務地: {location}\n"
    "- 年収: {salary}\n\n"
    "候補者情報:\n"
    "- 職歴要約: {candidate_summary}\n"
    "- 保有スキル: {candidate_skills}\n"
    "- 希望条件: {requirements}\n\n"
    "なぜこの求人が候補者にマッチするのか、3-4文で具体的に説明してください。\n"
    "説明:"
)


def _format_salary(job: JobPosting) -> str:
    salary = job.salary_range
    if salary is None or (salary.min is None and salary.max is None):
        return "要相談"
    # Stored in yen, shown in 万円.
    low = f"{salary.min // MAN_EN}万円" if salary.min is not None else ""
    high = f"{salary.max // MAN_EN}万円" if salary.max is not None else ""
    return f"{low}〜{high}"


def build_prompt_inputs(job: JobPosting, candidate: CandidateProfile, session: ConsultationSession) -> dict:
    requirements = session.extracted_requirements
    return {
        "company_name": job.company_name,
        "job_title": job.job_title,
        "description": job.description,
        "skills": ", ".join(job.skills) or "なし",
        "location": job.location or "不明",
        "salary": _format_salary(job),
        "candidate_summary": candidate.profile_summary or candidate.cv_summary or "なし",
        "candidate_skills": ", ".join(candidate.skills_extracted) or "なし",
        "requirements": json.dumps(requirements.to_dict() if requirements else {}, ensure_ascii=False, sort_keys=True),
    }


def load_default_llm():
    """Local LLM through CTransformers, as configured by LLM_MODEL_PATH. None when unset."""
    if not LLM_MODEL_PATH:
        logger.info("LLM_MODEL_PATH is not set; match explanations will use the fallback text.")
        return None
    from langchain_community.llms import CTransformers

    llm_config = {"max_new_tokens": LLM_MAX_NEW_TOKENS, "temperature": LLM_TEMPERATURE, "context_length": 4096}
    logger.info(f"Loading explanation LLM from {LLM_MODEL_PATH} (type: {LLM_MODEL_TYPE}).")
    return CTransformers(model=LLM_MODEL_PATH, model_type=LLM_MODEL_TYPE, config=llm_config)


class ExplanationService:
    """Best-effort prose explanation of a single match.

    explain() never raises: any failure returns FALLBACK_EXPLANATION.
    """

    def __init__(self, llm=None, fallback: str = FALLBACK_EXPLANATION):
        self.fallback = fallback
        self.prompt_template = PromptTemplate.from_template(EXPLANATION_PROMPT)
        self.chain = (self.prompt_template | llm | StrOutputParser()) if llm is not None else None

    def _generate(self, job: JobPosting, candidate: CandidateProfile, session: ConsultationSession) -> str:
        if self.chain is None:
            raise ExplanationFailure("No LLM configured for explanations.")
        try:
            answer = self.chain.invoke(build_prompt_inputs(job, candidate, session))
        except Exception as e:
            raise ExplanationFailure(f"LLM call failed: {e}") from e
        if not isinstance(answer, str) or not answer.strip():
            raise ExplanationFailure("LLM returned an empty explanation.")
        return answer.strip()

    def explain(self, job: JobPosting, candidate: CandidateProfile, session: ConsultationSession) -> str:
        try:
            return self._generate(job, candidate, session)
        except ExplanationFailure as e:
            logger.warning(f"Using fallback explanation for job {job.id}: {e}")
            return self.fallback

