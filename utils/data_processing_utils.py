# File: PROJECT_ROOT/utils/data_processing_utils.py
import logging
import os
import re
from typing import Optional

import pandas as pd

from app.config import JOBS_CSV_PATH as DEFAULT_CSV_PATH, PROJECT_ROOT

log = logging.getLogger(__name__)

# Skills columns come either comma separated or with the Japanese list separator.
_SKILL_SPLIT = re.compile(r"[,、，/]")


def _text(row, *columns) -> Optional[str]:
    for column in columns:
        value = row.get(column)
        if value is not None and not pd.isna(value) and str(value).strip():
            return str(value).strip()
    return None


def _amount(row, column) -> Optional[int]:
    value = row.get(column)
    if value is None or pd.isna(value) or str(value).strip() == "":
        return None
    try:
        return int(float(value))
    except (TypeError, ValueError):
        log.warning(f"DATA_PROCESSING_UTILS: Ignoring non-numeric {column} value '{value}'.")
        return None


def parse_skills(raw) -> list[str]:
    if raw is None or (not isinstance(raw, (list, tuple)) and pd.isna(raw)):
        return []
    parts = raw if isinstance(raw, (list, tuple)) else _SKILL_SPLIT.split(str(raw))
    skills = []
    for part in parts:
        skill = str(part).strip()
        if skill and skill not in skills:
            skills.append(skill)
    return skills


def parse_active(raw) -> bool:
    if raw is None or (isinstance(raw, float) and pd.isna(raw)):
        return True
    if isinstance(raw, bool):
        return raw
    return str(raw).strip().lower() not in ("false", "0", "no", "inactive", "")


def resolve_csv_path(csv_file_path: Optional[str] = None) -> str:
    path = csv_file_path or DEFAULT_CSV_PATH
    if not os.path.isabs(path):
        path = os.path.join(PROJECT_ROOT, path)
    return path


def fetch_and_prepare_job_data_from_csv(csv_file_path: Optional[str] = None) -> list[dict]:
    """Reads job postings from CSV into dicts ready for upsert_jobs_sqlalchemy().

    Rows without company name, title or description are skipped.
    """
    resolved_csv_path = resolve_csv_path(csv_file_path)
    log.info(f"DATA_PROCESSING_UTILS: Attempting to read job data from CSV: {resolved_csv_path}")
    if not os.path.exists(resolved_csv_path):
        log.error(f"DATA_PROCESSING_UTILS: CSV file not found at {resolved_csv_path}. Please check the path.")
        return []

    df = pd.read_csv(resolved_csv_path)
    log.info(f"DATA_PROCESSING_UTILS: Found {len(df)} records in CSV file: {resolved_csv_path}")

    jobs_data_prepared = []
    for index, row in df.iterrows():
        company_name = _text(row, "company_name", "company")
        job_title = _text(row, "job_title", "title")
        description = _text(row, "job_description", "description", "job_description_text")
        if not (company_name and job_title and description):
            log.warning(
                f"DATA_PROCESSING_UTILS: Skipping row {index + 2} (Title: {job_title}) due to missing "
                f"company name, job title or description."
            )
            continue

        external_id = _text(row, "external_job_id", "job_id") or f"csv_job_index_{index}"
        salary_min = _amount(row, "salary_min")
        salary_max = _amount(row, "salary_max")
        salary_range = None
        if salary_min is not None or salary_max is not None:
            salary_range = {"min": salary_min, "max": salary_max, "currency": _text(row, "salary_currency") or "JPY"}

        jobs_data_prepared.append(
            {
                "external_job_id": external_id,
                "company_name": company_name,
                "job_title": job_title,
                "department": _text(row, "department"),
                "job_description": description,
                "requirements": _text(row, "requirements"),
                "skills": parse_skills(row.get("skills")),
                "employment_type": _text(row, "employment_type"),
                "location": _text(row, "location"),
                "salary_range": salary_range,
                "is_active": parse_active(row.get("is_active")),
            }
        )

    log.info(f"DATA_PROCESSING_UTILS: Prepared {len(jobs_data_prepared)} job entries from {len(df)} CSV records.")
    return jobs_data_prepared
