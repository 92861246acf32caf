# scripts/ingest_data.py
"""Imports job postings from a CSV file and (re)computes their embeddings.

Usage: python scripts/ingest_data.py [path/to/jobs.csv]
"""
import logging
import os
import sys

# Add project root to Python path to allow importing app modules
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from app.config import LOG_LEVEL
from app.database.session import SessionLocal
from app.services.embedding_service import SentenceTransformerEmbedder
from utils.data_processing_utils import fetch_and_prepare_job_data_from_csv, resolve_csv_path
from utils.db_utils import upsert_jobs_sqlalchemy

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
logger = logging.getLogger(__name__)


def ingest_data(db_session, embedder, csv_path: str) -> dict:
    jobs = fetch_and_prepare_job_data_from_csv(csv_path)
    if not jobs:
        logger.info("No job entries to ingest.")
        return {}
    try:
        stats = upsert_jobs_sqlalchemy(db_session, jobs, embedder)
        db_session.commit()
        logger.info("Data committed successfully.")
        return stats
    except Exception as e:
        logger.error(f"Error ingesting job data: {e}", exc_info=True)
        db_session.rollback()
        logger.info("Database transaction rolled back.")
        raise


if __name__ == "__main__":
    csv_path = resolve_csv_path(sys.argv[1] if len(sys.argv) > 1 else None)
    if not os.path.exists(csv_path):
        logger.error(f"CRITICAL: CSV file for ingestion not found at '{csv_path}'.")
        sys.exit(1)

    db = SessionLocal()
    try:
        result = ingest_data(db, SentenceTransformerEmbedder(), csv_path)
        logger.info(f"Ingestion process completed: {result}")
    except Exception:
        sys.exit(1)
    finally:
        db.close()
        logger.info("Database session closed.")
