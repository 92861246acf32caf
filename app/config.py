# app/config.py
import os

# --- Define Project Root ---
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))


def _int_env(name: str, default: int) -> int:
    raw_value = os.getenv(name, str(default))
    try:
        return int(raw_value)
    except ValueError:
        raise ValueError(f"CRITICAL CONFIGURATION ERROR: {name} ('{raw_value}') is not a valid integer.")


def _float_env(name: str, default: float) -> float:
    raw_value = os.getenv(name, str(default))
    try:
        return float(raw_value)
    except ValueError:
        raise ValueError(f"CRITICAL CONFIGURATION ERROR: {name} ('{raw_value}') is not a valid number.")


# --- Database ---
DATABASE_USER = os.getenv("DB_USER", "postgres")
DATABASE_PASSWORD = os.getenv("DB_PASSWORD", "postgres")
DATABASE_HOST = os.getenv("DB_HOST", "localhost")
DATABASE_PORT = os.getenv("DB_PORT", "5432")
DATABASE_NAME = os.getenv("DB_NAME", "career_match")

# A full DATABASE_URL wins over the individual DB_* parts.
DATABASE_URL = os.getenv(
    "DATABASE_URL",
    f"postgresql+psycopg2://{DATABASE_USER}:{DATABASE_PASSWORD}@{DATABASE_HOST}:{DATABASE_PORT}/{DATABASE_NAME}",
)

# --- Embeddings ---
# The multilingual model is needed because job postings and consultation summaries are Japanese.
EMBEDDING_MODEL_NAME = os.getenv("EMBEDDING_MODEL_NAME", "sentence-transformers/paraphrase-multilingual-MiniLM-L12-v2")
EMBEDDING_DIMENSION = _int_env("EMBEDDING_DIMENSION", 384)

# --- Matching ---
MATCH_DEFAULT_TOP_K = _int_env("MATCH_DEFAULT_TOP_K", 5)
MATCH_RETRIEVAL_K = _int_env("MATCH_RETRIEVAL_K", 20)
MATCH_PROFILE_WEIGHT = _float_env("MATCH_PROFILE_WEIGHT", 0.5)
BACKEND_RETRY_ATTEMPTS = _int_env("BACKEND_RETRY_ATTEMPTS", 3)

if not 0.0 <= MATCH_PROFILE_WEIGHT <= 1.0:
    raise ValueError(
        f"CRITICAL CONFIGURATION ERROR: MATCH_PROFILE_WEIGHT ({MATCH_PROFILE_WEIGHT}) must be between 0 and 1."
    )

# --- Explanations (LLM) ---
EXPLANATION_TOP_N = _int_env("EXPLANATION_TOP_N", 5)
LLM_MODEL_PATH = os.getenv("LLM_MODEL_PATH")  # Explanations fall back to a fixed sentence when unset
LLM_MODEL_TYPE = os.getenv("LLM_MODEL_TYPE", "llama")
LLM_MAX_NEW_TOKENS = _int_env("LLM_MAX_NEW_TOKENS", 300)
LLM_TEMPERATURE = _float_env("LLM_TEMPERATURE", 0.7)

# --- Logging ---
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# --- Ingestion ---
JOBS_CSV_PATH = os.getenv("JOBS_CSV_PATH", "data/jobs.csv")
