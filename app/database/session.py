# app/database/session.py
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base

from app.config import DATABASE_URL

# The engine manages the DBAPI connection pool. pool_pre_ping drops stale connections
# before a request uses them.
engine = create_engine(DATABASE_URL, pool_pre_ping=True)

# - autocommit=False: every write path commits explicitly (the match store relies on this
#   to keep delete + insert in one transaction).
# - expire_on_commit=False: domain records are mapped after commit without a reload.
SessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)

Base = declarative_base()


def get_db_session():
    """FastAPI dependency: one database session per request, always closed."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
