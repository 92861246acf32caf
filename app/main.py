import logging

from fastapi import FastAPI

from app.api.v1.routes import router as v1_router
from app.config import LOG_LEVEL

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")

app = FastAPI(title="Career Match Engine")


@app.get("/health")
def health():
    return {"status": "ok"}


# Include all versioned routes
app.include_router(v1_router, prefix="/api/v1")
