"""Environment-driven settings for the todo server."""

import os
from pathlib import Path

DATA_DIR = Path(os.getenv("DATA_DIR", "./data"))
DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{DATA_DIR / 'todo.db'}")

ALLOWED_ORIGINS = os.getenv("CORS_ORIGINS", "*").split(",")

# Built single-page app; mounted at / only when the directory exists.
STATIC_DIR = Path(os.getenv("STATIC_DIR", "./static"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "8000"))

SEED_CATEGORIES = os.getenv("SEED_CATEGORIES", "1").lower() not in ("0", "false", "no")
