"""Environment-driven settings"""
import os
from pathlib import Path
from dotenv import load_dotenv

ROOT_DIR = Path(__file__).resolve().parent.parent
load_dotenv(ROOT_DIR / '.env')
# Optional local overrides (do not commit secrets)
load_dotenv(ROOT_DIR / ".env.local", override=True)


def _as_bool(v: str) -> bool:
    return str(v or "").strip().lower() in ("1", "true", "yes", "y", "on")


MONGO_URL = os.environ.get("MONGO_URL", "mongodb://localhost:27017")
DB_NAME = os.environ.get("DB_NAME", "udise_dashboard")

# For production, ALWAYS set JWT_SECRET_KEY via environment.
JWT_SECRET_KEY = (
    os.environ.get("JWT_SECRET_KEY")
    or os.environ.get("SECRET_KEY")
    or "udise-dashboard-dev-jwt-secret-change-me"
)
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.environ.get("ACCESS_TOKEN_EXPIRE_MINUTES", 60 * 24 * 7))

CORS_ORIGINS = [o.strip() for o in os.environ.get("CORS_ORIGINS", "*").split(",") if o.strip()] or ["*"]
CORS_ALLOW_CREDENTIALS = _as_bool(os.environ.get("CORS_ALLOW_CREDENTIALS", "false"))

UPLOADS_DIR = Path(os.environ.get("UPLOADS_DIR", ROOT_DIR / "uploads"))
