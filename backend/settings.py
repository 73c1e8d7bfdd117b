import os
from pathlib import Path

from dotenv import load_dotenv

from models.common import parse_bool

# Load environment variables from .env file in the backend folder
backend_dir = Path(__file__).parent
env_path = backend_dir / ".env"
load_dotenv(env_path)

SESSION_SECRET_KEY = os.getenv("SESSION_SECRET_KEY")
if not SESSION_SECRET_KEY:  # pragma: no cover
    raise ValueError("SESSION_SECRET_KEY must be set")

API_PREFIX = os.getenv("API_PREFIX", "")
BACKEND_DIR = Path(__file__).parent
DATABASE_PATH = BACKEND_DIR / "jammer.sqlite"
DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{DATABASE_PATH}")
PROJECT_PATH = BACKEND_DIR.parent

TESTING_MODE = parse_bool(os.getenv("TESTING_MODE", False))

BASE_URL = os.getenv("BASE_URL", "http://127.0.0.1:3000")
API_URL = os.getenv("API_URL", f"{BASE_URL}/api")

# --- Object storage (avatars and jam covers) ---
STORAGE_DIR = Path(os.getenv("STORAGE_DIR", BACKEND_DIR / "storage"))
STORAGE_PUBLIC_URL = os.getenv("STORAGE_PUBLIC_URL", f"{API_URL}/storage")
MAX_UPLOAD_BYTES = int(os.getenv("MAX_UPLOAD_BYTES", 5 * 1024 * 1024))

# --- Jam search ---
DEFAULT_RADIUS_MILES = float(os.getenv("DEFAULT_RADIUS_MILES", "25"))
