"""
Pytest configuration file for backend testing.
"""
import os
import sys
from pathlib import Path

# Settings are read once at import time, so the test environment must be in
# place before anything imports core.config
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["REVIEW_QUOTA_BACKEND"] = "database"
os.environ["ENVIRONMENT"] = "test"
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-for-review-tests")
os.environ.setdefault("REVIEW_QUOTA_TIMEZONE", "Europe/Minsk")

# Add the backend directory to Python path so imports work correctly
backend_dir = Path(__file__).parent
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

# Import all models to ensure SQLAlchemy relationships work
from modules.establishments.models import establishment_models  # noqa: E402,F401
from modules.reviews.models import review_models  # noqa: E402,F401
