"""
Pytest configuration file for backend testing.
"""
import os
import sys
from pathlib import Path

# Add the backend directory to Python path so imports work correctly
backend_dir = Path(__file__).parent
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

# Keep the application engine off the developer database
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

# Import all models to register them with SQLAlchemy
from modules.reservations.models import reservation_models  # noqa: E402,F401
