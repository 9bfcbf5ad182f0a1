from pathlib import Path
from dotenv import load_dotenv
import pytest

# Load environment variables for tests before any app module reads settings
load_dotenv(Path(__file__).resolve().parents[1] / '.env.test')


@pytest.fixture(autouse=True)
def reset_dependency_overrides():
    """Drop FastAPI overrides installed by a test so they never leak."""
    yield
    from app.main import app

    app.dependency_overrides.clear()
