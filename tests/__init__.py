import logging
import os

from loguru import logger

# Intercept the configuration pipeline at the root of test discovery.
# Required settings must exist before src.config.settings is imported, and the
# database must live in ephemeral memory for TestClient lifespan events.
os.environ["SQLITE_DB_PATH"] = ":memory:"
os.environ.setdefault("BACKEND_URL", "https://auth.test.local")
os.environ.setdefault("BACKEND_ANON_KEY", "test-anon-key")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.pop("SEQ_URL", None)

# Globally mute application logs during testing to prevent terminal noise
# from unhappy-path testing (403s, 404s, validation errors, etc.)
logger.disable("src")

logging.getLogger("asyncio").setLevel(logging.ERROR)
