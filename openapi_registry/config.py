"""
Configuration management for document registration.
Loads environment variables and provides defaults for generated documents.
"""
import os
import logging
from pathlib import Path
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# Load environment variables
# Try to find .env file in multiple locations
env_paths = [
    Path(__file__).parent.parent / ".env",  # Project root (from openapi_registry/config.py)
    Path.cwd() / ".env",  # Current working directory
    Path.home() / ".env",  # Home directory (fallback)
]

env_loaded = False
for env_path in env_paths:
    if env_path.exists():
        logger.info(f"Loading .env from: {env_path}")
        load_dotenv(dotenv_path=env_path, override=True)
        env_loaded = True
        break

if not env_loaded:
    logger.info("No .env file found in standard locations, using default load_dotenv() behavior")
    load_dotenv()


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes", "on")


# Document defaults
DEFAULT_DOCUMENT_NAME = os.getenv("OPENAPI_DEFAULT_DOCUMENT_NAME", "v1")
DEFAULT_DOCUMENT_TITLE = os.getenv("OPENAPI_DOCUMENT_TITLE", "Web API")
DEFAULT_DOCUMENT_VERSION = os.getenv("OPENAPI_DOCUMENT_VERSION", "1.0.0")

# Failed generations are terminal for the process unless retries are enabled
RETRY_FAILED_GENERATION = _env_flag("OPENAPI_RETRY_FAILED_GENERATION")

# Build every registered document at startup instead of on first request
WARM_UP_DOCUMENTS = _env_flag("OPENAPI_WARM_UP")

# Directory for exported documents
EXPORT_DIR = Path(os.getenv("OPENAPI_EXPORT_DIR", "openapi"))

# Dialect version tags written into generated documents
SWAGGER2_VERSION = "2.0"
OPENAPI3_VERSION = "3.0.0"

# Supported HTTP methods per OpenAPI 3.0 spec
HTTP_METHODS = ["get", "post", "put", "delete", "patch", "head", "options", "trace"]

logger.info(
    f"Document defaults: name={DEFAULT_DOCUMENT_NAME}, "
    f"retry_failed={RETRY_FAILED_GENERATION}, warm_up={WARM_UP_DOCUMENTS}"
)
