"""
ASGI entry point.

Used by uvicorn:
    uvicorn server.asgi:app --app-dir backend
"""

from dotenv import load_dotenv

load_dotenv()

from config import AppConfig  # pylint: disable=wrong-import-position
from observability.logger import configure_logging  # pylint: disable=wrong-import-position
from server.app import create_app  # pylint: disable=wrong-import-position

_config = AppConfig.load_from_env()
configure_logging(level=_config.log_level, enabled=_config.enable_json_logs)

app = create_app(_config)
