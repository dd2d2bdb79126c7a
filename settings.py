import os
import logging
from typing import NamedTuple, Optional

from dotenv import load_dotenv

LOG_FORMAT = '%(asctime)s %(levelname)s [%(name)s] %(message)s'


class Settings(NamedTuple):
    api_base_url: str
    api_timeout: float
    api_token: Optional[str]
    refresh_interval_ms: int
    demo_student_count: int
    demo_seed: Optional[int]
    log_level: str
    debug: bool
    host: str
    port: int

    @property
    def demo_mode(self):
        return not self.api_base_url


def _as_bool(value):
    return str(value).strip().lower() in ('1', 'true', 'yes', 'on')


def load_settings():
    """Reads dashboard configuration from the environment (and a .env file, if present)."""
    load_dotenv()
    seed = os.getenv('DEMO_SEED')
    return Settings(
        api_base_url=os.getenv('API_BASE_URL', '').rstrip('/'),
        api_timeout=float(os.getenv('API_TIMEOUT', '30')),
        api_token=os.getenv('API_TOKEN') or None,
        refresh_interval_ms=int(os.getenv('REFRESH_INTERVAL_MS', '30000')),
        demo_student_count=int(os.getenv('DEMO_STUDENT_COUNT', '24')),
        demo_seed=int(seed) if seed else None,
        log_level=os.getenv('LOG_LEVEL', 'INFO').upper(),
        debug=_as_bool(os.getenv('DASH_DEBUG', 'false')),
        host=os.getenv('HOST', '127.0.0.1'),
        port=int(os.getenv('PORT', '8050')),
    )


def configure_logging(level='INFO'):
    logging.basicConfig(level=getattr(logging, level, logging.INFO), format=LOG_FORMAT)
