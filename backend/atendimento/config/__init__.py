from .config import Config
from .logging_config import (
    api_logger,
    app_logger,
    db_logger,
    gamification_logger,
    get_logger,
    security_logger,
    setup_logging,
)
from .sentry_config import capture_exception, init_sentry
