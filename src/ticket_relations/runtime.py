from __future__ import annotations

import structlog
import uvicorn

from ticket_relations.app.server import create_app
from ticket_relations.config.load import load_settings
from ticket_relations.config.settings import Settings
from ticket_relations.observability.logger import configure_logging_from_settings

log = structlog.get_logger(__name__)


def serve(settings: Settings | None = None) -> int:
    if settings is None:
        settings = load_settings()
    configure_logging_from_settings(settings)
    log.info(
        "runtime.starting",
        host=settings.server.host,
        port=settings.server.port,
        storage_backend=settings.storage.backend,
        locks_backend=settings.locks.backend,
    )

    app = create_app(settings)
    uvicorn.run(
        app,
        host=settings.server.host,
        port=settings.server.port,
        log_config=None,
    )
    return 0
