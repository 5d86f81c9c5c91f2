from __future__ import annotations

from ticket_relations.app.server import create_app
from ticket_relations.config.load import load_settings
from ticket_relations.observability.logger import configure_logging_from_settings

settings = load_settings()
configure_logging_from_settings(settings)

app = create_app(settings)
