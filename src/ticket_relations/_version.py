from __future__ import annotations

from importlib import metadata

DIST_NAME = "helpdesk-ticket-relations"
SERVICE_NAME = "ticket-relations"


def _read_version() -> str:
    try:
        return metadata.version(DIST_NAME)
    except metadata.PackageNotFoundError:
        return "0.0.0"


__version__ = _read_version()
