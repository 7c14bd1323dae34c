from fastapi import HTTPException

from kitconsole.config import settings


def require_development() -> None:
    """The console changes the project on disk; it only runs for local development."""
    if not settings.IS_DEVELOPMENT:
        raise HTTPException(status_code=403, detail="Manage prototype is not available")
