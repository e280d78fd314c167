"""
Main entry point for the BIM360 Issue Editor API server.
"""

from .api import app  # noqa: F401

if __name__ == "__main__":
    import logging

    import uvicorn

    from .config import get_settings

    settings = get_settings()
    logging.basicConfig(level=settings.log_level.upper())
    uvicorn.run(
        "bim360_issue_editor.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
        workers=1 if settings.debug else settings.api_workers,
    )
