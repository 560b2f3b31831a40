from __future__ import annotations

from provflow.config import load_settings
from provflow.logging import configure_logging, get_logger


def main() -> int:
    """
    Programmatic entrypoint for the status API.

    Recommended dev command:
      uvicorn provflow.api.app:app --reload

    This entrypoint exists so you can also do:
      python -m provflow.main
    """
    settings = load_settings()
    configure_logging(settings.log_level)
    log = get_logger(__name__)

    log.info("Starting provflow API on %s:%d", settings.host, settings.port)

    # Import here so config/logging are set before app import side-effects.
    try:
        from provflow.api.app import app  # noqa: F401
    except Exception:
        log.exception("Failed to import FastAPI app (provflow.api.app:app).")
        return 1

    import uvicorn

    uvicorn.run(
        "provflow.api.app:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level,
        reload=False,  # prefer `uvicorn ... --reload` in dev
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
