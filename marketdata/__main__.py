"""Run the Market Data API: ``python -m marketdata``."""

import uvicorn

from marketdata.api.routes import create_app
from marketdata.config import settings
from marketdata.logging_config import configure_logging


def main() -> None:
    """Configure logging and serve the API with uvicorn."""
    configure_logging(settings.LOG_LEVEL, json_output=settings.LOG_JSON)
    app = create_app(settings=settings)
    uvicorn.run(app, host=settings.HOST, port=settings.PORT, log_level=settings.LOG_LEVEL.lower())


if __name__ == "__main__":
    main()
