"""
FastAPI Production Application

Main entry point for the Education Analytics API.
"""

from src.config import configure_logging, get_settings
from src.serving.api import create_api_app

settings = get_settings()
configure_logging()

app = create_api_app(settings)


def run() -> None:
    """Console entry point; the registries are in-process, so one worker."""
    import uvicorn
    uvicorn.run(app, host=settings.api_host, port=settings.api_port, server_header=False)


if __name__ == "__main__":
    run()
