"""
ASGI entry point for the Marketplace Analytics API.
"""

from marketplace.serving.api import create_app

app = create_app()


def run() -> None:
    """Serve the API with Uvicorn on the configured host and port."""
    import uvicorn

    from marketplace.config import get_settings

    settings = get_settings()
    uvicorn.run("marketplace.main:app", host=settings.api_host, port=settings.api_port)


if __name__ == "__main__":
    run()
