from aiguide.logging_config import setup_logging
from aiguide.routes import create_app
from aiguide.settings import settings


# Configure logging once for the whole process.
setup_logging()

# FastAPI application instance for uvicorn.
app = create_app()


def run() -> None:
    import uvicorn

    # Use our own logging configuration configured in aiguide.logging_config.
    uvicorn.run(
        "main:app", host=settings.host, port=settings.port, reload=False, log_config=None
    )


if __name__ == "__main__":
    run()
