from fastapi import Depends, FastAPI
from dotenv import load_dotenv

# Load environment variables before the config module reads them
load_dotenv()

from blocktint import __version__  # noqa: E402
from blocktint.api.v1 import router as v1_router, get_block_colors  # noqa: E402
from blocktint.config import config  # noqa: E402
from blocktint.schemas import HealthResponse  # noqa: E402
from blocktint.services.orchestrator import BlockColorCache  # noqa: E402
from blocktint.utils.logging import get_logger  # noqa: E402

logger = get_logger("app")

app = FastAPI(
    title="blocktint",
    description="Representative block colors from texture archives, for map renderers",
    version=__version__
)

app.include_router(v1_router)

logger.info("blocktint API ready", extra={"version": __version__, "archive_path": config.ARCHIVE_PATH})


@app.get("/healthz", response_model=HealthResponse)
def health_check(cache: BlockColorCache = Depends(get_block_colors)):
    """Health check endpoint"""
    return HealthResponse(
        ok=True,
        version=__version__,
        service="blocktint",
        loaded=cache.is_loaded
    )


@app.get("/")
def root():
    """Root endpoint"""
    return {
        "message": "blocktint API",
        "version": __version__,
        "docs": "/docs"
    }
