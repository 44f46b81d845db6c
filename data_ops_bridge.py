import logging
import time
from datetime import datetime, timezone

import uvicorn
from fastapi import FastAPI

from cli_bridge import config
from cli_bridge.router import router as cli_router

logger = logging.getLogger("data_ops_bridge")

LOG_FORMAT = "[%(asctime)s] [%(levelname)s] %(name)s: %(message)s"

STARTED_AT = time.monotonic()

app = FastAPI(title="Data-Ops Bridge", version="1.0.0")

# ── CLI Bridge: validated, streamed execution of the data-ops CLI ──────────
app.include_router(cli_router)


# ============================================================================
# Endpoints
# ============================================================================
@app.get("/health")
def health_check():
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "uptime": round(time.monotonic() - STARTED_AT, 3),
        "environment": config.APP_ENV,
        "cli": {
            "path": str(config.DATA_OPS_CLI_PATH),
            "available": config.DATA_OPS_CLI_PATH.is_file(),
        },
    }


def configure_logging(level: str = config.LOG_LEVEL) -> None:
    logging.basicConfig(level=level, format=LOG_FORMAT)


if __name__ == "__main__":
    configure_logging()
    logger.info("Data-ops bridge running on port %s", config.PORT)
    logger.info("Health check: http://localhost:%s/health", config.PORT)
    uvicorn.run(app, host="0.0.0.0", port=config.PORT)
