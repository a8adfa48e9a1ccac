import logging
import time

import uvicorn
from fastapi import FastAPI, Request
from starlette.middleware.base import BaseHTTPMiddleware

from buildspec_runner.api.runs import router as runs_router
from buildspec_runner.api.validate import router as validate_router
from buildspec_runner.utils.logging_config import setup_logging

setup_logging(level=logging.INFO)
logger = logging.getLogger("main")

app = FastAPI(title="Local Buildspec Runner API")


# ---------------------------------------------------------------------------
# Request logging
# ---------------------------------------------------------------------------
class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        started = time.perf_counter()
        route = f"{request.method} {request.url.path}"
        logger.info("-> %s", route)

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error("x  %s failed after %.1fms: %s", route, (time.perf_counter() - started) * 1000, e)
            raise

        logger.info("<- %s %d (%.1fms)", route, response.status_code, (time.perf_counter() - started) * 1000)
        return response

app.add_middleware(RequestLoggingMiddleware)


@app.get("/health")
async def health_check():
    return {"status": "ok"}

app.include_router(validate_router)
app.include_router(runs_router)

if __name__ == "__main__":
    uvicorn.run("main:app", host="127.0.0.1", port=8000, reload=True)
