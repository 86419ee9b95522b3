import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from app import config
from app.routes import flights, uber

logger = logging.getLogger("farecheck")
if not logging.getLogger().handlers:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

app = FastAPI(title="Farecheck Bot", version="0.1.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def invalid_body_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [str(error.get("msg", error)) for error in exc.errors()]
    return JSONResponse(status_code=400, content={"detail": {"message": "Invalid request", "errors": errors}})


@app.on_event("startup")
async def startup_event() -> None:
    config.DATA_DIR.mkdir(parents=True, exist_ok=True)
    if not config.GEMINI_API_KEY:
        logger.warning("GEMINI_API_KEY is not set; screenshot extraction will fail.")
    logger.info("FastAPI application started")


app.include_router(flights.router)
app.include_router(uber.router)

if config.SAVE_SCREENSHOTS:
    config.SCREENSHOT_DIR.mkdir(parents=True, exist_ok=True)
    app.mount("/screenshots", StaticFiles(directory=str(config.SCREENSHOT_DIR)), name="screenshots")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("app.main:app", host=config.API_HOST, port=config.API_PORT, reload=True)
