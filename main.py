# main.py (app wiring, error handlers and the budget sweep scheduler)
from contextlib import asynccontextmanager
from datetime import datetime
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
import uvicorn
from apscheduler.schedulers.background import BackgroundScheduler

import config
from auth import auth_router
from budget_alerts import sweep_budgets
from data_router import data_router
from database import SessionLocal, init_db
from router import router

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


# Re-check every budget of the current month once a day
def sweep_current_budgets():
    with SessionLocal() as db:
        sweep_budgets(db, datetime.now())


def start_scheduler() -> BackgroundScheduler:
    scheduler = BackgroundScheduler()
    scheduler.add_job(
        sweep_current_budgets, "cron", hour=config.BUDGET_SWEEP_HOUR, minute=0
    )
    scheduler.start()
    logger.info("Budget sweep scheduled daily at %02d:00", config.BUDGET_SWEEP_HOUR)
    return scheduler


@asynccontextmanager
async def lifespan(app: FastAPI):
    config.warn_on_insecure_defaults()
    init_db()
    scheduler = start_scheduler() if config.BUDGET_SWEEP_ENABLED else None
    yield
    if scheduler:
        scheduler.shutdown(wait=False)


app = FastAPI(title="Personal Finance Tracker API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    problems = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error["loc"] if part != "body")
        problems.append(f"{location}: {error['msg']}" if location else error["msg"])
    return JSONResponse(status_code=400, content={"message": "; ".join(problems)})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"message": "Server Error"})


app.include_router(router, prefix="/api", tags=["finance"])
app.include_router(data_router, prefix="/api/data", tags=["data"])
app.include_router(auth_router, prefix="/auth", tags=["authentication"])


@app.get("/")
def home():
    return {"message": "Welcome to Personal Finance Tracker API"}


if __name__ == "__main__":
    uvicorn.run(app, host="127.0.0.1", port=8000)
