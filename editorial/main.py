import logging

from fastapi import FastAPI

from editorial.config import settings
from editorial.deps import init_db

# Routers
from editorial.routers import orchestrate, scheduler_api

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(title="Campaign Editorial API", version="0.1.0")


@app.on_event("startup")
def _startup():
    init_db()


@app.get("/")
def root():
    return {"message": "Campaign Editorial API is running!"}


# Mount routes
app.include_router(orchestrate.router)     # /automation/*
app.include_router(scheduler_api.router)   # /scheduler/*
