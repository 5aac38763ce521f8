import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from linkshare.api.routers import link_access, links
from linkshare.core.config import get_settings
from linkshare.core.errors import LinkShareError
from linkshare.db.base import Base
from linkshare.db.init_db import seed_data
from linkshare.db.session import SessionLocal, engine

logger = logging.getLogger(__name__)

settings = get_settings()

docs_url = "/docs" if settings.enable_docs else None
redoc_url = "/redoc" if settings.enable_docs else None
openapi_url = "/openapi.json" if settings.enable_docs else None


@asynccontextmanager
async def lifespan(app: FastAPI):
    Base.metadata.create_all(bind=engine)
    logger.info("Database initialized")
    if settings.seed_demo_data:
        db = SessionLocal()
        try:
            seed_data(db)
        finally:
            db.close()
    yield


app = FastAPI(
    title=settings.app_name,
    version="0.1.0",
    docs_url=docs_url,
    redoc_url=redoc_url,
    openapi_url=openapi_url,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
    allow_credentials=True,
    expose_headers=["Content-Disposition", "Content-Length"],
)


@app.exception_handler(LinkShareError)
async def link_share_error_handler(request: Request, exc: LinkShareError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail, "code": exc.code})


app.include_router(link_access.router)
app.include_router(links.router)


@app.get("/health")
def health_check():
    return {"status": "ok"}
