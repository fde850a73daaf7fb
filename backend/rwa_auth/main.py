import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from rwa_auth.config import settings
from rwa_auth.core.deps import get_auth_service
from rwa_auth.core.errors import AuthError
from rwa_auth.core.nonce_store import InMemoryNonceStore
from rwa_auth.core.redis import close_redis
from rwa_auth.routers import auth

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

scheduler = AsyncIOScheduler()

@asynccontextmanager
async def lifespan(app: FastAPI):
    nonce_store = get_auth_service().nonce_store
    if isinstance(nonce_store, InMemoryNonceStore):
        # Redis evicts by TTL on its own; the in-process store needs a sweep
        scheduler.add_job(
            nonce_store.purge_expired, "interval", minutes=1,
            id="purge_challenges", replace_existing=True,
        )
        scheduler.start()
    logger.info("Auth service started (nonce store: %s)", type(nonce_store).__name__)
    yield
    if scheduler.running:
        scheduler.shutdown()
    if settings.REDIS_URL:
        await close_redis()

app = FastAPI(title="RWA Wallet Auth API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.code, "detail": exc.detail},
    )

app.include_router(auth.router)

@app.get("/health")
async def health():
    return {"status": "ok"}
