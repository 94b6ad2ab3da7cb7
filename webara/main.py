from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .core.config import settings
from .core.database import close_pool, get_pool
from .core.errors import QuoteLifecycleError, lifecycle_error_handler
from .routers import admin, profile, quotes, roles


@asynccontextmanager
async def lifespan(app: FastAPI):
    await get_pool()  # Warm pool on startup
    yield
    await close_pool()


app = FastAPI(
    title="Webara Portal Backend",
    version="1.0.0",
    lifespan=lifespan,
)

DEFAULT_CORS_ORIGINS = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]
# Preview deployments
RUN_APP_ORIGIN_REGEX = r"https://.*run\.app"

configured_origins = settings.cors_origins or []
if "*" in configured_origins:
    allowed_origins = ["*"]
else:
    allowed_origins = list(dict.fromkeys(configured_origins + DEFAULT_CORS_ORIGINS))

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_origin_regex=RUN_APP_ORIGIN_REGEX,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(QuoteLifecycleError, lifecycle_error_handler)

app.include_router(quotes.router, prefix=settings.api_prefix, tags=["quotes"])
app.include_router(admin.router, prefix=settings.api_prefix, tags=["admin"])
app.include_router(profile.router, prefix=settings.api_prefix, tags=["profile"])
app.include_router(roles.router, prefix=settings.api_prefix, tags=["roles"])


@app.get("/health")
async def health():
    return {"status": "ok"}
