import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from blog.cache import cache
from blog.config import settings
from blog.exceptions import BlogError, blog_error_handler, unhandled_error_handler
from blog.middleware import TimingMiddleware
from blog.routers import articles, comments, images, stats, users
from blog.services.image_service import IMAGES_DIR, PUBLIC_URL_PREFIX

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

IMAGES_ROOT = Path(settings.STORAGE_ROOT) / IMAGES_DIR


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    IMAGES_ROOT.mkdir(parents=True, exist_ok=True)
    await cache.connect()
    logger.info("Blog API started (env=%s, cache=%s)", settings.APP_ENV, cache.backend)
    yield
    # Shutdown
    await cache.disconnect()


app = FastAPI(
    title="Blog API",
    description="Articles, comments and optimized image uploads",
    version="1.0.0",
    lifespan=lifespan,
)

# Error handlers
app.add_exception_handler(BlogError, blog_error_handler)
app.add_exception_handler(Exception, unhandled_error_handler)

# Middleware
app.add_middleware(TimingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers
app.include_router(articles.router)
app.include_router(comments.router)
app.include_router(images.router)
app.include_router(users.router)
app.include_router(stats.router)

# Stored variants are served read-only; the directory is created at startup.
app.mount(
    f"{PUBLIC_URL_PREFIX}/{IMAGES_DIR}",
    StaticFiles(directory=IMAGES_ROOT, check_dir=False),
    name="images",
)


@app.get("/health")
async def health():
    return {"status": "healthy", "version": "1.0.0"}
