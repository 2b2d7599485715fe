import os

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.middleware.trustedhost import TrustedHostMiddleware

from aslam_catalog.errors import CatalogError
from aslam_catalog.media import ensure_dir, media_root, media_url
from aslam_catalog.observability import RequestLoggingMiddleware, request_logger
from aslam_catalog.routers import auth, catalog, catalog_admin
from aslam_catalog.storage import is_local_storage

app = FastAPI(title="Aslam Catalog API")

if is_local_storage():
    media_root_path = media_root()
    ensure_dir(media_root_path)
    app.mount(media_url(), StaticFiles(directory=str(media_root_path)), name="media")

ALLOWED_ORIGINS = [
    # Dev
    "http://localhost:3000",
    "http://127.0.0.1:3000",
    "http://localhost:5173",
    "http://127.0.0.1:5173",
]


def _parse_env_list(name: str) -> list[str]:
    raw = os.getenv(name, "").strip()
    if not raw:
        return []
    return [item.strip() for item in raw.split(",") if item.strip()]


cors_origins = _parse_env_list("CORS_ALLOWED_ORIGINS") or ALLOWED_ORIGINS
trusted_hosts = _parse_env_list("TRUSTED_HOSTS")

if trusted_hosts:
    app.add_middleware(TrustedHostMiddleware, allowed_hosts=trusted_hosts)

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_methods=["*"], allow_headers=["*"], allow_credentials=True,
)
app.add_middleware(RequestLoggingMiddleware)


@app.exception_handler(CatalogError)
async def catalog_error_handler(request: Request, exc: CatalogError):
    if exc.status_code >= 500:
        request_logger(request, __name__).error("catalog error path=%s error=%s", request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.get("/health")
def health(): return {"ok": True}

app.include_router(catalog.router)
app.include_router(auth.router)
app.include_router(catalog_admin.router)
