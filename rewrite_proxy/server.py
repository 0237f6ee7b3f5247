from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from prometheus_client import Info
from prometheus_fastapi_instrumentator import Instrumentator

from rewrite_proxy.proxy.client import close_http_client
from rewrite_proxy.proxy.route import router
from rewrite_proxy.proxy.settings import load_settings
from rewrite_proxy.tracing import configure_tracing
from rewrite_proxy.vars import METRICS_PATH, OTLP_ENDPOINT, OTLP_HEADERS, SERVICE_NAME

logger = logging.getLogger("uvicorn.error")


@asynccontextmanager
async def lifespan(_app: FastAPI):
    settings = load_settings()
    logger.info(
        f"Proxying all requests to {settings.base_url} "
        f"(timeout {settings.timeout_seconds}s)"
    )
    yield
    await close_http_client()


app = FastAPI(title=SERVICE_NAME, lifespan=lifespan)
instrumentator = Instrumentator()

instrumentator.instrument(app).expose(app, endpoint=METRICS_PATH)

configure_tracing(
    app,
    load_settings(),
    SERVICE_NAME,
    otlp_endpoint=OTLP_ENDPOINT,
    otlp_headers=OTLP_HEADERS,
    excluded_urls=METRICS_PATH,
)

app_info = Info("rewrite_proxy_info", "Proxy Info")
app_info.info(
    {"app_name": SERVICE_NAME, "target_host": load_settings().target_host}
)

# Catch-all, must be registered last
app.include_router(router)
