"""FastAPI application wiring the panel host into the server lifespan."""

from contextlib import asynccontextmanager
from typing import Callable, Mapping, Optional

from fastapi import FastAPI

from .api import router as api_router
from .config import settings
from .host import PanelHost
from utils.logging_utils import setup_logging

HostFactory = Callable[[], PanelHost]


def create_app(options: Optional[Mapping[str, str]] = None,
               host_factory: Optional[HostFactory] = None) -> FastAPI:
    """Build the app; `options` are the host's key=value plugin options."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging(level=settings.log_level, panel_name="weatherpane", log_file=settings.log_file)
        host = host_factory() if host_factory else PanelHost.from_settings(options)
        app.state.panel_host = host
        await host.start()
        try:
            yield
        finally:
            await host.stop()
            app.state.panel_host = None

    app = FastAPI(title="Weather Pane", lifespan=lifespan)
    app.include_router(api_router, prefix="/v1")
    return app


app = create_app()
