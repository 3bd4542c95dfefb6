from prometheus_fastapi_instrumentator import Instrumentator

from stockaudit.core.config import settings
from stockaudit.core.logging import configure_logging
from . import app as base_app

configure_logging()
app = base_app
app.title = settings.APP_NAME
Instrumentator().instrument(app).expose(app)


@app.get("/health")
async def health() -> dict[str, bool]:
    return {"ok": True}
