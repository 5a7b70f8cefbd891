from typing import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient

from app.core.context import AppContext, build_context
from app.main import app
from tests.helpers import make_settings


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture(autouse=True)
def context() -> AppContext:
    """
    Give every test a fresh application context so alerts, history and
    subscribers never leak between tests.
    """
    ctx = build_context(make_settings())
    app.state.context = ctx
    return ctx


@pytest.fixture
async def client(context: AppContext) -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    # ASGITransport skips the lifespan; stop whatever the requests started.
    await context.shutdown(grace_seconds=1.0)
