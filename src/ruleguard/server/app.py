"""Starlette app factory; the catalog is loaded once in the lifespan."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from starlette.applications import Starlette

from ruleguard.config import EngineConfig
from ruleguard.engine import RuleEngine
from ruleguard.server.routes_check import routes as check_routes
from ruleguard.server.routes_rules import routes as rules_routes
from ruleguard.session.log import SessionLog

# Recent entries kept for GET /api/session; older ones live only in the JSONL log.
MAX_SESSION_ENTRIES = 500


def create_app(
    config: EngineConfig | None = None,
    *,
    engine: RuleEngine | None = None,
) -> Starlette:
    """Create the app. Pass ``engine`` to serve an already loaded catalog.

    With a configured log path every check is appended to the JSONL log as it
    completes.
    """

    @asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncGenerator[None, None]:
        if engine is not None:
            app.state.engine = engine
        else:
            log = SessionLog(max_entries=MAX_SESSION_ENTRIES)
            app.state.engine = RuleEngine.from_config(config, log=log)
        yield

    return Starlette(routes=rules_routes + check_routes, lifespan=lifespan)
