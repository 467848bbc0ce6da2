"""Check routes: evaluate a change, inspect the session log."""

from __future__ import annotations

import asyncio

from pydantic import ValidationError
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from ruleguard.rule_engine.models import ChangeDescriptor
from ruleguard.session.log import SessionLog


async def check_change(request: Request) -> JSONResponse:
    """POST /api/check: body is a ChangeDescriptor, response is a CheckReport."""
    try:
        body = await request.json()
        change = ChangeDescriptor.model_validate(body)
    except ValidationError as e:
        return JSONResponse(
            {"error": "Invalid change descriptor", "details": e.errors(include_url=False)},
            status_code=422,
        )
    except ValueError:
        return JSONResponse({"error": "Request body must be UTF-8 JSON"}, status_code=422)

    engine = request.app.state.engine
    report = await asyncio.to_thread(engine.evaluate, change)
    return JSONResponse(report.model_dump(mode="json", by_alias=True))


async def session_summary(request: Request) -> JSONResponse:
    """GET /api/session: summaries of the most recent checks (?limit=N, default 20)."""
    try:
        limit = int(request.query_params.get("limit", "20"))
    except ValueError:
        return JSONResponse({"error": "limit must be an integer"}, status_code=422)

    log = request.app.state.engine.log
    entries = log.entries
    recent = entries[-limit:] if limit > 0 else ()
    return JSONResponse(
        {
            "count": log.recorded,
            "entries": [
                {"sequence": e.sequence}
                | SessionLog.summarize(e).model_dump(mode="json", by_alias=True)
                for e in recent
            ],
        }
    )


routes = [
    Route("/api/check", check_change, methods=["POST"]),
    Route("/api/session", session_summary),
]
