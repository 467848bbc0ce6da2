"""Catalog routes: health, rules, single rule, modules."""

from __future__ import annotations

from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from ruleguard import __version__
from ruleguard.rule_engine.errors import NotFoundError


async def health(request: Request) -> JSONResponse:
    """GET /api/health: liveness plus catalog identity."""
    engine = request.app.state.engine
    return JSONResponse(
        {
            "status": "ok",
            "version": __version__,
            "catalog": engine.catalog.source,
        }
    )


async def list_rules(request: Request) -> JSONResponse:
    """GET /api/rules: all rules in (tier, id) order; ?unchecked=1 for advisory-only ones."""
    catalog = request.app.state.engine.catalog
    if request.query_params.get("unchecked") in ("1", "true"):
        rules = catalog.unchecked_rules()
    else:
        rules = catalog.all_rules()
    return JSONResponse(
        {
            "rules": [r.model_dump(mode="json") | {"checked": r.checked} for r in rules],
            "count": len(rules),
        }
    )


async def get_rule(request: Request) -> JSONResponse:
    """GET /api/rules/{rule_id}: one rule."""
    rule_id = request.path_params["rule_id"]
    try:
        rule = request.app.state.engine.catalog.get_rule(rule_id)
    except NotFoundError as e:
        return JSONResponse({"error": str(e)}, status_code=404)
    return JSONResponse(rule.model_dump(mode="json") | {"checked": rule.checked})


async def list_modules(request: Request) -> JSONResponse:
    """GET /api/modules: modules in fixed order with triggers and rule ids."""
    modules = request.app.state.engine.catalog.modules()
    return JSONResponse(
        {
            "modules": [
                {
                    "id": m.id,
                    "title": m.title,
                    "triggers": list(m.triggers),
                    "rule_ids": m.rule_ids,
                    "always_active": m.is_base,
                }
                for m in modules
            ],
            "count": len(modules),
        }
    )


routes = [
    Route("/api/health", health),
    Route("/api/rules", list_rules),
    Route("/api/rules/{rule_id}", get_rule),
    Route("/api/modules", list_modules),
]
