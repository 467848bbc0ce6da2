"""HTTP API: starlette routes over a loaded RuleEngine."""
