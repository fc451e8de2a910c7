"""
Shared phim backend library code.

This package is intended to hold code that is reused across:
- the FastAPI trigger app in `api/`
- worker and operator scripts in `scripts/`

App entrypoints (FastAPI routers, CLI scripts) should live outside this package and
import from `phim_backend` rather than the other way around.
"""
