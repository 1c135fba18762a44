"""
External system integrations (TMDb, OMDb).

Remote-service clients live under this namespace so they stay decoupled from the
search orchestration (`cinefilter.search`) and the CLI entry points (`scripts/`).
"""
