"""
CineFilter library code.

This package holds the search-and-verification pipeline that is reused by the
command-line entry points in `scripts/`:
- catalog discovery against TMDb (`integrations.tmdb`)
- release-year/rating verification against OMDb (`integrations.omdb`)
- enrichment, categorization and the search orchestrator (`search`)
- the optional TMDb account link and persisted state (`session`)

Entry points should import from `cinefilter` rather than the other way around.
"""
