"""
Pure enrichment and categorization rules for search results.

Nothing here performs I/O: every function is a total transform over its inputs.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import AbstractSet, Iterable, Mapping, Sequence

from cinefilter.constants import GENRES, UNKNOWN_YEAR
from cinefilter.models.movies import (
    EnrichedMovie,
    FilterCriteria,
    OmdbResult,
    StreamingProvider,
    TmdbMovie,
    VerifyStatus,
)


@dataclass(frozen=True)
class Categorized:
    visible: list[EnrichedMovie] = field(default_factory=list)
    hidden: list[EnrichedMovie] = field(default_factory=list)
    below_cutoff: list[EnrichedMovie] = field(default_factory=list)
    watched: list[EnrichedMovie] = field(default_factory=list)


def enrich_with_genre_names(movie: TmdbMovie) -> EnrichedMovie:
    """Attach the display year (text before the first hyphen) and known genre names."""

    return EnrichedMovie(
        id=movie.id,
        title=movie.title,
        overview=movie.overview,
        poster_path=movie.poster_path,
        release_date=movie.release_date,
        vote_average=movie.vote_average,
        vote_count=movie.vote_count,
        genre_ids=movie.genre_ids,
        tmdb_year=movie.release_date.split("-")[0] if movie.release_date else UNKNOWN_YEAR,
        genre_names=tuple(GENRES[g] for g in movie.genre_ids if g in GENRES),
    )


def is_year_in_range(year: int | None, year_from: int, year_to: int) -> bool:
    return year is not None and year_from <= year <= year_to


def build_verification_result(
    movie: EnrichedMovie,
    omdb_result: OmdbResult | None,
    imdb_id: str | None,
    providers: Iterable[StreamingProvider],
    criteria: FilterCriteria,
) -> EnrichedMovie:
    """
    Merge verification data into `movie`.

    Without an IMDb id or an OMDb record there is nothing contradicting TMDb, so the
    movie counts as verified with the OMDb fields left empty.
    """

    if not imdb_id or omdb_result is None:
        return replace(
            movie,
            streaming_providers=tuple(providers),
            imdb_id=imdb_id or None,
            imdb_year=None,
            imdb_rating=None,
            imdb_rating_str=None,
            status="verified",
        )

    in_range = is_year_in_range(omdb_result.year, criteria.year_from, criteria.year_to)
    return replace(
        movie,
        streaming_providers=tuple(providers),
        imdb_id=imdb_id,
        imdb_year=str(omdb_result.year) if omdb_result.year is not None else None,
        imdb_rating=omdb_result.rating,
        imdb_rating_str=omdb_result.rating_str,
        director=omdb_result.director,
        actors=omdb_result.actors,
        status="verified" if in_range else "mismatch",
    )


def categorize_movies(
    movies: Sequence[EnrichedMovie],
    verification: Mapping[int, VerifyStatus],
    imdb_cutoff: float | None,
    watched_ids: AbstractSet[int] | None = None,
) -> Categorized:
    """
    Sort movies into display buckets; the first matching rule wins:

    1. watched: rated by the linked account (even when also a mismatch)
    2. hidden: OMDb year outside the range, likely a re-release
    3. below_cutoff: verified, but the OMDb rating is under `imdb_cutoff`
    4. visible: everything else, including movies still checking or in error
    """

    result = Categorized()
    for movie in movies:
        if watched_ids and movie.id in watched_ids:
            result.watched.append(movie)
            continue

        status = verification.get(movie.id)
        if status == "mismatch":
            result.hidden.append(movie)
        elif (
            imdb_cutoff is not None
            and status == "verified"
            and movie.imdb_rating is not None
            and movie.imdb_rating < imdb_cutoff
        ):
            result.below_cutoff.append(movie)
        else:
            result.visible.append(movie)
    return result
