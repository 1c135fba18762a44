from __future__ import annotations

from datetime import date

# TMDb serves discovery results in fixed pages of 20 and never beyond page 500.
TMDB_PAGE_SIZE = 20
TMDB_MAX_PAGES = 500

PAGE_SIZES: tuple[int, ...] = (10, 20, 50, 100)
DEFAULT_PAGE_SIZE = 100

# Sentinel display year for a movie with no release date.
UNKNOWN_YEAR = "?"

GENRES: dict[int, str] = {
    28: "Action",
    12: "Adventure",
    16: "Animation",
    35: "Comedy",
    80: "Crime",
    99: "Documentary",
    18: "Drama",
    10751: "Family",
    14: "Fantasy",
    36: "History",
    27: "Horror",
    10402: "Music",
    9648: "Mystery",
    10749: "Romance",
    878: "Sci-Fi",
    10770: "TV Movie",
    53: "Thriller",
    10752: "War",
    37: "Western",
}

PROVIDERS: dict[int, str] = {
    8: "Netflix",
    9: "Amazon Prime",
    337: "Disney+",
    350: "Apple TV+",
    1899: "Max",
    15: "Hulu",
    531: "Paramount+",
    386: "Peacock",
    283: "Crunchyroll",
    387: "HBO Max",
    2: "Apple iTunes",
    3: "Google Play",
    192: "YouTube",
    11: "Mubi",
    175: "Tubi",
}

WATCH_REGIONS: dict[str, str] = {
    "US": "United States",
    "GB": "United Kingdom",
    "CA": "Canada",
    "AU": "Australia",
    "DE": "Germany",
    "FR": "France",
    "ES": "Spain",
    "IT": "Italy",
    "NL": "Netherlands",
    "SE": "Sweden",
    "BR": "Brazil",
    "IN": "India",
    "JP": "Japan",
    "KR": "South Korea",
}

DEFAULT_WATCH_REGION = "US"
DEFAULT_MIN_RATING = 7.0
DEFAULT_MIN_VOTES = 100
DEFAULT_EXCLUDED_GENRES: tuple[int, ...] = (10751,)


def current_year() -> int:
    return date.today().year
