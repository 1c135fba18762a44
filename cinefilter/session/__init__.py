"""
Persisted state and the optional TMDb account link.
"""

from cinefilter.session.account_link import InvalidAuthTransition, TmdbAccountLink
from cinefilter.session.storage import JsonFileStore, clear_api_keys, load_api_keys, save_api_keys

__all__ = [
    "InvalidAuthTransition",
    "JsonFileStore",
    "TmdbAccountLink",
    "clear_api_keys",
    "load_api_keys",
    "save_api_keys",
]
