"""GitHub access: HTTP transport, release models, REST client."""

from .github import ForgeClient, ForgeError, GitHubClient
from .http import HttpClient, HttpError, RealHttpClient
from .models import Asset, Release, RepoRef, parse_repo

__all__ = [
    "Asset",
    "ForgeClient",
    "ForgeError",
    "GitHubClient",
    "HttpClient",
    "HttpError",
    "RealHttpClient",
    "Release",
    "RepoRef",
    "parse_repo",
]
