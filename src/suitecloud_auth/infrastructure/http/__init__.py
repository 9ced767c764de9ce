"""HTTP client used for token endpoint traffic."""

from suitecloud_auth.infrastructure.http.client import HttpClient, HttpResponse

__all__ = ["HttpClient", "HttpResponse"]
