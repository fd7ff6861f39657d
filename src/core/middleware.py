"""Core middleware."""
from django.conf import settings
from django.utils.cache import patch_cache_control, patch_vary_headers


class NoStoreAPIMiddleware:
    """Mark API responses as private and never cacheable.

    Applies to every path under ``settings.NO_STORE_PATH_PREFIXES``.
    Responses vary on ``Authorization`` since they depend on the bearer token.
    """

    def __init__(self, get_response):
        self.get_response = get_response
        self.prefixes = tuple(getattr(settings, "NO_STORE_PATH_PREFIXES", ("/api/",)))

    def __call__(self, request):
        response = self.get_response(request)
        if not request.path.startswith(self.prefixes):
            return response

        patch_cache_control(
            response,
            private=True,
            no_cache=True,
            no_store=True,
            must_revalidate=True,
            max_age=0,
        )
        patch_vary_headers(response, ("Authorization",))
        response["Pragma"] = "no-cache"
        return response
