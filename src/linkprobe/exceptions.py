"""Exceptions raised inside link verification.

These never leave the verifier: they are converted into StructuredError
values on the LinkResult.
"""


class LinkNavigationError(Exception):
    """Raised when navigating to a link produced no usable response."""

    def __init__(self, url: str, reason: str):
        self.url = url
        self.reason = reason
        super().__init__(f"Navigation to {url} failed: {reason}")


class RedirectLimitExceededError(LinkNavigationError):
    """Raised when a link redirects more times than allowed."""

    def __init__(self, url: str, redirect_count: int, max_redirects: int):
        self.redirect_count = redirect_count
        self.max_redirects = max_redirects
        super().__init__(
            url,
            f"{redirect_count} redirects exceeds max_redirects of {max_redirects}",
        )
