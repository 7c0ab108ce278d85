"""Exception types shared across the crawler."""

from __future__ import annotations

from typing import Optional


class CrawlerError(Exception):
    """Base class for crawler failures."""


class ConfigError(CrawlerError, ValueError):
    """Raised when configuration or input values are invalid."""


class NavigationError(CrawlerError):
    """Raised when a page cannot be fetched or rendered. Retryable."""

    def __init__(
        self,
        message: str = "Navigation failed.",
        *,
        url: Optional[str] = None,
        attempt: Optional[int] = None,
    ) -> None:
        self.message = message
        self.url = url
        self.attempt = attempt
        super().__init__(message)

    def __str__(self) -> str:
        context_parts: list[str] = []
        if self.url:
            context_parts.append(f"url={self.url}")
        if self.attempt is not None:
            context_parts.append(f"attempt={self.attempt}")
        context = ", ".join(context_parts)
        return f"{self.message} ({context})" if context else self.message
