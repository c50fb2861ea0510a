"""Link quality helpers."""

from quality.urlnorm import canonicalize_link

__all__ = ["canonicalize_link"]
