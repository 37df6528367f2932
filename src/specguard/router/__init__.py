"""Routing of concrete requests and responses to declared variants."""

from specguard.router.content_matcher import ContentMatcher
from specguard.router.path_template import PathTemplate
from specguard.router.router import RequestMatch, ResponseMatch, ResponseMatcher, Router

__all__ = [
    "ContentMatcher",
    "PathTemplate",
    "RequestMatch",
    "ResponseMatch",
    "ResponseMatcher",
    "Router",
]
