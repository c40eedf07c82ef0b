"""Rewrite rules derived from page match paths, plus the redirect table."""

from typing import List, Sequence, Union

from storefront_nginx.models.page import Page
from storefront_nginx.models.redirect import Redirect, Rewrite

Rule = Union[Rewrite, Redirect]


def derive_rewrites(pages: Sequence[Page]) -> List[Rewrite]:
    """Return one rewrite per page whose ``match_path`` differs from its ``path``."""
    return [
        Rewrite(from_path=page.match_path, to_path=page.path)
        for page in pages
        if page.match_path and page.match_path != page.path
    ]


def compile_rules(pages: Sequence[Page], redirects: Sequence[Redirect]) -> List[Rule]:
    """Derived rewrites first, then *redirects* as given.

    Rules are neither deduplicated nor checked for loops; nginx rejects or
    caps those at runtime.
    """
    rules: List[Rule] = list(derive_rewrites(pages))
    rules.extend(redirects)
    return rules
