from typing import Dict, List, Union

from pydantic import BaseModel

from storefront_nginx.models.redirect import Redirect, Rewrite


class CompileResponse(BaseModel):
    config: str
    """Full nginx configuration text, identical to what a build would write."""
    rules: List[Union[Rewrite, Redirect]]
    headers: Dict[str, List[str]]
