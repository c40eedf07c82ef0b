from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class Page(BaseModel):
    """One route produced by the site builder."""

    model_config = ConfigDict(populate_by_name=True)

    path: str
    match_path: Optional[str] = Field(default=None, alias="matchPath")
    """Alternate request pattern (``/promo/*``, ``/product/:slug``) served by *path*."""
    component_chunk_name: Optional[str] = Field(default=None, alias="componentChunkName")
