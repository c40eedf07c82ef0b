from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class Redirect(BaseModel):
    """A redirect declared by the user or the site builder."""

    model_config = ConfigDict(populate_by_name=True)

    from_path: str = Field(alias="fromPath")
    to_path: str = Field(alias="toPath")
    is_permanent: bool = Field(default=False, alias="isPermanent")
    status_code: Optional[int] = Field(default=None, alias="statusCode", ge=200, le=399)


class Rewrite(BaseModel):
    """Serve *to_path* transparently for requests matching *from_path*."""

    model_config = ConfigDict(populate_by_name=True)

    from_path: str = Field(alias="fromPath")
    to_path: str = Field(alias="toPath")
