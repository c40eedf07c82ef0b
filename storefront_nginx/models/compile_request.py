from collections import Counter
from typing import Dict, List

from pydantic import BaseModel, ConfigDict, Field, field_validator

from storefront_nginx.models.page import Page
from storefront_nginx.models.redirect import Redirect


class CompileRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    files: List[str] = Field(
        description="Relative paths of every file in the build output.",
        examples=[["index.html", "app.a1b2.js"]],
    )
    pages: List[Page] = []
    redirects: List[Redirect] = []
    manifest: Dict[str, List[str]] = Field(
        default_factory=dict,
        description="Merged asset manifest: chunk name -> emitted file names.",
        examples=[{"app": ["app.a1b2.js"]}],
    )
    path_prefix: str = Field(default="", alias="pathPrefix")

    @field_validator("files")
    @classmethod
    def _unique_files(cls, files: List[str]) -> List[str]:
        duplicates = sorted(f for f, count in Counter(files).items() if count > 1)
        if duplicates:
            raise ValueError(f"files must be unique, repeated: {duplicates}")
        return files
