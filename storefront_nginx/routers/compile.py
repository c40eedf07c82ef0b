import logging

from fastapi import APIRouter, HTTPException, Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from storefront_nginx.models.compile_request import CompileRequest
from storefront_nginx.models.compile_response import CompileResponse
from storefront_nginx.services.headers import compute_headers
from storefront_nginx.services.nginx import generate_nginx_configuration
from storefront_nginx.services.rewrites import compile_rules, derive_rewrites

logger = logging.getLogger(__name__)

limiter = Limiter(key_func=get_remote_address)
router = APIRouter()


@router.post(
    "/compile",
    response_model=CompileResponse,
    summary="Preview the nginx configuration for a build",
    description=(
        "Runs the header policy, rewrite compiler and nginx emitter over the "
        "posted build description without touching the filesystem.  The "
        "returned `config` is exactly what the post-build step would write "
        "for the same inputs."
    ),
)
@limiter.limit("20/minute")
async def compile_config(request: Request, body: CompileRequest) -> CompileResponse:
    logger.info(
        "Compile request received",
        extra={"files": len(body.files), "pages": len(body.pages), "redirects": len(body.redirects)},
    )

    rewrites = derive_rewrites(body.pages)
    headers = compute_headers(body.files, body.pages, body.manifest, body.path_prefix)

    try:
        config = generate_nginx_configuration(rewrites, body.redirects, headers, body.files)
    except ValueError as exc:
        logger.warning("Cannot render nginx configuration: %s", exc)
        raise HTTPException(status_code=422, detail=str(exc))

    return CompileResponse(
        config=config,
        rules=compile_rules(body.pages, body.redirects),
        headers=headers,
    )
