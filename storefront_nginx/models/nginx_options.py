from pydantic import BaseModel, Field


class NginxOptions(BaseModel):
    """Server-level settings written around the generated location blocks."""

    listen: str = "0.0.0.0:8080"
    root: str = Field(
        default="/public",
        description="Directory nginx serves the build output from.",
    )
    worker_processes: int = Field(default=3, ge=1)
    worker_rlimit_nofile: int = Field(default=8192, ge=1)
    worker_connections: int = Field(default=1024, ge=1)
    error_log: str = "/var/log/nginx_errors.log"
    access_log: str = "/var/log/nginx_access.log"
    pid: str = "/var/log/nginx_run.pid"
    mime_types: str = "/etc/nginx/mime.types"
