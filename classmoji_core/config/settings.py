from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Fan-out relay
    fanout_host: str = "0.0.0.0"
    fanout_port: int = 4000
    hook_base_port: int = 4001
    hook_port_stride: int = 10
    target_host: str = "localhost"
    devport_marker: str = ".devport"
    project_dir: Path = Field(default_factory=Path.cwd)
    forward_timeout: float = 10.0

    # Import progress streaming
    stream_host: str = "0.0.0.0"
    stream_port: int = 6500
    stream_cleanup_delay: float = 60.0
    stream_max_age: float = 3600.0
    stream_max_buffer: int = 100

    auth_session_url: str = ""
    auth_timeout: float = 5.0
    cors_origins: list[str] = ["http://localhost:3000"]
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
