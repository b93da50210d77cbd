"""Global configuration — loaded from environment variables."""

from pathlib import Path

from pydantic_settings import BaseSettings


class MemocmdSettings(BaseSettings):
    shell_executable: str | None = None  # None uses the platform default shell
    cwd: Path | None = None

    # Fail queued requests sharing a token when that token's execution fails
    share_failures: bool = True

    model_config = {"env_prefix": "MEMOCMD_"}


settings = MemocmdSettings()
