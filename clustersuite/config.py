from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Run configuration, read once at process start"""

    # Target cluster (empty server means: start a simulated cluster)
    server: str = ""
    username: str = ""
    password: str = ""
    bucket: str = "default"
    collection: str = ""
    version: str = ""

    # Feature overrides, e.g. "+transactions,-search_indexes" or "*"
    features: str = ""

    # Readiness
    readiness_timeout_seconds: float = 5.0

    # Simulated cluster
    mongodb_version: str = "7.0"
    mock_host: str = "127.0.0.1"
    mock_start_port: int = 27100
    mock_username: str = "default"
    mock_replica_set_name: str = "clustersuite-rs"
    mock_ready_timeout_seconds: float = 90.0

    # Docker
    docker_container_prefix: str = "clustersuite"

    # Fixtures
    testdata_dir: Optional[str] = None

    # Logging
    log_level: str = "INFO"

    class Config:
        env_prefix = "CLUSTERSUITE_"
        env_file = ".env"
        case_sensitive = False


# Global settings instance
settings = Settings()
