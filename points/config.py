import os
from dataclasses import dataclass, field
from functools import lru_cache


def _split_csv(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


@dataclass(frozen=True)
class Settings:
    service_name: str = "points-ledger"
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 3000
    cors_allow_origins: list[str] = field(default_factory=lambda: ["*"])

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            service_name=os.getenv("SERVICE_NAME", cls.service_name),
            log_level=os.getenv("LOG_LEVEL", cls.log_level),
            host=os.getenv("POINTS_HOST", cls.host),
            port=int(os.getenv("POINTS_PORT", str(cls.port))),
            cors_allow_origins=_split_csv(os.getenv("CORS_ALLOW_ORIGINS", "*")),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_env()
