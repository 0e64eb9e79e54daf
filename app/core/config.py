import json

from pydantic_settings import BaseSettings

DEFAULT_REGISTRATION_ROLES = ["channel_partner", "assignee", "head_office", "technical"]


class Settings(BaseSettings):
    DATABASE_URL: str

    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    # Seven days, tokens are not refreshed
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 7

    BACKEND_CORS_ORIGINS: str = '["http://localhost:3000","http://localhost:5173"]'

    API_V1_PREFIX: str = "/api/v1"
    PROJECT_NAME: str = "Helpdesk API"
    DEBUG: bool = False

    LOG_LEVEL: str = "INFO"
    # None follows DEBUG: console output when debugging, JSON otherwise
    LOG_JSON: bool | None = None

    RATE_LIMIT_ENABLED: bool = True
    AUTH_RATE_LIMIT: str = "10/minute"

    # Roles a visitor may pick at self-registration, as a JSON list
    REGISTRATION_ROLES: str = json.dumps(DEFAULT_REGISTRATION_ROLES)
    MIN_PASSWORD_LENGTH: int = 8

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"

    @property
    def cors_origins(self) -> list[str]:
        if isinstance(self.BACKEND_CORS_ORIGINS, str):
            try:
                parsed: list[str] = json.loads(self.BACKEND_CORS_ORIGINS)
                return parsed
            except json.JSONDecodeError:
                return ["http://localhost:3000"]
        return self.BACKEND_CORS_ORIGINS

    @property
    def registration_roles(self) -> list[str]:
        try:
            parsed: list[str] = json.loads(self.REGISTRATION_ROLES)
            return parsed
        except json.JSONDecodeError:
            return list(DEFAULT_REGISTRATION_ROLES)


settings = Settings()
