# src/auth/config.py
from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AuthSettings(BaseSettings):
    JWT_SECRET: str
    JWT_REFRESH_SECRET: str
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 15
    REFRESH_TOKEN_EXPIRE_MINUTES: int = 7 * 24 * 60
    RESET_TOKEN_EXPIRE_MINUTES: int = 15
    MAX_REFRESH_TOKENS_PER_USER: int = 15
    BCRYPT_ROUNDS: int = 12
    GOOGLE_CLIENT_ID: str = ""
    TOKEN_TYPE: str = "bearer"

    @field_validator("JWT_SECRET", "JWT_REFRESH_SECRET")
    def validate_secret_length(cls, v: str, info) -> str:
        if len(v) < 32:
            raise ValueError(f"{info.field_name} must be at least 32 characters long")
        return v

    @field_validator("BCRYPT_ROUNDS")
    def validate_bcrypt_rounds(cls, v: int) -> int:
        if not 4 <= v <= 31:
            raise ValueError("BCRYPT_ROUNDS must be between 4 and 31")
        return v

    @model_validator(mode="after")
    def validate_distinct_secrets(self) -> "AuthSettings":
        if self.JWT_SECRET == self.JWT_REFRESH_SECRET:
            raise ValueError("JWT_REFRESH_SECRET must differ from JWT_SECRET")
        return self

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


auth_settings = AuthSettings()
