from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    DATABASE_URL: str
    JWT_SECRET: str
    LOG_LEVEL: str = "INFO"
    SLOW_REQUEST_THRESHOLD_MS: int = 1000  # 1 segundo
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    # Política de préstamos
    LOAN_PERIOD_DAYS: int = 14
    FINE_PER_DAY: int = 5  # multa plana por día de atraso

    # Lista separada por comas (igual que CORS_ORIGIN del front)
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:3001"

    BUILTIN_ADMIN_EMAIL: str = "admin@library.local"
    BUILTIN_ADMIN_PASSWORD: str = "admin123"

    class Config:
        env_file = ".env"

    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]


settings = Settings()
