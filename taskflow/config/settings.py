"""Application Settings - Central Configuration"""
from functools import lru_cache
from typing import List, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""
    
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )
    
    # MongoDB
    mongo_uri: str = "mongodb://localhost:27017"
    mongo_db: str = "taskflow_dev"
    mongo_transactions_enabled: bool = True  # Requires a replica set
    
    # JWT (tokens are issued by the auth service)
    jwt_secret: str = "change-me-in-production"
    jwt_algorithm: str = "HS256"
    jwt_audience: Optional[str] = None
    jwt_issuer: Optional[str] = None
    
    # Logging
    logs_path: str = "./logs"
    log_level: str = "INFO"
    log_to_file: bool = True
    
    # CORS - set to "*" to allow all origins
    cors_origins: str = "*"
    
    # Workflow engine
    transition_max_retries: int = 3  # Re-runs after an optimistic concurrency conflict
    automatic_transition_comment: str = "Automatic transition"
    
    # Scheduler
    automation_scheduler_enabled: bool = True
    automation_interval_seconds: int = 300
    automation_batch_timeout_seconds: int = 240  # Deadline for a single pass
    
    # Environment
    environment: str = "development"
    debug: bool = True
    
    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins string to list"""
        return [origin.strip() for origin in self.cors_origins.split(",")]
    
    @property
    def is_production(self) -> bool:
        """Check if running in production"""
        return self.environment.lower() == "production"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


settings = get_settings()
