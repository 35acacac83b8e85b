"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from pydantic_settings import BaseSettings
from typing import Optional


class FactoringDeskConfig(BaseSettings):
    """Factoring desk configuration"""
    
    # API configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8090
    api_workers: int = 1
    
    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text
    log_file: Optional[str] = None  # If None, logs to stdout
    
    # Business rules configuration
    grace_period_days: int = 7           # Days after due date before an installment is missed
    amount_tolerance: str = "0.01"       # Exact-match tolerance for installment closures
    default_company_name: str = "Fuel Co"
    
    # Feature flags
    enable_audit_logging: bool = True
    
    class Config:
        env_prefix = "FACTORING_"
        env_file = ".env"
        case_sensitive = False


# Global configuration instance
config = FactoringDeskConfig()


def get_config() -> FactoringDeskConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> FactoringDeskConfig:
    """Reload configuration from environment"""
    global config
    config = FactoringDeskConfig()
    return config
