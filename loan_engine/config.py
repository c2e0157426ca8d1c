"""
Configuration Management Module

Provides engine defaults using pydantic-settings for environment-based configuration.
"""

from pydantic_settings import BaseSettings


class EngineConfig(BaseSettings):
    """Loan engine configuration"""

    # Money
    default_currency: str = "KES"  # Used for display formatting only

    # Calendar conventions applied when a payload omits them
    default_days_in_year_type: str = "365"
    default_days_in_month_type: str = "actual"

    # Repayment allocation
    default_repayment_strategy: str = "penalties_fees_interest_principal"

    # Reconciliation
    consistency_tolerance: str = "0.01"  # Decimal as string

    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text

    class Config:
        env_prefix = "LOAN_ENGINE_"
        env_file = ".env"
        case_sensitive = False


# Global configuration instance
config = EngineConfig()


def get_config() -> EngineConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> EngineConfig:
    """Reload configuration from environment"""
    global config
    config = EngineConfig()
    return config
