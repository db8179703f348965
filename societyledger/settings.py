from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_prefix="SOCIETYLEDGER_", extra="ignore")

    db_url: str = "sqlite:///societyledger.db"

    timezone: str = "Asia/Kolkata"
    financial_year_start_month: int = 4  # April

    default_grace_period_days: int = 10
    default_bill_due_day: int = 10

    conflict_retries: int = 3
    billing_run_timeout_seconds: int = 900  # 15 minutes

    log_level: str = "INFO"
    log_json: bool = False


settings = Settings()
