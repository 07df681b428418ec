from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str = "postgresql+asyncpg://localhost:5432/fitgoals"
    default_tz: str = "UTC"  # "today" for streak ranges is resolved in this zone
    api_key: str | None = None
    log_level: str = "INFO"

    # Weekly-average trend (body_fat, weight, lean_mass_gain)
    goals_min_weekly_measurements: int = 2  # Weeks with fewer samples are dropped
    goals_week_start_dow: int = 1  # ISO weekday, 1 = Monday
    goals_min_trend_weeks_for_achievement: int = 2

    # Streaks (calorie_streak, protein_streak)
    goals_streak_strict: bool = True  # False: days without data neither count nor break
    goals_calorie_tolerance_pct: float = 0.10  # Recommended basis band = TDEE ± 10%

    # Dashboard
    goals_top_n: int = 3

    model_config = {"env_file": ".env", "extra": "ignore"}


settings = Settings()
