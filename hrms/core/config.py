from dataclasses import dataclass
from pathlib import Path
import os


@dataclass(frozen=True)
class Settings:
    app_name: str = "HRMS Portal"
    secret_key: str = os.getenv("HRMS_SECRET_KEY", "change-me-for-production")
    algorithm: str = "HS256"
    session_cookie_name: str = os.getenv("SESSION_COOKIE_NAME", "hrms_session")
    session_max_age_minutes: int = int(os.getenv("SESSION_MAX_AGE_MINUTES", "720"))
    session_ready_timeout: float = float(os.getenv("HRMS_SESSION_READY_TIMEOUT", "2"))
    max_sessions: int = int(os.getenv("HRMS_MAX_SESSIONS", "1000"))
    log_level: str = os.getenv("HRMS_LOG_LEVEL", "INFO").upper()
    log_file: str = os.getenv("HRMS_LOG_FILE", "hrms.log")
    supabase_url: str = os.getenv("SUPABASE_URL", "")
    supabase_anon_key: str = os.getenv("SUPABASE_ANON_KEY", "")
    table_prefix: str = os.getenv("HRMS_TABLE_PREFIX", "cursorhrms_")
    # "default_role" degrades to employee on profile failure, "deny" fails closed.
    profile_failure_policy: str = os.getenv("HRMS_PROFILE_FAILURE_POLICY", "default_role")
    seed_users: bool = os.getenv("HRMS_SEED_USERS", "true").lower() in {"1", "true", "yes"}
    open_role_registration: bool = os.getenv("HRMS_OPEN_ROLE_REGISTRATION", "false").lower() in {"1", "true", "yes"}
    data_dir: Path = Path(os.getenv("HRMS_DATA_DIR", str(Path(__file__).resolve().parents[2] / "data")))
    template_dir: Path = Path(__file__).resolve().parents[1] / "templates"

    @property
    def uses_supabase(self) -> bool:
        return bool(self.supabase_url and self.supabase_anon_key)


settings = Settings()
settings.data_dir.mkdir(parents=True, exist_ok=True)
