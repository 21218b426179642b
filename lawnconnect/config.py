from pydantic import BaseModel
import os
from pathlib import Path
from dotenv import load_dotenv
load_dotenv()  # carga el archivo .env de la raíz

class Settings(BaseModel):
    app_name: str = os.getenv("APP_NAME", "LawnConnect")
    env: str = os.getenv("APP_ENV", "dev")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    api_prefix: str = os.getenv("API_PREFIX", "/api/v1")
    mongodb_uri: str = os.getenv("MONGODB_URI", "mongodb://localhost:27017")
    db_name: str = os.getenv("DB_NAME", "lawnconnect")
    jwt_secret: str = os.getenv("JWT_SECRET", "change-me")
    jwt_expires_hours: int = int(os.getenv("JWT_EXPIRES_HOURS", "24"))
    media_dir: str = os.getenv("MEDIA_DIR", str(Path(__file__).resolve().parents[1] / "media"))
    frontend_base_url: str = os.getenv("FRONTEND_BASE_URL", "http://localhost:5173")
    reset_password_url: str = os.getenv("RESET_PASSWORD_URL", "http://localhost:5173/reset-password")
    reset_token_expires_minutes: int = int(os.getenv("RESET_TOKEN_EXPIRES_MINUTES", "60"))
    # Simula el tiempo de respuesta de una pasarela de pago
    payment_delay_seconds: float = float(os.getenv("PAYMENT_DELAY_SECONDS", "2"))

    # SMTP: si no hay host, los emails solo se registran en el log
    smtp_host: str | None = os.getenv("SMTP_HOST") or None
    smtp_port: int = int(os.getenv("SMTP_PORT", "587"))
    smtp_user: str | None = os.getenv("SMTP_USER") or None
    smtp_pass: str | None = os.getenv("SMTP_PASS") or None
    from_email: str = os.getenv("FROM_EMAIL", "no-reply@lawnconnect.local")


_settings: Settings | None = None
def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
        Path(_settings.media_dir).mkdir(parents=True, exist_ok=True)
        Path(_settings.media_dir, "proofs").mkdir(parents=True, exist_ok=True)
    return _settings
