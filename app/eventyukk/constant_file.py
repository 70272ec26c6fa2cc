from dotenv import load_dotenv
import os

# Load environment variables from .env
load_dotenv()


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


# ------------------ Email ------------------
eventyukk_email = os.getenv("SMTP_USER", "")
eventyukk_email_password = os.getenv("SMTP_PASS", "")
smtp_host = os.getenv("SMTP_HOST", "smtp.gmail.com")
smtp_port = int(os.getenv("SMTP_PORT", 587))
smtp_sender_name = os.getenv("SMTP_SENDER_NAME", "Event Yukk")
email_timeout_seconds = float(os.getenv("EMAIL_TIMEOUT_SECONDS", 10))

token_email_subject = "Token Kehadiran Event"
Otp_verification_subject = "Kode Verifikasi Email Event Yukk"
otp_expiry_minutes = 15

# ------------------ Payment gateway (Midtrans) ------------------
midtrans_server_key = os.getenv("MIDTRANS_SERVER_KEY", "")
midtrans_client_key = os.getenv("MIDTRANS_CLIENT_KEY", "")
midtrans_is_production = _env_flag("MIDTRANS_IS_PRODUCTION") and not midtrans_server_key.startswith("SB-Mid-server")
midtrans_snap_url = (
    "https://app.midtrans.com/snap/v1/transactions"
    if midtrans_is_production
    else "https://app.sandbox.midtrans.com/snap/v1/transactions"
)
midtrans_api_url = "https://api.midtrans.com" if midtrans_is_production else "https://api.sandbox.midtrans.com"
midtrans_timeout_seconds = float(os.getenv("MIDTRANS_TIMEOUT_SECONDS", 15))
frontend_url = os.getenv("FRONTEND_URL", "http://localhost:5173")

# ------------------ Registration rules ------------------
registration_close_buffer_hours = 1
attendance_deadline_buffer_hours = 1
archive_after_months = 1
token_length = 8

# ------------------ Background jobs ------------------
run_sweep_on_startup = _env_flag("RUN_SWEEP_ON_STARTUP", "true")
celery_broker_url = os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/0")
celery_result_backend = os.getenv("CELERY_RESULT_BACKEND", "redis://localhost:6379/0")
sweep_interval_seconds = int(os.getenv("SWEEP_INTERVAL_SECONDS", 3600))

# ------------------ Logging ------------------
log_level = os.getenv("LOG_LEVEL", "INFO")
log_file = os.getenv("LOG_FILE", "")
