import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

ROOT_DIR = Path(__file__).parent
load_dotenv(ROOT_DIR / '.env')

WEAK_JWT_SECRETS = {
    'default_secret_key',
    'changeme',
    'change_me',
    'secret',
    'jwt_secret',
    'password',
    'admin123',
}


def _bool_env(value: Optional[str], default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def validate_jwt_secret(secret: Optional[str]) -> str:
    if not secret:
        raise RuntimeError('JWT_SECRET_KEY is required and must be set in environment')
    if len(secret) < 32 or secret.strip().lower() in WEAK_JWT_SECRETS:
        raise RuntimeError('JWT_SECRET_KEY is too weak; use a random secret with at least 32 characters')
    return secret


@dataclass
class SMTPConfig:
    host: str
    port: int
    user: Optional[str]
    password: Optional[str]
    use_tls: bool
    use_ssl: bool
    sender: str


def load_smtp(prefix: str) -> Optional[SMTPConfig]:
    host = os.environ.get(f"{prefix}_HOST")
    port_raw = os.environ.get(f"{prefix}_PORT")
    sender = os.environ.get(f"{prefix}_FROM")
    if not host or not port_raw or not sender:
        return None

    try:
        port = int(port_raw)
    except ValueError:
        raise RuntimeError(f"Invalid {prefix}_PORT: {port_raw}")

    return SMTPConfig(
        host=host,
        port=port,
        user=os.environ.get(f"{prefix}_USER"),
        password=os.environ.get(f"{prefix}_PASS"),
        use_tls=_bool_env(os.environ.get(f"{prefix}_TLS"), default=True),
        use_ssl=_bool_env(os.environ.get(f"{prefix}_SSL"), default=False),
        sender=sender,
    )


@dataclass
class GatewayConfig:
    store_id: str = "test_store"
    store_password: str = "test_password"
    is_live: bool = False
    success_url: Optional[str] = None
    fail_url: Optional[str] = None
    cancel_url: Optional[str] = None
    ipn_url: Optional[str] = None

    @property
    def api_url(self) -> str:
        if self.is_live:
            return "https://securepay.sslcommerz.com"
        return "https://sandbox.sslcommerz.com"

    @property
    def process_url(self) -> str:
        return f"{self.api_url}/gwprocess/v4/api.php"


@dataclass
class Settings:
    database_url: str
    jwt_secret_key: str
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 24 * 60
    bcrypt_rounds: int = 12
    app_env: str = "development"
    frontend_url: str = "http://localhost:3000"
    super_admin_email: str = "superadmin@sust.edu"
    super_admin_password: str = "Admin@123456"
    otp_ttl_minutes: int = 10
    gateway: GatewayConfig = field(default_factory=GatewayConfig)
    smtp_primary: Optional[SMTPConfig] = None
    smtp_secondary: Optional[SMTPConfig] = None

    def __post_init__(self):
        validate_jwt_secret(self.jwt_secret_key)

    @property
    def is_production(self) -> bool:
        return self.app_env.strip().lower() == "production"

    def checkout_url(self, unique_id: str) -> str:
        return f"{self.frontend_url.rstrip('/')}/checkout/{unique_id}"

    @classmethod
    def from_env(cls) -> "Settings":
        database_url = os.environ.get("DATABASE_URL")
        if not database_url:
            raise RuntimeError("DATABASE_URL is required and must be set in environment")
        return cls(
            database_url=database_url,
            jwt_secret_key=os.environ.get("JWT_SECRET_KEY", ""),
            jwt_algorithm=os.environ.get("JWT_ALGORITHM", "HS256"),
            access_token_expire_minutes=int(os.environ.get("ACCESS_TOKEN_EXPIRE_MINUTES", 24 * 60)),
            bcrypt_rounds=int(os.environ.get("BCRYPT_ROUNDS", 12)),
            app_env=os.environ.get("APP_ENV", "development"),
            frontend_url=os.environ.get("FRONTEND_URL", "http://localhost:3000"),
            super_admin_email=os.environ.get("SUPER_ADMIN_EMAIL", "superadmin@sust.edu"),
            super_admin_password=os.environ.get("SUPER_ADMIN_PASSWORD", "Admin@123456"),
            otp_ttl_minutes=int(os.environ.get("OTP_TTL_MINUTES", 10)),
            gateway=GatewayConfig(
                store_id=os.environ.get("SSLCOMMERZ_STORE_ID", "test_store"),
                store_password=os.environ.get("SSLCOMMERZ_STORE_PASSWORD", "test_password"),
                is_live=_bool_env(os.environ.get("SSLCOMMERZ_IS_LIVE")),
                success_url=os.environ.get("SSLCOMMERZ_SUCCESS_URL"),
                fail_url=os.environ.get("SSLCOMMERZ_FAIL_URL"),
                cancel_url=os.environ.get("SSLCOMMERZ_CANCEL_URL"),
                ipn_url=os.environ.get("SSLCOMMERZ_IPN_URL"),
            ),
            smtp_primary=load_smtp("SMTP_PRIMARY"),
            smtp_secondary=load_smtp("SMTP_SECONDARY"),
        )
