from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    # Application
    APP_NAME: str = "RAAS Audit Trail"
    DEBUG: bool = False

    # Database
    DATABASE_URL: str = "postgresql+asyncpg://raas_user:change_me@db:5432/raas_db"
    DATABASE_URL_SYNC: str = "postgresql+psycopg://raas_user:change_me@db:5432/raas_db"

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:4200"

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS_ORIGINS string into a list of origins."""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    # Audit context headers
    # Authentication happens upstream; the gateway forwards the resolved
    # username and session identifier in these headers.
    AUDIT_USER_HEADER: str = "X-Remote-User"
    AUDIT_SESSION_HEADER: str = "X-Session-Id"

    # Peer addresses allowed to set the audit headers and X-Forwarded-For /
    # X-Real-IP, comma-separated. Requests from other peers are recorded
    # without a username, with the socket peer address.
    AUDIT_TRUSTED_PROXIES: str = "127.0.0.1,::1"

    @property
    def audit_trusted_proxies_set(self) -> set[str]:
        """Parse AUDIT_TRUSTED_PROXIES into a set of peer addresses."""
        return {
            address.strip()
            for address in self.AUDIT_TRUSTED_PROXIES.split(",")
            if address.strip()
        }

    # Entity names whose UPDATE operations count as critical (exact match,
    # case-insensitive), comma-separated
    AUDIT_CRITICAL_ENTITIES: str = "Contract,Consultation,Submission,Provider,Approval"

    @property
    def audit_critical_entities_set(self) -> set[str]:
        """Parse AUDIT_CRITICAL_ENTITIES into a set of lowercase entity names."""
        return {
            name.strip().lower()
            for name in self.AUDIT_CRITICAL_ENTITIES.split(",")
            if name.strip()
        }

    class Config:
        env_file = ".env"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
