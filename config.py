import os
from datetime import timedelta

class Config:
    """Configuration management for the OAuth server"""

    def __init__(self):
        # Server configuration
        self.host = os.getenv("HOST", "0.0.0.0")
        self.port = int(os.getenv("PORT", 8080))
        self.environment = os.getenv("ENVIRONMENT", "development")
        self.base_url = os.getenv("BASE_URL", f"http://localhost:{self.port}").rstrip("/")

        # Registered client (single client, PKCE public flow)
        self.client_id = os.getenv("OAUTH_CLIENT_ID", "demo-client")
        self.client_secret = os.getenv("OAUTH_CLIENT_SECRET", "demo-secret")  # reserved, unused by PKCE
        self.redirect_uri = os.getenv("OAUTH_REDIRECT_URI", f"{self.base_url}/cb")

        # OAuth configuration
        self.oauth_code_expiry = int(os.getenv("OAUTH_CODE_EXPIRY", 600))  # 10 minutes
        self.oauth_token_expiry = int(os.getenv("OAUTH_TOKEN_EXPIRY", 3600))  # 1 hour

        # Cleanup configuration
        self.cleanup_interval = int(os.getenv("CLEANUP_INTERVAL", 300))  # 5 minutes

        # Logging configuration
        self.log_level = os.getenv("LOG_LEVEL", "INFO")
        self.log_format = os.getenv("LOG_FORMAT", "%(asctime)s - %(name)s - %(levelname)s - %(message)s")

        self._validate_config()

    def _validate_config(self):
        """Validate configuration values"""
        if self.oauth_code_expiry <= 0:
            raise ValueError("OAUTH_CODE_EXPIRY must be a positive number of seconds")

        if self.oauth_token_expiry <= 0:
            raise ValueError("OAUTH_TOKEN_EXPIRY must be a positive number of seconds")

        if self.cleanup_interval <= 0:
            raise ValueError("CLEANUP_INTERVAL must be a positive number of seconds")

        if not self.redirect_uri.startswith(("http://", "https://")):
            raise ValueError("OAUTH_REDIRECT_URI must be an absolute http(s) URL")

        if self.is_production and not self.base_url.startswith("https://"):
            raise ValueError("BASE_URL must use HTTPS in production")

    @property
    def is_development(self) -> bool:
        """Check if running in development mode"""
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode"""
        return self.environment == "production"

    def get_oauth_code_expiry_delta(self) -> timedelta:
        """Get OAuth code expiry as timedelta"""
        return timedelta(seconds=self.oauth_code_expiry)

    def get_oauth_token_expiry_delta(self) -> timedelta:
        """Get OAuth token expiry as timedelta"""
        return timedelta(seconds=self.oauth_token_expiry)
