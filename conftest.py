"""Shared test fixtures."""

import pytest
from fastapi.testclient import TestClient

from auth import AuthManager, compute_challenge
from config import Config
from main import create_app

CONFIG_ENV_VARS = [
    "HOST",
    "PORT",
    "BASE_URL",
    "ENVIRONMENT",
    "OAUTH_CLIENT_ID",
    "OAUTH_CLIENT_SECRET",
    "OAUTH_REDIRECT_URI",
    "OAUTH_CODE_EXPIRY",
    "OAUTH_TOKEN_EXPIRY",
    "CLEANUP_INTERVAL",
]

VERIFIER = "a-client-generated-verifier-with-enough-entropy-0123456789"

class FakeClock:
    """Manually advanced clock returning epoch seconds."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

@pytest.fixture
def config(monkeypatch) -> Config:
    """Config built from defaults only."""
    for name in CONFIG_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return Config()

@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()

@pytest.fixture
def manager(config, clock) -> AuthManager:
    return AuthManager(config, clock=clock)

@pytest.fixture
def client(config, manager) -> TestClient:
    return TestClient(create_app(config, manager))

@pytest.fixture
def verifier() -> str:
    return VERIFIER

@pytest.fixture
def challenge() -> str:
    return compute_challenge(VERIFIER)

@pytest.fixture
def issue_code(manager, config, challenge):
    """Issue a code for the registered client and return its value."""

    def _issue(state: str = "xyz123") -> str:
        code, _ = manager.create_authorization(
            client_id=config.client_id,
            redirect_uri=config.redirect_uri,
            response_type="code",
            state=state,
            code_challenge=challenge,
            code_challenge_method="S256",
            scope="read",
        )
        return code

    return _issue
