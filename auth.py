import asyncio
import base64
import hashlib
import hmac
import logging
import secrets
import threading
import time
import uuid
from typing import Callable, Dict, Optional, Tuple
from urllib.parse import quote

from pydantic import ValidationError

from config import Config
from models import AccessToken, AuthorizationCode, TokenIntrospectionResponse, TokenRequest, TokenResponse
from storage import CodeStore, TokenStore

logger = logging.getLogger(__name__)

SUPPORTED_CHALLENGE_METHOD = "S256"

class OAuthError(Exception):
    """OAuth protocol error surfaced to the caller.

    ``error`` is the machine-readable kind (``invalid_grant``, ...),
    ``description`` the human-readable text used by plain-text endpoints.
    """

    def __init__(self, error: str, description: Optional[str] = None, status_code: int = 400):
        self.error = error
        self.description = description or error
        self.status_code = status_code
        super().__init__(self.description)

def compute_challenge(code_verifier: str) -> str:
    """BASE64URL(SHA256(code_verifier)) without padding"""
    digest = hashlib.sha256(code_verifier.encode("utf-8")).digest()
    return base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=")

def verify_pkce(code_challenge: str, code_verifier: str) -> bool:
    """Verify an S256 code challenge against the verifier using constant-time comparison"""
    expected = compute_challenge(code_verifier)
    return hmac.compare_digest(expected.encode("ascii"), code_challenge.encode("utf-8"))

def generate_pkce_pair() -> Tuple[str, str]:
    """Generate a (code_verifier, code_challenge) pair for clients and tooling"""
    code_verifier = secrets.token_urlsafe(32)
    return code_verifier, compute_challenge(code_verifier)

class AuthManager:
    """Authorization server state: issued codes, issued tokens and the flows over them"""

    def __init__(self, config: Config, clock: Callable[[], float] = time.time):
        self.config = config
        self.clock = clock

        # One lock for both stores
        self._lock = threading.Lock()
        self.codes = CodeStore(self._lock)
        self.tokens = TokenStore(self._lock)

    def create_authorization(
        self,
        client_id: Optional[str],
        redirect_uri: Optional[str],
        response_type: Optional[str],
        state: Optional[str] = None,
        code_challenge: Optional[str] = None,
        code_challenge_method: Optional[str] = None,
        scope: Optional[str] = None,
    ) -> Tuple[str, str]:
        """Validate an authorization request and issue a code.

        The resource owner is assumed to be authenticated and consenting.
        Returns the code and the redirect URL carrying it back to the client.
        """
        if client_id != self.config.client_id:
            raise OAuthError("invalid_client", "Invalid client_id")

        if redirect_uri != self.config.redirect_uri:
            raise OAuthError("invalid_redirect_uri", "Invalid redirect_uri")

        if response_type != "code":
            raise OAuthError("unsupported_response_type", "Unsupported response_type")

        if not code_challenge or code_challenge_method != SUPPORTED_CHALLENGE_METHOD:
            raise OAuthError("pkce_required", "PKCE required (code_challenge + S256)")

        auth_code = str(uuid.uuid4())
        now = self.clock()

        # Store authorization code with PKCE challenge
        self.codes.put(AuthorizationCode(
            code=auth_code,
            client_id=client_id,
            redirect_uri=redirect_uri,
            code_challenge=code_challenge,
            code_challenge_method=code_challenge_method,
            scope=scope,
            created_at=now,
            expires_at=now + self.config.oauth_code_expiry,
        ))

        # State is opaque to us; the client validates it
        redirect_url = f"{redirect_uri}?code={auth_code}&state={quote(state or '', safe='')}"

        logger.info(f"Authorization code issued for client {client_id}")
        return auth_code, redirect_url

    def exchange_code_for_token(self, form_data: Dict[str, str]) -> TokenResponse:
        """Exchange an authorization code for an access token with PKCE verification.

        The code is removed from the store before any other check, so every
        attempt (successful or not) ends its life.
        """
        try:
            request = TokenRequest.model_validate(form_data)
        except ValidationError:
            # Non-string form values, e.g. multipart file parts
            raise OAuthError("invalid_request")
        client_id = request.client_id

        if request.grant_type != "authorization_code":
            raise OAuthError("unsupported_grant_type")

        code_data = self.codes.take(request.code or "")
        if code_data is None:
            raise OAuthError("invalid_grant")

        now = self.clock()
        if code_data.is_expired(now):
            raise OAuthError("code_expired")

        if code_data.client_id != client_id:
            raise OAuthError("invalid_client", status_code=401)

        if not verify_pkce(code_data.code_challenge, request.code_verifier or ""):
            raise OAuthError("invalid_request")

        access_token = str(uuid.uuid4())
        self.tokens.put(AccessToken(
            token=access_token,
            client_id=code_data.client_id,
            scope=code_data.scope,
            created_at=now,
            expires_at=now + self.config.oauth_token_expiry,
        ))

        logger.info(f"Access token issued for client {client_id}")
        return TokenResponse(
            access_token=access_token,
            token_type="Bearer",
            expires_in=self.config.oauth_token_expiry,
        )

    def verify_token(self, token: str) -> Optional[AccessToken]:
        """Return the token record if it exists and has not expired"""
        token_data = self.tokens.get(token)
        if token_data is None or token_data.is_expired(self.clock()):
            return None
        return token_data

    def authenticate(self, authorization: Optional[str]) -> AccessToken:
        """Resolve an ``Authorization: Bearer <token>`` header to its token record"""
        if not authorization or not authorization.startswith("Bearer "):
            raise OAuthError("unauthorized", "Unauthorized", status_code=401)

        token_data = self.verify_token(authorization[len("Bearer "):])
        if token_data is None:
            raise OAuthError("invalid_token", "Invalid or expired token", status_code=401)

        return token_data

    def introspect_token(self, token: str) -> TokenIntrospectionResponse:
        """OAuth 2.0 Token Introspection (RFC 7662)"""
        token_data = self.verify_token(token)

        if not token_data:
            return TokenIntrospectionResponse(active=False)

        return TokenIntrospectionResponse(
            active=True,
            client_id=token_data.client_id,
            scope=token_data.scope,
            token_type="Bearer",
            exp=int(token_data.expires_at),
            iat=int(token_data.created_at),
        )

    def cleanup_expired(self) -> Tuple[int, int]:
        """Drop expired codes and tokens, returning how many of each were removed"""
        now = self.clock()
        expired_codes = self.codes.purge_expired(now)
        expired_tokens = self.tokens.purge_expired(now)

        if expired_codes or expired_tokens:
            logger.info(f"Cleaned up {expired_codes} codes, {expired_tokens} tokens")

        return expired_codes, expired_tokens

    async def cleanup_expired_tokens(self):
        """Background task to clean up expired tokens and codes"""
        while True:
            try:
                self.cleanup_expired()
                await asyncio.sleep(self.config.cleanup_interval)
            except Exception as e:
                logger.error(f"Error in cleanup task: {e}")
                await asyncio.sleep(60)  # Wait 1 minute on error
