#!/usr/bin/env python3

import asyncio
import contextlib
import html
import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import HTMLResponse, JSONResponse, PlainTextResponse, RedirectResponse
import uvicorn

from auth import AuthManager, OAuthError
from config import Config
from models import ErrorResponse, HealthCheckResponse, UserInfo

VERSION = "1.0.0"

logger = logging.getLogger(__name__)

# Fixed claims served to any authenticated caller
USER_CLAIMS = UserInfo(
    sub="user_123",
    name="Alice Doe",
    email="alice@example.com",
    role="admin",
    data="Private Photos from Snap Store",
)

CALLBACK_PAGE = """
<h1>Callback Received!</h1>
<p><b>Code:</b> {code}</p>
<p><b>State:</b> {state}</p>
<hr>
<h3>Next Step: Exchange Code for Token</h3>
<p>Run this command in your terminal:</p>
<pre style="background: #eee; padding: 10px;">
curl -X POST {base_url}/token \\
  -d "grant_type=authorization_code" \\
  -d "client_id={client_id}" \\
  -d "code={code}" \\
  -d "redirect_uri={redirect_uri}" \\
  -d "code_verifier=secret-verifier-string"
</pre>
"""

def create_app(config: Config, auth_manager: Optional[AuthManager] = None) -> FastAPI:
    """Build the OAuth server application around one AuthManager instance"""
    auth_manager = auth_manager or AuthManager(config)

    app = FastAPI(
        title="PKCE OAuth Server",
        description="OAuth 2.0 Authorization Server with Authorization Code Flow and PKCE",
        version=VERSION,
        docs_url="/docs" if config.is_development else None,
        redoc_url="/redoc" if config.is_development else None
    )
    app.state.config = config
    app.state.auth_manager = auth_manager

    # Add security headers middleware
    @app.middleware("http")
    async def add_security_headers(request: Request, call_next):
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Cache-Control"] = "no-store"

        if config.is_production:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

        return response

    @app.get("/health")
    async def health_check():
        """Health check endpoint with store sizes"""
        return HealthCheckResponse(
            status="healthy",
            service="pkce-oauth-server",
            version=VERSION,
            timestamp=datetime.now(timezone.utc).isoformat(),
            components={
                "authorization_codes": len(auth_manager.codes),
                "access_tokens": len(auth_manager.tokens),
            },
            environment=config.environment,
        )

    # OAuth 2.0 Authorization Server Metadata (RFC 8414)
    @app.get("/.well-known/oauth-authorization-server")
    async def oauth_authorization_server_metadata():
        """Authorization Server Metadata for the single registered client"""
        return {
            "issuer": config.base_url,
            "authorization_endpoint": f"{config.base_url}/authorize",
            "token_endpoint": f"{config.base_url}/token",
            "userinfo_endpoint": f"{config.base_url}/userinfo",
            "introspection_endpoint": f"{config.base_url}/introspect",
            "response_types_supported": ["code"],
            "grant_types_supported": ["authorization_code"],
            "code_challenge_methods_supported": ["S256"],
            "token_endpoint_auth_methods_supported": ["none"],
        }

    # 1. Authorization endpoint (Authorization Server role)
    @app.get("/authorize")
    async def authorize(
        client_id: Optional[str] = None,
        redirect_uri: Optional[str] = None,
        response_type: Optional[str] = None,
        scope: Optional[str] = None,
        state: Optional[str] = None,
        code_challenge: Optional[str] = None,
        code_challenge_method: Optional[str] = None
    ):
        """Authorization endpoint; the resource owner is assumed logged in and approving"""
        try:
            _, redirect_url = auth_manager.create_authorization(
                client_id=client_id,
                redirect_uri=redirect_uri,
                response_type=response_type,
                state=state,
                code_challenge=code_challenge,
                code_challenge_method=code_challenge_method,
                scope=scope,
            )
            return RedirectResponse(url=redirect_url, status_code=302)

        except OAuthError as e:
            logger.warning(f"Authorization rejected: {e.error}")
            return PlainTextResponse(e.description, status_code=e.status_code)
        except Exception as e:
            logger.error(f"Authorization error: {e}")
            raise HTTPException(status_code=500, detail="Authorization failed")

    # 2. Token endpoint (Authorization Server role)
    @app.post("/token")
    async def token(request: Request):
        """Token endpoint with PKCE verification"""
        try:
            form_data = await request.form()
            token_response = auth_manager.exchange_code_for_token(dict(form_data))
            return token_response

        except OAuthError as e:
            logger.warning(f"Token exchange rejected: {e.error}")
            return JSONResponse(
                status_code=e.status_code,
                content=ErrorResponse(error=e.error).model_dump()
            )
        except Exception as e:
            logger.error(f"Token exchange error: {e}")
            raise HTTPException(status_code=500, detail="Token exchange failed")

    # Token introspection endpoint
    @app.post("/introspect", response_model_exclude_none=True)
    async def token_introspection(request: Request):
        """OAuth 2.0 Token Introspection (RFC 7662)"""
        try:
            form_data = await request.form()
            token_value = form_data.get("token")

            if not token_value or not isinstance(token_value, str):
                raise HTTPException(status_code=400, detail="token parameter required")

            return auth_manager.introspect_token(token_value)

        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"Token introspection error: {e}")
            raise HTTPException(status_code=500, detail="Token introspection failed")

    # 3. Protected resource (Resource Server role)
    @app.get("/userinfo")
    async def userinfo(request: Request):
        """Return the user claims for a valid bearer token"""
        try:
            token_data = auth_manager.authenticate(request.headers.get("Authorization"))

            logger.debug(f"Userinfo served for client {token_data.client_id}")
            return USER_CLAIMS

        except OAuthError as e:
            return PlainTextResponse(e.description, status_code=e.status_code)
        except Exception as e:
            logger.error(f"Userinfo error: {e}")
            raise HTTPException(status_code=500, detail="Userinfo failed")

    # Helper: callback page so the demo can be followed in a browser
    @app.get("/cb", response_class=HTMLResponse)
    async def callback(code: str = "", state: str = ""):
        """Show the received code and the command that exchanges it"""
        return CALLBACK_PAGE.format(
            code=html.escape(code),
            state=html.escape(state),
            base_url=config.base_url,
            client_id=html.escape(config.client_id),
            redirect_uri=html.escape(config.redirect_uri),
        )

    @app.on_event("startup")
    async def startup_event():
        """Start the expired-grant cleanup task"""
        logger.info(f"Starting PKCE OAuth Server v{VERSION}")
        logger.info(f"Environment: {config.environment}")
        logger.info(f"Base URL: {config.base_url}")
        app.state.cleanup_task = asyncio.create_task(auth_manager.cleanup_expired_tokens())

    @app.on_event("shutdown")
    async def shutdown_event():
        """Cancel the cleanup task on shutdown"""
        logger.info("Shutting down PKCE OAuth Server")
        cleanup_task = getattr(app.state, "cleanup_task", None)
        if cleanup_task is not None:
            cleanup_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await cleanup_task

    return app

# Initialize configuration
config = Config()

# Configure logging
logging.basicConfig(level=config.log_level, format=config.log_format)

app = create_app(config)

if __name__ == "__main__":
    print(f"🔒 OAuth2 Server running on {config.base_url}")
    print(
        f"👉 Start here: {config.base_url}/authorize?response_type=code"
        f"&client_id={config.client_id}&redirect_uri={config.redirect_uri}"
        "&scope=read&state=xyz123"
        "&code_challenge=LQZxoESZIZMv7j_6u2jBWnivm0jsDelp3OLcKeo64S4&code_challenge_method=S256"
    )

    uvicorn.run(
        app,
        host=config.host,
        port=config.port,
        log_level=config.log_level.lower(),
        access_log=True
    )
