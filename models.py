from typing import Optional
from pydantic import BaseModel, Field

# Stored grant models
class AuthorizationCode(BaseModel):
    """Authorization code issued by the authorize endpoint"""
    code: str = Field(..., description="Opaque one-time code value")
    client_id: str = Field(..., description="Client the code was issued to")
    redirect_uri: str = Field(..., description="Redirect URI presented at issuance")
    code_challenge: str = Field(..., description="PKCE code challenge")
    code_challenge_method: str = Field("S256", description="PKCE challenge method")
    scope: Optional[str] = Field(None, description="Requested scope (recorded, not enforced)")
    created_at: float
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now > self.expires_at

class AccessToken(BaseModel):
    """Bearer access token issued by the token endpoint"""
    token: str = Field(..., description="Opaque bearer token value")
    client_id: str = Field(..., description="Owning client")
    scope: Optional[str] = None
    created_at: float
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now > self.expires_at

# OAuth Models
class TokenRequest(BaseModel):
    """OAuth 2.0 Token Request"""
    grant_type: Optional[str] = Field(None, description="Authorization grant type")
    code: Optional[str] = Field(None, description="Authorization code")
    redirect_uri: Optional[str] = Field(None, description="Redirect URI (accepted, not validated)")
    client_id: Optional[str] = Field(None, description="Client identifier")
    code_verifier: Optional[str] = Field(None, description="PKCE code verifier")

class TokenResponse(BaseModel):
    """OAuth 2.0 Token Response"""
    access_token: str
    token_type: str = "Bearer"
    expires_in: int

class TokenIntrospectionResponse(BaseModel):
    """OAuth 2.0 Token Introspection Response"""
    active: bool
    client_id: Optional[str] = None
    scope: Optional[str] = None
    token_type: Optional[str] = None
    exp: Optional[int] = None
    iat: Optional[int] = None

class ErrorResponse(BaseModel):
    """JSON error body returned by the token endpoint"""
    error: str

# Resource models
class UserInfo(BaseModel):
    """Claims returned by the protected userinfo endpoint"""
    sub: str
    name: str
    email: str
    role: str
    data: str

class HealthCheckResponse(BaseModel):
    """Health check response"""
    status: str
    service: str
    version: str
    timestamp: str
    components: dict
    environment: str
