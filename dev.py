#!/usr/bin/env python3

"""
Development utility for the PKCE OAuth Server
"""

import argparse
import asyncio
import os
import subprocess
import sys
from pathlib import Path
from urllib.parse import parse_qs, urlparse

import httpx

from auth import generate_pkce_pair

def run_server():
    """Run development server"""
    print("🚀 Starting development server...")
    env = os.environ.copy()
    env.setdefault("ENVIRONMENT", "development")
    env.setdefault("LOG_LEVEL", "DEBUG")
    subprocess.run([sys.executable, "main.py"], env=env, check=False)

def check_env() -> bool:
    """Check environment configuration"""
    print("🔍 Checking environment configuration...")

    from config import Config

    try:
        config = Config()
    except ValueError as e:
        print(f"❌ Invalid configuration: {e}")
        return False

    print("✅ Environment configuration looks good!")
    print("\n📋 Current configuration:")
    print(f"   Environment: {config.environment}")
    print(f"   Host: {config.host}")
    print(f"   Port: {config.port}")
    print(f"   Base URL: {config.base_url}")
    print(f"   Client ID: {config.client_id}")
    print(f"   Redirect URI: {config.redirect_uri}")
    print(f"   Code lifetime: {config.get_oauth_code_expiry_delta()}")
    print(f"   Token lifetime: {config.get_oauth_token_expiry_delta()}")

    if not config.redirect_uri.startswith(config.base_url):
        print("⚠️  Redirect URI is not served by this server; /cb helper page will not be used")

    return True

def show_pkce_pair():
    """Print a fresh code_verifier / code_challenge pair"""
    verifier, challenge = generate_pkce_pair()
    print(f"code_verifier:  {verifier}")
    print(f"code_challenge: {challenge}")

def status(base_url: str) -> bool:
    """Show server status"""
    print("📊 Server Status:")

    async def check_health():
        async with httpx.AsyncClient() as client:
            response = await client.get(f"{base_url}/health", timeout=5)
            response.raise_for_status()
            return response.json()

    try:
        health = asyncio.run(check_health())
    except httpx.HTTPError as e:
        print(f"❌ Server is not reachable at {base_url}: {e}")
        return False

    print("✅ Server is running")
    print(f"   Status: {health.get('status')}")
    print(f"   Version: {health.get('version')}")
    print(f"   Environment: {health.get('environment')}")
    print(f"   Components: {health.get('components')}")
    return True

async def run_flow(base_url: str, client_id: str, redirect_uri: str) -> bool:
    """Drive authorize -> token -> userinfo against a running server"""
    verifier, challenge = generate_pkce_pair()

    async with httpx.AsyncClient(base_url=base_url, timeout=10.0) as client:
        print("1️⃣  Requesting authorization code...")
        response = await client.get("/authorize", params={
            "response_type": "code",
            "client_id": client_id,
            "redirect_uri": redirect_uri,
            "scope": "read",
            "state": "dev-flow",
            "code_challenge": challenge,
            "code_challenge_method": "S256",
        })
        if response.status_code != 302:
            print(f"   ❌ Authorization failed: {response.status_code} {response.text}")
            return False

        query = parse_qs(urlparse(response.headers["location"]).query)
        code = query["code"][0]
        print(f"   ✅ Code received: {code}")

        print("2️⃣  Exchanging code for token...")
        response = await client.post("/token", data={
            "grant_type": "authorization_code",
            "client_id": client_id,
            "code": code,
            "redirect_uri": redirect_uri,
            "code_verifier": verifier,
        })
        if response.status_code != 200:
            print(f"   ❌ Token exchange failed: {response.status_code} {response.text}")
            return False

        access_token = response.json()["access_token"]
        print(f"   ✅ Access token issued: {access_token[:8]}...")

        print("3️⃣  Calling protected userinfo endpoint...")
        response = await client.get("/userinfo", headers={"Authorization": f"Bearer {access_token}"})
        if response.status_code != 200:
            print(f"   ❌ Userinfo failed: {response.status_code} {response.text}")
            return False

        print(f"   ✅ Claims: {response.json()}")

    print("🎉 Flow completed")
    return True

def main():
    """Main CLI interface"""
    parser = argparse.ArgumentParser(
        description="Development utility for the PKCE OAuth Server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Available commands:
  run         Run development server
  check       Check environment configuration
  pkce        Generate a code_verifier / code_challenge pair
  status      Show server status
  flow        Run the full authorize/token/userinfo flow against a server

Examples:
  python dev.py run          # Run development server
  python dev.py flow         # Exercise a running server end to end
        """
    )

    parser.add_argument(
        "command",
        choices=["run", "check", "pkce", "status", "flow"],
        help="Command to execute"
    )
    parser.add_argument(
        "--url",
        default=os.getenv("BASE_URL", "http://localhost:8080"),
        help="Base URL of the OAuth server (default: http://localhost:8080)"
    )
    parser.add_argument("--client-id", default=os.getenv("OAUTH_CLIENT_ID", "demo-client"))
    parser.add_argument("--redirect-uri", default=None)

    args = parser.parse_args()

    # Change to script directory
    os.chdir(Path(__file__).parent)

    base_url = args.url.rstrip("/")
    redirect_uri = args.redirect_uri or os.getenv("OAUTH_REDIRECT_URI", f"{base_url}/cb")

    if args.command == "run":
        run_server()

    elif args.command == "check":
        sys.exit(0 if check_env() else 1)

    elif args.command == "pkce":
        show_pkce_pair()

    elif args.command == "status":
        sys.exit(0 if status(base_url) else 1)

    elif args.command == "flow":
        try:
            success = asyncio.run(run_flow(base_url, args.client_id, redirect_uri))
        except httpx.HTTPError as e:
            print(f"❌ Request failed: {e}")
            success = False
        sys.exit(0 if success else 1)

    else:
        parser.print_help()

if __name__ == "__main__":
    main()
