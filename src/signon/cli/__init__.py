"""CLI for the signon server: password hashes, login discovery and serving."""

import argparse
import asyncio
import getpass
import sys

import httpx

from signon.auth.password import hash_password


def generate_hash(password: str | None) -> bool:
    """Print a SHA-512 crypt hash for a ``users`` entry."""
    if password is None:
        password = getpass.getpass("Password: ")
        if password != getpass.getpass("Confirm password: "):
            print("✗ Passwords do not match.", file=sys.stderr)
            return False

    if not password:
        print("✗ Password must not be empty.", file=sys.stderr)
        return False

    print(hash_password(password))
    return True


async def show_auth_info(server_url: str = "http://localhost:8000") -> bool:
    """Show the login methods a running server offers."""
    try:
        async with httpx.AsyncClient(base_url=server_url, timeout=10) as client:
            resp = await client.get("/api/auth-info")
    except httpx.ConnectError:
        print(f"✗ Cannot connect to server at {server_url}")
        print("  Is the server running?")
        return False

    if resp.status_code != 200:
        print(f"✗ Server error: {resp.status_code}")
        return False

    info = resp.json()
    print(f"✓ Connected to {server_url}")
    print(f"  Password login: {'enabled' if info['password_enabled'] else 'disabled'}")

    providers = info.get("oauth_providers", [])
    print(f"\n  OAuth providers ({len(providers)}):")
    for p in providers:
        print(f"    - {p['name']}: {server_url}{p['url']}")
    return True


def serve() -> None:
    import uvicorn

    from signon.config import get_settings

    settings = get_settings()
    uvicorn.run("signon.main:get_app", factory=True, host=settings.server_host, port=settings.server_port)


def main():
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="signon server CLI",
        prog="signon",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    hash_parser = subparsers.add_parser("hash-password", help="Generate a password hash for the users list")
    hash_parser.add_argument(
        "password",
        nargs="?",
        help="Password to hash (prompted for when omitted)",
    )

    info_parser = subparsers.add_parser("auth-info", help="Show the login methods of a running server")
    info_parser.add_argument(
        "--server",
        default="http://localhost:8000",
        help="Server URL (default: http://localhost:8000)",
    )

    subparsers.add_parser("serve", help="Run the server with uvicorn")

    args = parser.parse_args()

    if args.command == "hash-password":
        success = generate_hash(args.password)
        sys.exit(0 if success else 1)

    elif args.command == "auth-info":
        success = asyncio.run(show_auth_info(args.server))
        sys.exit(0 if success else 1)

    elif args.command == "serve":
        serve()

    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
