"""CLI tool for managing identities via the running Era Genética Server.

Connects to the server's admin endpoints to create, list and remove users,
including the admin claim that unlocks the roster.
The server must be running for this tool to work.

Usage:
    python manage_users.py create --uid naruto --name "Naruto"
    python manage_users.py create --uid sensei --name "Sensei" --admin
    python manage_users.py list
    python manage_users.py set-admin --uid naruto --off
    python manage_users.py rotate --uid naruto
    python manage_users.py delete --uid naruto

Environment variables:
    ERA_GENETICA_URL: Server URL (default: http://127.0.0.1:8000)
    ADMIN_SECRET:     Admin secret for the server (default: change-me-in-production)
"""

import argparse
import os
import sys

import httpx

DEFAULT_URL = os.environ.get("ERA_GENETICA_URL", "http://127.0.0.1:8000")
ADMIN_SECRET = os.environ.get("ADMIN_SECRET", "change-me-in-production")


def _request(method: str, url: str, **kwargs) -> httpx.Response:
    """Make an HTTP request with admin secret, handling connection errors."""
    kwargs.setdefault("headers", {})["X-Admin-Secret"] = ADMIN_SECRET
    kwargs.setdefault("timeout", 10.0)
    try:
        return httpx.request(method, url, **kwargs)
    except httpx.ConnectError:
        print(f"Error: Could not connect to server at {url}", file=sys.stderr)
        print("Is the server running?", file=sys.stderr)
        sys.exit(1)


def _handle_error(resp: httpx.Response) -> None:
    """Exit with a readable message on any non-200 response."""
    if resp.status_code == 200:
        return
    if resp.status_code == 403:
        print("Error: Invalid admin secret", file=sys.stderr)
        print("Set ADMIN_SECRET env var to match the server's config", file=sys.stderr)
    elif resp.status_code in (404, 409):
        print(f"Error: {resp.json().get('detail', resp.reason_phrase)}", file=sys.stderr)
    else:
        print(f"Error: {resp.status_code} {resp.text}", file=sys.stderr)
    sys.exit(1)


def create_user(url: str, uid: str, name: str, admin: bool) -> None:
    """Register a new identity and print its API key."""
    resp = _request(
        "POST",
        f"{url}/admin/register",
        json={"uid": uid, "name": name, "admin": admin},
    )
    _handle_error(resp)
    data = resp.json()
    print(f"Registered: {uid}{' (admin)' if admin else ''}")
    print(f"API Key:    {data['api_key']}")


def list_users(url: str) -> None:
    """List all registered identities."""
    resp = _request("GET", f"{url}/admin/users")
    _handle_error(resp)
    users = resp.json()
    if not users:
        print("No registered users.")
        return
    print(f"{'UID':<20} {'NAME':<24} ADMIN")
    print("-" * 50)
    for user in users:
        print(f"{user['uid']:<20} {user['name']:<24} {'yes' if user['admin'] else 'no'}")


def set_admin(url: str, uid: str, admin: bool) -> None:
    """Grant or revoke the admin claim."""
    resp = _request("PUT", f"{url}/admin/users/{uid}/claims", json={"admin": admin})
    _handle_error(resp)
    print(f"{uid}: admin claim {'granted' if admin else 'revoked'}")


def rotate_user_token(url: str, uid: str) -> None:
    """Rotate the API key for an identity (invalidates old key)."""
    resp = _request("POST", f"{url}/admin/users/{uid}/rotate-token")
    _handle_error(resp)
    data = resp.json()
    print(f"Rotated:     {data['uid']}")
    print(f"New API Key: {data['api_key']}")


def delete_user(url: str, uid: str) -> None:
    """Delete an identity and its API key."""
    resp = _request("DELETE", f"{url}/admin/users/{uid}")
    _handle_error(resp)
    print(resp.json()["message"])


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Manage Era Genética Server identities",
    )

    url_kwargs = dict(
        default=DEFAULT_URL,
        help=f"Server URL (default: {DEFAULT_URL}, or set ERA_GENETICA_URL env var)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    create_parser = subparsers.add_parser("create", help="Register a new user")
    create_parser.add_argument("--uid", required=True, help="Unique uid for the user")
    create_parser.add_argument("--name", required=True, help="Display name for the user")
    create_parser.add_argument("--admin", action="store_true", help="Grant the admin claim")
    create_parser.add_argument("--url", **url_kwargs)

    list_parser = subparsers.add_parser("list", help="List all registered users")
    list_parser.add_argument("--url", **url_kwargs)

    admin_parser = subparsers.add_parser("set-admin", help="Grant or revoke the admin claim")
    admin_parser.add_argument("--uid", required=True, help="uid to update")
    toggle = admin_parser.add_mutually_exclusive_group(required=True)
    toggle.add_argument("--on", dest="admin", action="store_true", help="Grant the claim")
    toggle.add_argument("--off", dest="admin", action="store_false", help="Revoke the claim")
    admin_parser.add_argument("--url", **url_kwargs)

    rotate_parser = subparsers.add_parser("rotate", help="Rotate API key (invalidates old key)")
    rotate_parser.add_argument("--uid", required=True, help="uid to rotate")
    rotate_parser.add_argument("--url", **url_kwargs)

    delete_parser = subparsers.add_parser("delete", help="Delete a user and their API key")
    delete_parser.add_argument("--uid", required=True, help="uid to delete")
    delete_parser.add_argument("--url", **url_kwargs)

    args = parser.parse_args()

    if args.command == "create":
        create_user(args.url, args.uid, args.name, args.admin)
    elif args.command == "list":
        list_users(args.url)
    elif args.command == "set-admin":
        set_admin(args.url, args.uid, args.admin)
    elif args.command == "rotate":
        rotate_user_token(args.url, args.uid)
    elif args.command == "delete":
        delete_user(args.url, args.uid)


if __name__ == "__main__":
    main()
