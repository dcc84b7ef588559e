"""
Job Portal Session Client Entry Point.

Bootstraps the dependency graph via constructor injection, initialises
the local SQLite schema, restores any persisted session and runs one
command against it.  Every subsystem is wired here; no module-level
globals.

Usage::

    python main.py status
    python main.py login alice@acmecorp.io
    python main.py request-otp alice@acmecorp.io
    python main.py otp-login alice@acmecorp.io 123456
    python main.py signup "Alice Doe" alice@acmecorp.io --role employer --company "Acme Corp"
    python main.py guard /employer/jobs
    python main.py logout --forget
"""

from __future__ import annotations

import argparse
import asyncio
import atexit
import getpass
import sys
from typing import Optional, Sequence

from jobportal.config import get_config
from jobportal.container import ServiceContainer, create_services
from jobportal.database import LocalDatabase
from jobportal.errors import AuthError
from jobportal.logger import StructuredLogger, get_logger
from jobportal.models.enums import UserRole
from jobportal.schema import initialize_schema


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="jobportal",
        description="Manage the job portal client session.",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("status", help="Restore the stored session and show it.")

    login = commands.add_parser("login", help="Sign in with email and password.")
    login.add_argument("email")
    login.add_argument("--password", help="Prompted for when omitted.")
    login.add_argument("--remember-me", action="store_true")

    request_otp = commands.add_parser("request-otp", help="Email a one-time sign-in code.")
    request_otp.add_argument("email")

    otp_login = commands.add_parser("otp-login", help="Sign in with a one-time code.")
    otp_login.add_argument("email")
    otp_login.add_argument("code")

    signup = commands.add_parser("signup", help="Register a new account.")
    signup.add_argument("name")
    signup.add_argument("email")
    signup.add_argument(
        "--role",
        choices=[UserRole.EMPLOYEE.value, UserRole.EMPLOYER.value],
        default=UserRole.EMPLOYEE.value,
    )
    signup.add_argument("--password", help="Prompted for when omitted.")
    signup.add_argument("--company", help="Company name (employers).")
    signup.add_argument("--phone")
    signup.add_argument("--skills", help="Comma-separated skills (employees).")
    signup.add_argument("--remember-me", action="store_true")

    logout = commands.add_parser("logout", help="Sign out and forget the stored session.")
    logout.add_argument(
        "--forget", action="store_true",
        help="Also delete cached company names.",
    )

    guard = commands.add_parser("guard", help="Show what the route guard decides for a path.")
    guard.add_argument("path")

    return parser


def _describe(services: ServiceContainer) -> str:
    session = services["session"]
    user = session.user
    if user is None:
        suffix = " (session expired)" if session.session_expired else ""
        return f"state={session.state}{suffix}"
    company = f" company={user.company_name!r}" if user.company_name else ""
    return f"state={session.state} user={user.email} role={user.role}{company}"


async def _run(args: argparse.Namespace, services: ServiceContainer) -> int:
    session = services["session"]
    try:
        await session.initialize()

        match args.command:
            case "status":
                pass
            case "login":
                password = args.password or getpass.getpass("Password: ")
                if not await session.login(args.email, password, args.remember_me):
                    print("Login failed: the server returned an incomplete response.",
                          file=sys.stderr)
                    return 1
            case "request-otp":
                if not await session.request_otp(args.email):
                    print("The server did not confirm the code was sent.", file=sys.stderr)
                    return 1
                print(f"A sign-in code was sent to {args.email}.")
                return 0
            case "otp-login":
                if not await session.login_with_otp(args.email, args.code):
                    print("OTP verification failed. Please try again.", file=sys.stderr)
                    return 1
            case "signup":
                password = args.password or getpass.getpass("Password: ")
                extra: dict[str, Optional[str]] = {
                    "companyName": args.company,
                    "phone": args.phone,
                    "skills": args.skills,
                }
                if not await session.signup(
                    args.name, args.email, password, args.role,
                    additional_data=extra, remember_me=args.remember_me,
                ):
                    print("Registration failed: the server returned an incomplete response.",
                          file=sys.stderr)
                    return 1
            case "logout":
                await session.logout()
                if args.forget:
                    services["credential_store"].purge()
            case "guard":
                decision = services["route_guard"].check(args.path)
                target = f" -> {decision.redirect_to}" if decision.redirect_to else ""
                print(f"{decision.action}{target}")
                return 0

        print(_describe(services))
        return 0
    except AuthError as exc:
        print(exc.user_message, file=sys.stderr)
        return 1
    finally:
        await session.dispose()


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Application entry point: wire dependencies and run one command."""
    args = _build_parser().parse_args(argv)
    logger: StructuredLogger = get_logger("jobportal.main")

    # ------------------------------------------------------------------
    # 1. Configuration (from .env / environment variables)
    # ------------------------------------------------------------------
    config = get_config()

    # ------------------------------------------------------------------
    # 2. Local database + schema (idempotent)
    # ------------------------------------------------------------------
    db = LocalDatabase(
        sqlite_path=config.CREDENTIAL_DB_PATH,
        logger=get_logger("jobportal.database"),
    )
    atexit.register(db.close)
    initialize_schema(db.sqlite, get_logger("jobportal.schema"))

    # ------------------------------------------------------------------
    # 3. Services (single composition root)
    # ------------------------------------------------------------------
    services = create_services(db=db, config=config)

    # ------------------------------------------------------------------
    # 4. Run the command
    # ------------------------------------------------------------------
    try:
        return asyncio.run(_run(args, services))
    finally:
        db.close()
        logger.debug("Session client shut down.")


if __name__ == "__main__":
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        sys.exit(130)
