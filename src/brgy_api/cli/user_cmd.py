"""User account CLI commands.

Used to bootstrap administrator accounts and to recover access without the
email-based reset flow.
"""

import asyncio
import uuid

import typer

user_app = typer.Typer()


@user_app.command("create")
def create_user(
    email: str = typer.Option(..., prompt=True, help="Email address"),
    password: str = typer.Option(..., prompt=True, hide_input=True, confirmation_prompt=True, help="Password"),
    role: str = typer.Option("admin", prompt=True, help="User role (resident/staff/admin)"),
    name: str | None = typer.Option(None, help="Full name"),
    mobile_number: str | None = typer.Option(None, help="Mobile number (09XXXXXXXXX or +639XXXXXXXXX)"),
    if_not_exists: bool = typer.Option(
        False,
        "--if-not-exists",
        help="Exit successfully if the email is already registered (idempotent mode)",
    ),
) -> None:
    """Create a user account."""
    raw = {"email": email, "password": password, "role": role, "name": name, "mobile_number": mobile_number}
    asyncio.run(_create_user(raw, if_not_exists=if_not_exists))


async def _create_user(raw: dict, *, if_not_exists: bool = False) -> None:
    """Async implementation of user creation."""
    from brgy_api.core.config import get_settings
    from brgy_api.core.database import Database
    from brgy_api.core.security import PasswordHasher
    from brgy_api.models.user import User
    from brgy_api.schemas.auth import RegisterRequest
    from brgy_api.schemas.validation import validate_payload
    from brgy_api.services.user_store import DuplicateEmailError, UserStore

    request = validate_payload(RegisterRequest, raw)
    if isinstance(request, list):
        for error in request:
            typer.echo(f"Error: {error.field}: {error.message}", err=True)
        raise typer.Exit(code=1)

    settings = get_settings()
    database = Database(settings.database_url, schema=settings.database_schema)
    try:
        async with database.session() as session:
            user = User(
                id=uuid.uuid4(),
                name=request.name,
                email=request.email,
                hashed_password=PasswordHasher().hash(request.password),
                mobile_number=request.mobile_number,
                role=request.role,
            )
            try:
                user = await UserStore(session).insert(user)
            except DuplicateEmailError as e:
                if if_not_exists:
                    typer.echo(f"User '{request.email}' already exists, skipping (--if-not-exists)")
                    return
                typer.echo(f"Error: {e}", err=True)
                raise typer.Exit(code=1) from e
            typer.echo(f"User '{user.email}' created with role '{user.role}'")
    finally:
        await database.dispose()


@user_app.command("list")
def list_users(
    page: int = typer.Option(1, min=1, help="Page number"),
    page_size: int = typer.Option(50, min=1, max=500, help="Users per page"),
) -> None:
    """List user accounts."""
    asyncio.run(_list_users(page, page_size))


async def _list_users(page: int, page_size: int) -> None:
    """Async implementation of user listing."""
    from brgy_api.core.config import get_settings
    from brgy_api.core.database import Database
    from brgy_api.core.security import PasswordHasher
    from brgy_api.lib.storage import LocalDocumentStorage
    from brgy_api.services.admin_service import AdminService
    from brgy_api.services.otp_store import OtpStore
    from brgy_api.services.user_store import UserStore

    settings = get_settings()
    database = Database(settings.database_url, schema=settings.database_schema)
    try:
        async with database.session() as session:
            service = AdminService(
                UserStore(session), OtpStore(session), PasswordHasher(), LocalDocumentStorage(settings.upload_dir)
            )
            users, total = await service.list_users(page, page_size)
            typer.echo(f"{'Email':<35} {'Name':<25} {'Role':<10} {'Mobile':<15}")
            typer.echo("-" * 88)
            for user in users:
                typer.echo(f"{user.email:<35} {user.name or '':<25} {user.role:<10} {user.mobile_number or '':<15}")
            typer.echo(f"\nTotal: {total}")
    finally:
        await database.dispose()


@user_app.command("set-password")
def set_password(
    email: str = typer.Option(..., prompt=True, help="Email address"),
    password: str = typer.Option(..., prompt=True, hide_input=True, confirmation_prompt=True, help="New password"),
) -> None:
    """Set a new password for an existing account."""
    asyncio.run(_set_password(email, password))


async def _set_password(email: str, password: str) -> None:
    """Async implementation of password reset."""
    from brgy_api.core.config import get_settings
    from brgy_api.core.database import Database
    from brgy_api.core.security import PasswordHasher
    from brgy_api.schemas.auth import MIN_PASSWORD_LENGTH
    from brgy_api.services.user_store import UserStore

    if len(password) < MIN_PASSWORD_LENGTH:
        typer.echo(f"Error: password must be at least {MIN_PASSWORD_LENGTH} characters", err=True)
        raise typer.Exit(code=1)

    settings = get_settings()
    database = Database(settings.database_url, schema=settings.database_schema)
    try:
        async with database.session() as session:
            store = UserStore(session)
            user = await store.find_by_email(email)
            if user is None:
                typer.echo(f"Error: no user with email '{email}'", err=True)
                raise typer.Exit(code=1)
            await store.update(user.id, {"hashed_password": PasswordHasher().hash(password)})
            typer.echo(f"Password updated for '{user.email}'")
    finally:
        await database.dispose()
