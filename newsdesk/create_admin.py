"""Bootstrap an admin account from the command line."""

import typer

from newsdesk.db.engine import Base, engine, SessionLocal
from newsdesk.models.user_models import User, ROLE_ADMIN
# Registers the article tables on Base.metadata before create_all
from newsdesk.models import article_models  # noqa: F401
from newsdesk.services.auth_utils import hash_password

app = typer.Typer(
    name="newsdesk-create-admin",
    help="Create (or promote) the newsdesk administrator account",
    add_completion=False,
)


@app.command()
def create_admin(
    email: str = typer.Option(..., prompt=True, help="Admin email address"),
    username: str = typer.Option("admin", help="Admin username"),
    password: str = typer.Option(..., prompt=True, hide_input=True, confirmation_prompt=True),
    first_name: str = typer.Option("Admin", help="First name"),
    last_name: str = typer.Option("User", help="Last name"),
    promote: bool = typer.Option(False, "--promote", help="Promote an existing account to admin"),
):
    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        email = email.strip().lower()
        existing = db.query(User).filter(User.email == email).one_or_none()

        if existing:
            if existing.role == ROLE_ADMIN:
                typer.echo(f"Admin already exists: {existing.email}")
                return
            if not promote:
                typer.echo(
                    f"User {existing.email} exists with role '{existing.role}'. "
                    "Re-run with --promote to make them admin.",
                    err=True,
                )
                raise typer.Exit(code=1)
            existing.role = ROLE_ADMIN
            existing.is_active = True
            db.commit()
            typer.echo(f"Promoted {existing.email} to admin")
            return

        if db.query(User.id).filter(User.username == username).first():
            typer.echo(f"Username '{username}' is already taken", err=True)
            raise typer.Exit(code=1)

        user = User(
            username=username,
            email=email,
            hashed_password=hash_password(password),
            first_name=first_name,
            last_name=last_name,
            role=ROLE_ADMIN,
            is_active=True,
        )
        db.add(user)
        db.commit()
        typer.echo(f"Admin user created: {user.email} (id={user.id})")
    finally:
        db.close()


if __name__ == "__main__":
    app()
