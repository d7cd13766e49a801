"""HR platform CLI tool (hrmsctl)."""

import typer

app = typer.Typer(name="hrmsctl", help="HR Management CLI")
db_app = typer.Typer(help="Database management commands")
system_app = typer.Typer(help="System bootstrap commands")
roles_app = typer.Typer(help="Role assignment commands")
app.add_typer(db_app, name="db")
app.add_typer(system_app, name="system")
app.add_typer(roles_app, name="roles")


@db_app.command("create")
def db_create():
    """Create all tables that don't exist yet."""
    from hrms.db.session import create_tables

    create_tables()
    typer.echo("Tables created (or already exist)")


@system_app.command("init")
def system_init(
    email: str = typer.Option(None, help="Super admin email (defaults to settings)"),
):
    """Create the super admin account."""
    from hrms.db.session import SessionLocal
    from hrms.core.exceptions import ResourceConflictError
    from hrms.services.system_service import system_service

    db = SessionLocal()
    try:
        result = system_service.initialize_system(db, email=email)
    except ResourceConflictError as e:
        typer.echo(str(e), err=True)
        raise typer.Exit(code=1)
    finally:
        db.close()
    typer.echo("System initialized")
    typer.echo(f"  Email:    {result['email']}")
    typer.echo(f"  Password: {result['password']}")
    typer.echo("Store these credentials securely and change the password after first login.")


@system_app.command("status")
def system_status():
    """Show initialization state and role distribution."""
    from hrms.db.session import SessionLocal
    from hrms.services.system_service import system_service

    db = SessionLocal()
    try:
        status = system_service.get_system_status(db)
    finally:
        db.close()
    typer.echo(f"Ready: {status['system_ready']}  Users with roles: {status['total_users']}")
    for role_name, count in sorted(status["role_distribution"].items()):
        typer.echo(f"  {role_name}: {count}")


@roles_app.command("hierarchy")
def roles_hierarchy():
    """Print the role catalog, highest authority first."""
    from hrms.core.roles import ROLE_CATALOG

    for role in sorted(ROLE_CATALOG.values(), key=lambda r: r.level, reverse=True):
        typer.echo(f"  [{role.level}] {role.name}: {', '.join(sorted(role.permissions))}")


@roles_app.command("assign")
def roles_assign(
    user_id: str = typer.Argument(..., help="User to receive the role"),
    role_name: str = typer.Argument(..., help="Role name"),
    assigned_by: str = typer.Option(..., "--by", help="User ID performing the assignment"),
):
    """Assign a role, subject to the assigner's authority."""
    from hrms.db.session import SessionLocal
    from hrms.services.role_service import RoleService
    from hrms.services.role_store import RoleStore

    db = SessionLocal()
    try:
        result = RoleService(RoleStore(db)).assign_role(user_id, role_name, assigned_by)
    finally:
        db.close()
    typer.echo(result.message)
    if not result.success:
        raise typer.Exit(code=1)


@roles_app.command("list")
def roles_list(user_id: str = typer.Argument(..., help="User ID")):
    """List every role assignment of a user."""
    from hrms.db.session import SessionLocal
    from hrms.services.role_service import RoleService
    from hrms.services.role_store import RoleStore

    db = SessionLocal()
    try:
        roles = RoleService(RoleStore(db)).get_user_roles(user_id)
    finally:
        db.close()
    for r in roles:
        marker = "*" if r.is_active else " "
        typer.echo(f"{marker} {r.role_name}  assigned {r.assigned_at} by {r.assigned_by or '-'}")


@app.command("serve")
def serve(
    host: str = typer.Option("0.0.0.0", help="Host"),
    port: int = typer.Option(8000, help="Port"),
    reload: bool = typer.Option(True, help="Auto-reload"),
):
    """Start the FastAPI development server."""
    import uvicorn
    uvicorn.run("hrms.main:app", host=host, port=port, reload=reload)


if __name__ == "__main__":
    app()
