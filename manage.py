from fellowship import create_app
from fellowship.seed import seed_data
from flask.cli import with_appcontext
from flask_migrate import upgrade, migrate, init
import click

app = create_app()


@app.cli.command("db-init")
@with_appcontext
def db_init():
    """Initializes migrations directory"""
    init()


@app.cli.command("db-migrate")
@click.option("-m", "--message", default=None, help="Revision message")
@with_appcontext
def db_migrate(message):
    """Creates a new migration"""
    migrate(message=message)


@app.cli.command("db-upgrade")
@with_appcontext
def db_upgrade():
    """Applies migrations"""
    upgrade()


@app.cli.command("seed")
@with_appcontext
def seed():
    """Creates the admin user and the default classes, groups and sessions"""
    created = seed_data()
    click.echo(f"Seeded: {created}")


if __name__ == "__main__":
    app.run(debug=app.config.get("DEBUG", False))
