import logging
import os

import click
from dotenv import load_dotenv
from flask import Flask, jsonify
from flask_migrate import Migrate
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

from database import db

load_dotenv()

# Initialize Flask app
app = Flask(__name__)
app.config["SQLALCHEMY_DATABASE_URI"] = os.environ.get("DATABASE_URL", "sqlite:///tasks.db")
app.config["SECRET_KEY"] = os.environ.get("SECRET_KEY", "dev-secret-key")

db.init_app(app)

# Models import should be after initializing db
from models.area import Area
from models.project import Project
from models.section import TaskSection
from models.tag import Tag
from models.task import Task

from routes.areas import areas_bp
from routes.ordering import ordering_bp
from routes.projects import projects_bp
from routes.sections import sections_bp
from routes.tags import tags_bp
from routes.tasks import tasks_bp
from services.ordering import SCOPE_FIELDS
from services.order_service import renumber_all

# Create flask command lines to update the db based on the model
# Useage:
# Create a migration script in ./migrations/versions
# > flask db migrate -m "Update comments"
# Run the update
# > flask db upgrade
migrate = Migrate(app, db)
app.register_blueprint(areas_bp)
app.register_blueprint(projects_bp)
app.register_blueprint(sections_bp)
app.register_blueprint(tasks_bp)
app.register_blueprint(tags_bp)
app.register_blueprint(ordering_bp)


@app.errorhandler(HTTPException)
def handle_http_error(error):
    """Every error leaves the API as JSON, including routing failures."""
    return jsonify({"success": False, "message": error.description}), error.code


@app.route("/")
def home():
    return jsonify(
        {
            "name": "tasks-api",
            "collections": ["/areas", "/projects", "/task-sections", "/tasks", "/tags"],
        }
    )


@app.cli.command("renumber-orders")
@click.option(
    "--kind",
    "kinds",
    multiple=True,
    type=click.Choice(sorted(SCOPE_FIELDS)),
    help="Only renumber these item kinds (default: all).",
)
def renumber_orders(kinds):
    """Respace every list to even gaps, keeping the current sequence."""
    for kind in kinds or sorted(SCOPE_FIELDS):
        try:
            changed = renumber_all(kind)
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            logging.exception("Unable to renumber %s orders", kind)
            raise click.ClickException(f"Renumbering {kind} orders failed.")
        click.echo(f"{kind}: {changed} order values updated")


# Application Execution
# ------------------------------
if __name__ == "__main__":
    logging.basicConfig(level=os.environ.get("LOG_LEVEL", "INFO"))
    app.run(debug=True)
