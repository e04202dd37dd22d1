import os
import logging
from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from dotenv import load_dotenv

from .config import DevConfig, ProdConfig

# Initialize extensions
db = SQLAlchemy()
migrate = Migrate()


def create_app(config_name: str | None = None, overrides: dict | None = None) -> Flask:
    """Application factory with environment based configuration."""
    load_dotenv()

    app = Flask(__name__, instance_relative_config=True)
    os.makedirs(app.instance_path, exist_ok=True)

    # Pick configuration
    env = config_name or os.getenv('ENV') or os.getenv('FLASK_ENV') or 'production'
    cfg_cls = DevConfig if env == 'development' else ProdConfig
    app.config.from_object(cfg_cls)
    if overrides:
        app.config.update(overrides)

    # Initialise logging
    logging.basicConfig(level=logging.DEBUG if app.debug else logging.INFO)

    db.init_app(app)
    migrate.init_app(app, db)

    # Ensure models loaded so tables can be created
    from budgetbuilder import models  # noqa
    from budgetbuilder import realtime  # noqa  registers the change hooks
    with app.app_context():
        db.create_all()

    @app.route('/')
    def index():
        return jsonify(service='budgetbuilder', status='ok')

    from budgetbuilder.errors import register_error_handlers
    register_error_handlers(app)

    from budgetbuilder.budget.routes import bp as budget_bp
    from budgetbuilder.catalog.routes import bp as catalog_bp
    from budgetbuilder.projects.routes import bp as projects_bp
    from budgetbuilder.trash.routes import bp as trash_bp
    from budgetbuilder.cli import budget_cli

    app.register_blueprint(catalog_bp, url_prefix='/catalog')
    app.register_blueprint(projects_bp, url_prefix='/projects')
    app.register_blueprint(budget_bp, url_prefix='/budget')
    app.register_blueprint(trash_bp, url_prefix='/trash')
    app.cli.add_command(budget_cli)

    return app
