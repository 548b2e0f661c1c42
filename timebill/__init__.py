# timebill/__init__.py

from flask import Flask

# Import extensions
from .config import Config
from .extensions import db, migrate, login_manager, oauth
# Import models so Flask-Migrate can see them
from .models import User

# Import Blueprints from the routes package
from .routes.main_routes import main
from .routes.auth_routes import auth_bp
from .routes.project_routes import project_bp
from .routes.client_routes import client_bp
from .routes.invoice_routes import invoice_bp
from .routes.time_routes import time_bp


def create_app(config_overrides=None):
    app = Flask(__name__, instance_relative_config=True, template_folder='../templates')

    # --- Load Configuration ---
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    # --- Logging ---
    # app.logger is the 'timebill' logger, so module loggers propagate to it
    app.logger.setLevel(app.config['LOG_LEVEL'])

    # --- Initialize Extensions ---
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    oauth.init_app(app)

    # --- Configure Login Manager ---
    login_manager.login_view = 'auth.login'
    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, int(user_id))

    # --- Configure Google OAuth ---
    oauth.register(
        name='google',
        client_id=app.config['GOOGLE_CLIENT_ID'],
        client_secret=app.config['GOOGLE_CLIENT_SECRET'],
        server_metadata_url='https://accounts.google.com/.well-known/openid-configuration',
        client_kwargs={'scope': 'openid email profile'},
        overwrite=True
    )

    # --- Register Blueprints ---
    app.register_blueprint(main)
    app.register_blueprint(auth_bp)
    app.register_blueprint(project_bp)
    app.register_blueprint(client_bp)
    app.register_blueprint(invoice_bp)
    app.register_blueprint(time_bp)

    @app.cli.command('init-db')
    def init_db():
        """Create all tables without running migrations."""
        db.create_all()
        app.logger.info('Database tables created.')

    return app
