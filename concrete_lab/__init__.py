"""Application factory for the concrete compression entry service."""
import logging
import os

from flask import Flask, jsonify
from config import config

from .extensions import db


def create_app(config_name='default'):
    """Create and configure the Flask application.

    Parameters
    ----------
    config_name : str
        Configuration name: 'development', 'production', 'testing'

    Returns
    -------
    Flask
        Configured Flask application instance
    """
    app = Flask(__name__)
    app.config.from_object(config[config_name])
    app.logger.setLevel(getattr(logging, str(app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO))

    # Ensure instance folder exists
    os.makedirs(app.instance_path, exist_ok=True)

    # Initialize extensions
    db.init_app(app)

    # Health check endpoint
    @app.route('/health')
    def health():
        return jsonify({'status': 'ok', 'app': 'concrete_lab'})

    # Import models for db.create_all()
    from . import models  # noqa: F401

    # Register blueprints
    from .compression import compression_bp
    app.register_blueprint(compression_bp, url_prefix='/compression')

    # Create database tables
    with app.app_context():
        db.create_all()

    from .compression.session import init_form_session
    init_form_session(app)

    return app
