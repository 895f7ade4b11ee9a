"""SharePoint DocSync - Mirror SharePoint document metadata per organization."""

import configparser
import os
from pathlib import Path
from typing import Any

from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException
from werkzeug.middleware.proxy_fix import ProxyFix

from sharepoint_docsync.db import close_db, init_db_command

# Environment variables that override [sharepoint] credentials from config.ini
CREDENTIAL_ENV_VARS = (
    "SHAREPOINT_TENANT_ID",
    "SHAREPOINT_CLIENT_ID",
    "SHAREPOINT_CLIENT_SECRET",
)


def create_app(test_config: dict[str, Any] | None = None) -> Flask:
    """Application factory for SharePoint DocSync."""
    # Project root: use SHAREPOINT_DOCSYNC_ROOT env var, or CWD, or relative to __file__
    if "SHAREPOINT_DOCSYNC_ROOT" in os.environ:
        project_root = Path(os.environ["SHAREPOINT_DOCSYNC_ROOT"])
    else:
        # Running from a source checkout when src/sharepoint_docsync sits beside __file__
        source_root = Path(__file__).parent.parent.parent
        if (source_root / "src" / "sharepoint_docsync" / "__init__.py").exists():
            project_root = source_root
        else:
            # Installed as package, use current working directory
            project_root = Path.cwd()
    instance_path = project_root / "instance"

    app = Flask(
        __name__,
        instance_path=str(instance_path),
        instance_relative_config=True,
    )

    # Default configuration
    app.config.from_mapping(
        SECRET_KEY="dev",
        DATABASE_PATH=str(instance_path / "sharepoint_docsync.sqlite3"),
        HOST="0.0.0.0",
        PORT=5001,
        DEV_HOST="127.0.0.1",
        DEV_PORT=5001,
        API_TOKEN="",
        # SharePoint defaults
        SHAREPOINT_TENANT_ID="",
        SHAREPOINT_CLIENT_ID="",
        SHAREPOINT_CLIENT_SECRET="",
        # Sync defaults
        SYNC_REQUEST_TIMEOUT=30,
        SYNC_PATH_RETRY_DELAY=1.0,
        SYNC_WORKER_INTERVAL=60,
        SYNC_DEFAULT_INTERVAL_MINUTES=5,
    )

    if test_config is None:
        # Load config.ini if it exists
        config_path = instance_path / "config.ini"
        if not config_path.exists():
            config_path = project_root / "config.ini"

        if config_path.exists():
            config = configparser.ConfigParser()
            config.read(config_path)

            if config.has_section("server"):
                if config.has_option("server", "SECRET_KEY"):
                    app.config["SECRET_KEY"] = config.get("server", "SECRET_KEY")
                if config.has_option("server", "DEBUG"):
                    app.config["DEBUG"] = config.getboolean("server", "DEBUG")
                if config.has_option("server", "HOST"):
                    app.config["HOST"] = config.get("server", "HOST")
                if config.has_option("server", "PORT"):
                    app.config["PORT"] = config.getint("server", "PORT")
                if config.has_option("server", "DEV_HOST"):
                    app.config["DEV_HOST"] = config.get("server", "DEV_HOST")
                if config.has_option("server", "DEV_PORT"):
                    app.config["DEV_PORT"] = config.getint("server", "DEV_PORT")

            if config.has_section("database"):
                if config.has_option("database", "PATH"):
                    db_path = config.get("database", "PATH")
                    if not os.path.isabs(db_path):
                        db_path = str(project_root / db_path)
                    app.config["DATABASE_PATH"] = db_path

            if config.has_section("api"):
                app.config["API_TOKEN"] = config.get("api", "TOKEN", fallback="")

            if config.has_section("sharepoint"):
                app.config["SHAREPOINT_TENANT_ID"] = config.get(
                    "sharepoint", "TENANT_ID", fallback=""
                )
                app.config["SHAREPOINT_CLIENT_ID"] = config.get(
                    "sharepoint", "CLIENT_ID", fallback=""
                )
                app.config["SHAREPOINT_CLIENT_SECRET"] = config.get(
                    "sharepoint", "CLIENT_SECRET", fallback=""
                )

            if config.has_section("sync"):
                app.config["SYNC_REQUEST_TIMEOUT"] = config.getint(
                    "sync", "REQUEST_TIMEOUT", fallback=30
                )
                app.config["SYNC_PATH_RETRY_DELAY"] = config.getfloat(
                    "sync", "PATH_RETRY_DELAY", fallback=1.0
                )
                app.config["SYNC_WORKER_INTERVAL"] = config.getint(
                    "sync", "WORKER_INTERVAL", fallback=60
                )
                app.config["SYNC_DEFAULT_INTERVAL_MINUTES"] = config.getint(
                    "sync", "DEFAULT_INTERVAL_MINUTES", fallback=5
                )

            # Proxy settings - enable when running behind reverse proxy (Caddy, nginx)
            if config.has_section("proxy"):
                x_for = config.getint("proxy", "X_FORWARDED_FOR", fallback=1)
                x_proto = config.getint("proxy", "X_FORWARDED_PROTO", fallback=1)
                x_host = config.getint("proxy", "X_FORWARDED_HOST", fallback=1)
                x_prefix = config.getint("proxy", "X_FORWARDED_PREFIX", fallback=0)
                app.wsgi_app = ProxyFix(  # type: ignore[assignment]
                    app.wsgi_app,
                    x_for=x_for,
                    x_proto=x_proto,
                    x_host=x_host,
                    x_prefix=x_prefix,
                )

        # Secrets from the environment win over the config file
        for name in CREDENTIAL_ENV_VARS:
            if os.environ.get(name):
                app.config[name] = os.environ[name]
    else:
        app.config.from_mapping(test_config)

    # Validate configuration
    if app.config["SYNC_PATH_RETRY_DELAY"] < 0:
        raise ValueError("Configuration error: PATH_RETRY_DELAY must not be negative.")

    # Ensure directories exist
    Path(app.config["DATABASE_PATH"]).parent.mkdir(parents=True, exist_ok=True)

    # Register database teardown and CLI command
    app.teardown_appcontext(close_db)
    app.cli.add_command(init_db_command)

    @app.errorhandler(HTTPException)
    def http_error(e: HTTPException):
        """Render HTTP errors as JSON."""
        return jsonify({"success": False, "error": e.description}), e.code

    # Register CLI commands
    from sharepoint_docsync.cli import register_cli_commands

    register_cli_commands(app)

    # Register blueprints
    from sharepoint_docsync.blueprints import actions, documents, sync

    app.register_blueprint(actions.bp)
    app.register_blueprint(documents.bp)
    app.register_blueprint(sync.bp)

    @app.route("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    return app
