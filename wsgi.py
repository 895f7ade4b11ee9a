"""WSGI entry point for SharePoint DocSync.

Serve with any WSGI server (``gunicorn wsgi:app``), or run directly for a
local API: ``python wsgi.py --dev`` binds DEV_HOST/DEV_PORT with debug on.
"""

import logging
import sys

from sharepoint_docsync import create_app

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

app = create_app()

if __name__ == "__main__":
    if "--dev" in sys.argv:
        app.run(debug=True, host=app.config["DEV_HOST"], port=app.config["DEV_PORT"])
    else:
        app.run(
            debug=app.config.get("DEBUG", False),
            host=app.config["HOST"],
            port=app.config["PORT"],
        )
