"""WSGI entrypoint for the recipebox service.

The Flask development server is intentionally not started from this module so
that deployments rely on a WSGI server such as Gunicorn
(``gunicorn -b :8080 main:app``). Local development can still use
``flask --app main run --port 8080`` which imports the ``app`` object defined
below.
"""

import logging
import os

from recipebox import create_app

logging.basicConfig(
    level=os.environ.get("RECIPEBOX_LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = create_app()


__all__ = ["app"]
