"""Write the OpenAPI schema of the calibration API, e.g. for generating a frontend client."""

import json
import sys

from fastapi.openapi.utils import get_openapi

from calflow import __version__
from calflow.app.main import app


def main(path="openapi.json"):
    schema = get_openapi(
        title="calflow",
        version=__version__ or app.version,
        openapi_version=app.openapi_version,
        description="Device calibration control and progress",
        routes=app.routes,
    )
    with open(path, "w") as f:
        json.dump(schema, f, indent=2)


if __name__ == "__main__":
    main(*sys.argv[1:2])
