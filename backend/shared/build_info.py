"""Build metadata reported by the health and status endpoints.

CI sets APP_VERSION and GIT_COMMIT; otherwise the installed distribution
version is used and the commit reads as "dev".
"""

import os
from importlib.metadata import PackageNotFoundError, version


def _installed_version() -> str:
    try:
        return version("tapblitz")
    except PackageNotFoundError:
        return "dev"


APP_VERSION: str = os.environ.get("APP_VERSION") or _installed_version()
GIT_COMMIT: str = os.environ.get("GIT_COMMIT", "dev")
