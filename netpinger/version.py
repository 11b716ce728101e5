"""Version and build information for netpinger."""

import os
import platform

__version__ = "0.3.0"

SERVICE_NAME = "netpinger"


def get_version_info() -> dict:
    """Get version details for the status endpoints.

    Build date and commit come from APP_BUILD_DATE / APP_GIT_COMMIT, set by
    the container build.
    """
    return {
        "service": SERVICE_NAME,
        "version": __version__,
        "python": platform.python_version(),
        "build_date": os.getenv("APP_BUILD_DATE"),
        "git_commit": os.getenv("APP_GIT_COMMIT"),
    }
