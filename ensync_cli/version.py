"""Build version information, overwritten by release builds."""

from typing import Any

__version__ = "0.1.0"
COMMIT = "none"
BUILD_DATE = "unknown"


def get() -> dict[str, Any]:
    return {
        "version": __version__,
        "commit": COMMIT,
        "buildDate": BUILD_DATE,
    }


def as_text() -> str:
    return f"Version: {__version__}\nCommit: {COMMIT}\nBuild Date: {BUILD_DATE}"
