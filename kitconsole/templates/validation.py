"""
Validation of the URL path a new page will be created at.

Error codes are shared with the console UI, which maps them to messages:
``missing``, ``singleSlash``, ``endsWithSlash``, ``multipleSlashes``,
``invalid`` and ``exists``.
"""

from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import BaseModel

INVALID_CHARACTERS = frozenset("!$&'()*+,;=:?#[]@.% ")


class PathErrorType(str, Enum):
    EXISTS = "exists"
    MISSING = "missing"
    SINGLE_SLASH = "singleSlash"
    ENDS_WITH_SLASH = "endsWithSlash"
    MULTIPLE_SLASHES = "multipleSlashes"
    INVALID = "invalid"


ERROR_MESSAGES = {
    PathErrorType.EXISTS: "Path already exists",
    PathErrorType.MISSING: "Enter a path",
    PathErrorType.SINGLE_SLASH: "Path must not be a single forward slash (/)",
    PathErrorType.ENDS_WITH_SLASH: "Path must not end in a forward slash (/)",
    PathErrorType.MULTIPLE_SLASHES: "Path must not include a slash followed by another slash (//)",
    PathErrorType.INVALID: "Path must not include !$&'()*+,;=:?#[]@.% or space",
}


class PathValidation(BaseModel):
    valid: bool
    path: Optional[str] = None
    error_type: Optional[PathErrorType] = None
    message: Optional[str] = None


def normalize_path(chosen_url: Optional[str]) -> str:
    if not chosen_url:
        return ""
    return chosen_url if chosen_url.startswith("/") else f"/{chosen_url}"


def find_path_error(path: str, views_dir: Optional[Path] = None) -> Optional[PathErrorType]:
    if not path:
        return PathErrorType.MISSING
    if path == "/":
        return PathErrorType.SINGLE_SLASH
    if path.endswith("/"):
        return PathErrorType.ENDS_WITH_SLASH
    if "//" in path:
        return PathErrorType.MULTIPLE_SLASHES
    if any(char in INVALID_CHARACTERS for char in path):
        return PathErrorType.INVALID
    if views_dir is not None and view_file(views_dir, path).exists():
        return PathErrorType.EXISTS
    return None


def view_file(views_dir: Path, path: str) -> Path:
    """``/account/start`` -> ``<views_dir>/account/start.html``"""
    return Path(views_dir) / f"{path.lstrip('/')}.html"


def validate_install_path(chosen_url: Optional[str], views_dir: Optional[Path] = None) -> PathValidation:
    path = normalize_path(chosen_url)
    error_type = find_path_error(path, views_dir)
    if error_type is None:
        return PathValidation(valid=True, path=path)
    return PathValidation(
        valid=False,
        path=path or None,
        error_type=error_type,
        message=ERROR_MESSAGES[error_type],
    )
