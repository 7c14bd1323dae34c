from typing import Iterable, List, Optional

import semver


def is_valid_version(version: Optional[str]) -> bool:
    """True for a full semantic version such as ``1.2.3`` or ``2.0.0-beta.1``."""
    if not isinstance(version, str):
        return False
    return semver.Version.is_valid(version)


def sort_versions(versions: Iterable[str]) -> List[str]:
    """Valid versions, newest first. Anything semver cannot parse is dropped."""
    parsed = [semver.Version.parse(v) for v in versions if is_valid_version(v)]
    parsed.sort(reverse=True)
    return [str(v) for v in parsed]
