"""
Short link derivation.

Short paths are the record id with a configured prefix and no padding,
eg r12, r3435. Unlike generated codes they need no uniqueness check and
no store lookup: the same id always yields the same path.
"""

from reconciler_app.config import ReconcilerConfig


def derive_short_path(prefix: str, resource_id: int) -> str:
    """prefix + id, eg ("r", 42) -> "r42" """
    return f"{prefix}{resource_id}"


def derive_short_url(base_url: str, short_path: str) -> str:
    """base_url + "/" + short_path"""
    return f"{base_url}/{short_path}"


class LinkDeriver:
    """Derivation bound to the base URL and prefix of a run"""

    def __init__(self, base_url: str, prefix: str):
        self.base_url = base_url
        self.prefix = prefix

    @classmethod
    def from_config(cls, config: ReconcilerConfig) -> "LinkDeriver":
        return cls(base_url=config.base_url, prefix=config.prefix)

    def short_path(self, resource_id: int) -> str:
        return derive_short_path(self.prefix, resource_id)

    def short_url(self, resource_id: int) -> str:
        return derive_short_url(self.base_url, self.short_path(resource_id))
