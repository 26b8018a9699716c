import os
import tomllib
from dataclasses import dataclass, fields
from typing import Any

from scrutin.voting.models import DEFAULT_GENESIS_DESCRIPTION


@dataclass
class ElectionConfig:
    # Description of the placeholder proposal 0 created when proposals open
    genesis_description: str = DEFAULT_GENESIS_DESCRIPTION
    # When set, enrollment outside RegisteringVoters is rejected with InvalidPhase
    restrict_enrollment_to_registration: bool = False
    log_level: str = "INFO"

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> "ElectionConfig":
        """Build a config from a ``[scrutin]`` table, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})


def load_scrutin_toml(path: str | None = None) -> dict[str, Any]:
    """Load a ``scrutin.toml`` configuration file.

    Searches (in order):
    1. The explicit ``path`` argument.
    2. ``$SCRUTIN_CONFIG`` environment variable.
    3. ``scrutin.toml`` in the current working directory.

    Returns an empty dict if no file is found.

    The TOML file can contain a ``[scrutin]`` section with any of the
    following keys (all optional):

    .. code-block:: toml

        [scrutin]
        genesis_description = "GENESIS"
        restrict_enrollment_to_registration = false
        log_level = "INFO"

    Environment variables prefixed with ``SCRUTIN_`` override TOML values (e.g.
    ``SCRUTIN_LOG_LEVEL=DEBUG``).
    """
    candidates = [
        path,
        os.getenv("SCRUTIN_CONFIG"),
        "scrutin.toml",
    ]
    for candidate in candidates:
        if candidate and os.path.exists(candidate):
            with open(candidate, "rb") as fh:
                data = tomllib.load(fh)
            result: dict[str, Any] = data.get("scrutin", {})
            _apply_env_overrides(result)
            return result

    result = {}
    _apply_env_overrides(result)
    return result


def _apply_env_overrides(cfg: dict[str, Any]) -> None:
    """Apply ``SCRUTIN_*`` environment variables on top of cfg dict (in-place)."""
    _BOOL_KEYS = {
        "restrict_enrollment_to_registration",
    }

    for env_key, env_val in os.environ.items():
        if not env_key.startswith("SCRUTIN_"):
            continue
        cfg_key = env_key[len("SCRUTIN_"):].lower()
        if cfg_key == "config":
            continue
        if cfg_key in _BOOL_KEYS:
            cfg[cfg_key] = env_val.lower() in ("1", "true", "yes")
        else:
            cfg[cfg_key] = env_val
