"""Three-tier runtime configuration loader.

Configuration priority (highest to lowest):
1. CLI / keyword overrides
2. Environment variables
3. Project config (<sandbox root>/.seeq/runtime.json or runtime.yaml)
4. User config (~/.seeq/runtime.json or runtime.yaml)
5. System defaults (config/defaults/runtime.json)

The project tier lives inside the sandbox root, so the root is settled from
the higher tiers first and the project file is looked up there.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

import yaml

from config.schema import DEFAULT_SANDBOX_ROOT, SeeqSettings

logger = logging.getLogger(__name__)

CONFIG_DIR_NAME = ".seeq"

# env var -> (section, key)
ENV_OVERRIDES: dict[str, tuple[str, str]] = {
    "SEEQ_SANDBOX_ROOT": ("sandbox", "root"),
    "SEEQ_DB_PATH": ("storage", "db_path"),
    "SEEQ_MODEL": ("model", "model"),
    "SEEQ_API_KEY": ("model", "api_key"),
}


class ConfigLoader:
    """Load SeeqSettings from defaults, user, project, env and overrides."""

    def __init__(
        self,
        sandbox_root: str | Path | None = None,
        *,
        home: str | Path | None = None,
        environ: dict[str, str] | None = None,
    ):
        self.sandbox_root = Path(sandbox_root).expanduser() if sandbox_root else None
        self.home = Path(home) if home else Path.home()
        self.environ = os.environ if environ is None else environ
        self._system_defaults_dir = Path(__file__).parent / "defaults"

    def load(self, cli_overrides: dict[str, Any] | None = None) -> SeeqSettings:
        system_config = self._load_system_defaults()
        user_config = self._load_user_config()
        env_config = self._load_env()
        overrides = dict(cli_overrides or {})
        if self.sandbox_root is not None:
            overrides = self._deep_merge(overrides, {"sandbox": {"root": str(self.sandbox_root)}})

        # Settle the root before looking for the project tier inside it
        head = self._deep_merge(system_config, user_config, env_config, overrides)
        root = self._expand_env_vars(head.get("sandbox", {}).get("root") or DEFAULT_SANDBOX_ROOT)
        project_config = self._load_project_config(Path(root))

        final_config = self._deep_merge(system_config, user_config, project_config, env_config, overrides)
        final_config = self._expand_env_vars(final_config)
        final_config = self._remove_none_values(final_config)

        settings = SeeqSettings(**final_config)
        logger.debug("Loaded settings: root=%s db=%s model=%s", settings.sandbox.root, settings.storage.db_path, settings.model.model)
        return settings

    # ── Tiers ──

    def _load_system_defaults(self) -> dict[str, Any]:
        return self._load_file(self._system_defaults_dir / "runtime.json")

    def _load_user_config(self) -> dict[str, Any]:
        return self._load_first(self.home / CONFIG_DIR_NAME)

    def _load_project_config(self, root: Path) -> dict[str, Any]:
        return self._load_first(root.expanduser() / CONFIG_DIR_NAME)

    def _load_env(self) -> dict[str, Any]:
        config: dict[str, Any] = {}
        for var, (section, key) in ENV_OVERRIDES.items():
            value = self.environ.get(var)
            if value:
                config.setdefault(section, {})[key] = value
        return config

    def _load_first(self, config_dir: Path) -> dict[str, Any]:
        for name in ("runtime.json", "runtime.yaml", "runtime.yml"):
            path = config_dir / name
            if path.exists():
                return self._load_file(path)
        return {}

    @staticmethod
    def _load_file(path: Path) -> dict[str, Any]:
        if not path.exists():
            return {}
        try:
            with open(path, encoding="utf-8") as f:
                if path.suffix in (".yaml", ".yml"):
                    data = yaml.safe_load(f)
                else:
                    data = json.load(f)
        except (json.JSONDecodeError, yaml.YAMLError, OSError) as e:
            logger.warning("Ignoring unreadable config file %s: %s", path, e)
            return {}
        return data if isinstance(data, dict) else {}

    # ── Merge helpers ──

    def _deep_merge(self, *dicts: dict[str, Any]) -> dict[str, Any]:
        """Deep merge multiple dictionaries. Later dicts override earlier ones."""
        result: dict[str, Any] = {}
        for d in dicts:
            for key, value in d.items():
                if key not in result:
                    result[key] = value
                elif value is None:
                    continue
                elif isinstance(value, dict) and isinstance(result[key], dict):
                    result[key] = self._deep_merge(result[key], value)
                else:
                    result[key] = value
        return result

    def _expand_env_vars(self, obj: Any) -> Any:
        """Recursively expand ${VAR} and ~ in string values."""
        if isinstance(obj, dict):
            return {k: self._expand_env_vars(v) for k, v in obj.items()}
        if isinstance(obj, list):
            return [self._expand_env_vars(v) for v in obj]
        if isinstance(obj, str):
            return os.path.expandvars(os.path.expanduser(obj))
        return obj

    def _remove_none_values(self, obj: Any) -> Any:
        """Recursively remove None values to allow Pydantic defaults."""
        if isinstance(obj, dict):
            return {k: self._remove_none_values(v) for k, v in obj.items() if v is not None}
        if isinstance(obj, list):
            return [self._remove_none_values(v) for v in obj if v is not None]
        return obj


def load_config(
    sandbox_root: str | Path | None = None,
    cli_overrides: dict[str, Any] | None = None,
) -> SeeqSettings:
    """Convenience function to load runtime configuration."""
    return ConfigLoader(sandbox_root=sandbox_root).load(cli_overrides=cli_overrides)
