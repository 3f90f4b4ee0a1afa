"""
Configuration loading and resolution.

Settings resolve with precedence CLI args > config file > preset >
defaults. The result is an AnalysisOptions object, the pre-resolved
parameters the runner and history loader accept.
"""

import json
import logging
import os
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

import yaml

from repo_vitals.errors import ConfigError, ValidationError
from repo_vitals.registry import all_metrics, categories

logger = logging.getLogger(__name__)

CONFIG_FILE_NAMES = [
    ".repo-vitals.yaml",
    ".repo-vitals.yml",
    ".repo-vitals.json",
]

PRESETS: Dict[str, Dict[str, Any]] = {
    "standard": {
        "categories": ["commit_activity", "code_churn", "reliability", "flow"],
        "exclude_bots": False,
        "include_merge_commits": True,
    },
    "quick": {
        "metrics": ["commits_per_developer", "commit_frequency", "file_churn"],
        "since": "30d",
    },
    "activity": {"categories": ["commit_activity"]},
    "churn": {"categories": ["code_churn"], "exclude_bots": True},
    "flow": {"categories": ["flow"], "since": "90d"},
    "full": {
        "categories": ["commit_activity", "code_churn", "reliability", "flow"],
        "since": "all",
    },
}


def load_config_file(config_path: str) -> Dict[str, Any]:
    """
    Load configuration from a YAML or JSON file.

    Raises:
        FileNotFoundError: if the file does not exist
        ConfigError: on an unsupported extension or a non-mapping document
    """
    if not os.path.exists(config_path):
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    file_ext = os.path.splitext(config_path)[1].lower()

    with open(config_path, "r", encoding="utf-8") as f:
        if file_ext in [".yaml", ".yml"]:
            data = yaml.safe_load(f)
        elif file_ext == ".json":
            data = json.load(f)
        else:
            raise ConfigError(f"Unsupported config file format: {file_ext}")

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Configuration must be a mapping: {config_path}")
    return data


def find_config_file(repo_path: str) -> Optional[str]:
    """
    Auto-discover a configuration file in the repository or current directory.
    Searches for: .repo-vitals.yaml, .repo-vitals.yml, .repo-vitals.json
    """
    for search_dir in (repo_path, os.getcwd()):
        if not search_dir:
            continue
        for config_name in CONFIG_FILE_NAMES:
            config_path = os.path.join(search_dir, config_name)
            if os.path.exists(config_path):
                return config_path
    return None


def _as_list(value: Any) -> List[str]:
    """Accept a list or a comma-separated string"""
    if value is None:
        return []
    if isinstance(value, str):
        return [item.strip() for item in value.split(",") if item.strip()]
    return [str(item).strip() for item in value if str(item).strip()]


@dataclass
class AnalysisOptions:
    """Pre-resolved analysis parameters"""

    since: Optional[str] = None
    until: Optional[str] = None
    contributors: List[str] = field(default_factory=list)
    exclude_bots: bool = False
    include_merge_commits: bool = True
    metrics: List[str] = field(default_factory=list)
    categories: List[str] = field(default_factory=list)
    exclude_metrics: List[str] = field(default_factory=list)

    def __post_init__(self):
        unknown = [name for name in self.categories if name not in categories()]
        if unknown:
            raise ValidationError(f"Unknown categories: {', '.join(unknown)}")

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def filters_used(self) -> Dict[str, Any]:
        """The options that change which records a metric sees"""
        return {
            "contributors": list(self.contributors),
            "exclude_bots": self.exclude_bots,
            "include_merge_commits": self.include_merge_commits,
        }


class ConfigResolver:
    """
    Resolve configuration with precedence: CLI > Config File > Preset > Defaults
    """

    def __init__(
        self,
        cli_args: Dict[str, Any],
        config_path: Optional[str] = None,
        preset_name: Optional[str] = None,
        repo_path: Optional[str] = None,
    ):
        self.cli = {
            k.replace("-", "_"): v for k, v in cli_args.items() if v is not None
        }
        self.config = {}
        self.config_path = config_path

        if config_path:
            self.config = load_config_file(config_path)
        else:
            auto_path = find_config_file(repo_path) if repo_path else None
            if auto_path:
                try:
                    self.config = load_config_file(auto_path)
                    self.config_path = auto_path
                    logger.info("Auto-discovered configuration: %s", auto_path)
                except (ConfigError, ValueError, yaml.YAMLError) as e:
                    logger.warning("Found config file but failed to load: %s", e)

        # Normalize config keys (kebab-case to snake_case)
        self.config = {k.replace("-", "_"): v for k, v in self.config.items()}

        # CLI preset overrides config preset
        self.preset_name = preset_name or self.config.get("preset")
        self.preset = self._get_preset(self.preset_name)

    @staticmethod
    def _get_preset(name: Optional[str]) -> Dict[str, Any]:
        """Return configuration dictionary for a named preset"""
        if not name:
            return {}
        if name not in PRESETS:
            raise ConfigError(
                f"Unknown preset '{name}'. Available: {', '.join(PRESETS)}"
            )
        return PRESETS[name]

    def get(self, key: str, default: Any = None) -> Any:
        """Resolve value based on precedence"""
        if key in self.cli:
            return self.cli[key]
        if key in self.config:
            return self.config[key]
        if key in self.preset:
            return self.preset[key]
        return default

    def resolve(self) -> AnalysisOptions:
        """Build AnalysisOptions from the resolved settings"""
        metrics = _as_list(self.get("metrics"))
        unknown = [name for name in metrics if name not in all_metrics()]
        if unknown:
            logger.warning("Unknown metrics requested: %s", ", ".join(unknown))

        return AnalysisOptions(
            since=self.get("since"),
            until=self.get("until"),
            contributors=_as_list(self.get("contributors")),
            exclude_bots=bool(self.get("exclude_bots", False)),
            include_merge_commits=bool(self.get("include_merge_commits", True)),
            metrics=metrics,
            categories=_as_list(self.get("categories")),
            exclude_metrics=_as_list(self.get("exclude_metrics")),
        )
