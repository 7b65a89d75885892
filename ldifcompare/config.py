"""
Configuration for LDIF Compare

A run is described by a CompareConfig value. Settings come from an optional
YAML file and command-line overrides; validation happens before any work is
scheduled and fails with ConfigurationError.

Example YAML file:

    ignore-attributes: [lastLogon, modifyTimestamp]
    ignore-attribute-prefixes: [ds-]
    match-attribute: employeeNumber,employeeID
    generate-delete: true
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

import yaml

from ldifcompare.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

KNOWN_KEYS = {
    "ignore-attributes",
    "ignore-attribute-prefixes",
    "match-attribute",
    "generate-delete",
    "skip-identical",
    "case-sensitive-values",
    "workers",
}


class MatchKeyPair:
    """Names of the attributes joining left and right records."""

    def __init__(self, left: str, right: Optional[str] = None):
        """
        Args:
            left: Matching attribute in the left snapshot
            right: Matching attribute in the right snapshot (defaults to left)

        Raises:
            ConfigurationError: If a name is empty
        """
        left = (left or "").strip()
        right = left if right is None else right.strip()
        if not left or not right:
            raise ConfigurationError("Matching attribute names must not be empty")
        self.left = left
        self.right = right

    @classmethod
    def parse(cls, value: Union[str, List[str], Dict[str, str]]) -> "MatchKeyPair":
        """
        Build a pair from "left,right", "name", a list of one or two names or
        a {left, right} mapping.
        """
        if isinstance(value, dict):
            left = value.get("left")
            right = value.get("right", left)
            if not isinstance(left, str) or not isinstance(right, str):
                raise ConfigurationError(f"Invalid match-attribute mapping: {value}")
            return cls(left, right)

        if isinstance(value, str):
            names = value.split(",")
        elif isinstance(value, (list, tuple)):
            names = [str(v) for v in value]
        else:
            raise ConfigurationError(f"Invalid match-attribute value: {value!r}")

        if len(names) == 1:
            return cls(names[0])
        if len(names) == 2:
            return cls(names[0], names[1])
        raise ConfigurationError(f"match-attribute takes one or two names, got {len(names)}")

    def __eq__(self, other):
        if not isinstance(other, MatchKeyPair):
            return NotImplemented
        return (self.left, self.right) == (other.left, other.right)

    def __hash__(self):
        return hash((self.left, self.right))

    def __repr__(self):
        return f"MatchKeyPair(left={self.left!r}, right={self.right!r})"


class CompareConfig:
    """Everything a comparison run needs."""

    def __init__(
        self,
        left_path: Union[str, Path],
        right_path: Union[str, Path],
        output_dir: Union[str, Path] = ".",
        ignore_attributes: Optional[Iterable[str]] = None,
        ignore_prefixes: Optional[Iterable[str]] = None,
        match_attributes: Optional[MatchKeyPair] = None,
        generate_delete: bool = False,
        skip_identical: bool = False,
        case_sensitive_values: bool = False,
        workers: Optional[int] = None
    ):
        self.left_path = Path(left_path)
        self.right_path = Path(right_path)
        self.output_dir = Path(output_dir)
        self.ignore_attributes = [a.strip() for a in ignore_attributes or [] if a and a.strip()]
        self.ignore_prefixes = [p.strip() for p in ignore_prefixes or [] if p and p.strip()]
        self.match_attributes = match_attributes
        self.generate_delete = generate_delete
        self.skip_identical = skip_identical
        self.case_sensitive_values = case_sensitive_values
        self.workers = workers if workers is not None else (os.cpu_count() or 1)

    @property
    def uses_identity_key(self) -> bool:
        """True when records are matched on their DN."""
        return self.match_attributes is None

    def validate(self) -> None:
        """
        Check the configuration before any work is scheduled.

        Creates the output directory if it does not exist.

        Raises:
            ConfigurationError: If the configuration cannot be used
        """
        for label, path in (("left", self.left_path), ("right", self.right_path)):
            if not path.is_file():
                raise ConfigurationError(f"The {label} LDIF file does not exist: {path}")

        if self.output_dir.exists() and not self.output_dir.is_dir():
            raise ConfigurationError(f"Output path is not a directory: {self.output_dir}")
        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ConfigurationError(f"Cannot create output directory {self.output_dir}: {e}") from e

        if not isinstance(self.workers, int) or self.workers < 1:
            raise ConfigurationError(f"workers must be a positive integer, got {self.workers!r}")

        if self.match_attributes is not None and not isinstance(self.match_attributes, MatchKeyPair):
            raise ConfigurationError("match_attributes must be a MatchKeyPair")

        if self.generate_delete and self.uses_identity_key:
            logger.warning("generate-delete only applies when matching on attributes; ignoring it")
            self.generate_delete = False

        for name in self.ignore_attributes:
            logger.info(f"Attribute to ignore when comparing: {name}")
        for prefix in self.ignore_prefixes:
            logger.info(f"Attribute prefix to ignore when comparing: {prefix}")

    def to_dict(self) -> Dict[str, Any]:
        """Effective settings, as reported in the run summary."""
        return {
            "left": str(self.left_path),
            "right": str(self.right_path),
            "output_dir": str(self.output_dir),
            "ignore_attributes": list(self.ignore_attributes),
            "ignore_prefixes": list(self.ignore_prefixes),
            "match_attributes": (
                {"left": self.match_attributes.left, "right": self.match_attributes.right}
                if self.match_attributes else None
            ),
            "generate_delete": self.generate_delete,
            "skip_identical": self.skip_identical,
            "case_sensitive_values": self.case_sensitive_values,
            "workers": self.workers,
        }


def _as_name_list(key: str, value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [v.strip() for v in value.split(",") if v.strip()]
    if isinstance(value, (list, tuple)):
        return [str(v).strip() for v in value if str(v).strip()]
    raise ConfigurationError(f"'{key}' must be a list or a comma separated string")


def _as_bool(key: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.lower() in ("true", "yes", "1", "false", "no", "0"):
        return value.lower() in ("true", "yes", "1")
    raise ConfigurationError(f"'{key}' must be a boolean, got {value!r}")


def load_config_file(path: Union[str, Path]) -> Dict[str, Any]:
    """
    Load settings from a YAML file.

    Args:
        path: YAML file

    Returns:
        Dictionary with keys ignore_attributes, ignore_prefixes,
        match_attributes, generate_delete, skip_identical,
        case_sensitive_values and workers (only those present in the file)

    Raises:
        ConfigurationError: If the file cannot be read or holds invalid values
    """
    path = Path(path)
    logger.info(f"Load configuration from: {path}")

    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f)
    except OSError as e:
        raise ConfigurationError(f"Could not load configuration file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in configuration file {path}: {e}") from e

    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigurationError(f"Configuration file {path} must contain a mapping")

    for key in set(raw) - KNOWN_KEYS:
        logger.warning(f"Ignoring unknown configuration key '{key}' in {path}")

    settings: Dict[str, Any] = {}
    if "ignore-attributes" in raw:
        settings["ignore_attributes"] = _as_name_list("ignore-attributes", raw["ignore-attributes"])
    if "ignore-attribute-prefixes" in raw:
        settings["ignore_prefixes"] = _as_name_list(
            "ignore-attribute-prefixes", raw["ignore-attribute-prefixes"]
        )
    if raw.get("match-attribute") is not None:
        settings["match_attributes"] = MatchKeyPair.parse(raw["match-attribute"])
    for key in ("generate-delete", "skip-identical", "case-sensitive-values"):
        if key in raw:
            settings[key.replace("-", "_")] = _as_bool(key, raw[key])
    if "workers" in raw:
        workers = raw["workers"]
        if isinstance(workers, bool) or not isinstance(workers, int) or workers < 1:
            raise ConfigurationError(f"'workers' must be a positive integer, got {workers!r}")
        settings["workers"] = workers

    return settings


def build_config(
    left_path: Union[str, Path],
    right_path: Union[str, Path],
    output_dir: Union[str, Path] = ".",
    config_file: Optional[Union[str, Path]] = None,
    **overrides: Any
) -> CompareConfig:
    """
    Build a CompareConfig from an optional YAML file and explicit overrides.

    Overrides whose value is None are ignored, so unset command-line options
    do not mask values from the file.
    """
    settings = load_config_file(config_file) if config_file else {}
    settings.update({key: value for key, value in overrides.items() if value is not None})

    return CompareConfig(left_path, right_path, output_dir, **settings)
