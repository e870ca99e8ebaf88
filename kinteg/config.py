"""Configuration discovery and loading for kinteg.

Two files drive a run: the topic list (``.kinteg.conf``, line oriented) and
optional tool settings (``.kinteg.yml``). Both are discovered through the same
ordered candidate list: working tree, home directory, system default.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence

import yaml

from .errors import KintegError
from .models import TopicEntry

TOPICS_FILENAME = ".kinteg.conf"
SETTINGS_FILENAME = ".kinteg.yml"
SYSTEM_CONFIG_DIR = Path("/etc")

ENV_REPORT_URL_KEYS = ("KINTEG_REPORT_URL",)
ENV_TEST_CONFIG_KEYS = ("KINTEG_TEST_CONFIG",)


class ConfigError(KintegError):
    """Raised when a configuration file cannot be parsed."""


class ConfigNotFoundError(ConfigError):
    """Raised when none of the candidate configuration paths exist."""

    def __init__(self, candidates: Sequence[Path]) -> None:
        searched = ", ".join(str(path) for path in candidates) or "(no candidates)"
        super().__init__(f"No configuration file found; searched: {searched}")
        self.candidates = list(candidates)


@dataclass
class BaselineConfig:
    """The shared upstream every topic branch is based on."""

    remote: str = "origin"
    branch: str = "master"

    @property
    def ref(self) -> str:
        return f"{self.remote}/{self.branch}"


@dataclass
class IntegrationConfig:
    """Reserved local integration branch."""

    branch: str = "integ"


@dataclass
class PublishConfig:
    """Where the finished integration branch is force-pushed."""

    remote: str = "origin"
    branch: str = "integ"


@dataclass
class ReportConfig:
    """Location and layout of published build reports."""

    url_template: Optional[str] = None
    location_field: int = 0
    timeout: float = 60.0


@dataclass
class TestConfig:
    """External test framework entry point."""

    __test__ = False

    command: List[str] = field(default_factory=list)
    config: Optional[Path] = None


@dataclass
class Settings:
    """Represents the tool settings defined in .kinteg.yml."""

    source: Optional[Path] = None
    baseline: BaselineConfig = field(default_factory=BaselineConfig)
    integration: IntegrationConfig = field(default_factory=IntegrationConfig)
    publish: PublishConfig = field(default_factory=PublishConfig)
    report: ReportConfig = field(default_factory=ReportConfig)
    test: TestConfig = field(default_factory=TestConfig)


def default_candidates(repo_root: Path, filename: str = TOPICS_FILENAME) -> List[Path]:
    """Return the fixed-priority search list: working tree, home, system."""
    return [
        repo_root / filename,
        Path.home() / filename,
        SYSTEM_CONFIG_DIR / filename.lstrip("."),
    ]


def locate_config(candidates: Iterable[Path]) -> Path:
    """Return the first candidate that is an existing, readable regular file."""
    searched: List[Path] = []
    for candidate in candidates:
        path = Path(candidate).expanduser()
        searched.append(path)
        if path.is_file() and os.access(path, os.R_OK):
            return path
    raise ConfigNotFoundError(searched)


def significant_lines(text: str) -> Iterable[tuple[int, str]]:
    """Yield ``(line_number, stripped_line)`` skipping blanks and ``#`` comments."""
    for number, raw in enumerate(text.splitlines(), start=1):
        stripped = raw.strip()
        if not stripped or stripped.startswith("#"):
            continue
        yield number, stripped


def parse_topics(text: str, *, source: str = "<topics>") -> List[TopicEntry]:
    """Parse ``<name> <url> <branch>`` lines into topic entries, keeping order."""
    topics: List[TopicEntry] = []
    seen: set[str] = set()
    for number, line in significant_lines(text):
        fields = line.split()
        if len(fields) != 3:
            raise ConfigError(
                f"{source}:{number}: expected '<name> <url> <branch>', got {line!r}"
            )
        name, url, branch = fields
        if name in seen:
            raise ConfigError(f"{source}:{number}: duplicate topic name {name!r}")
        seen.add(name)
        topics.append(TopicEntry(name=name, url=url, branch=branch))
    return topics


def load_topics(path: Path) -> List[TopicEntry]:
    """Load the topic list from disk."""
    text = path.read_text(encoding="utf-8")
    return parse_topics(text, source=str(path))


def load_settings(path: Optional[Path]) -> Settings:
    """Load tool settings; ``None`` yields defaults with environment overrides applied."""
    data: Dict[str, Any] = {}
    if path is not None:
        data = _read_settings(path)

    settings = Settings(source=path)

    baseline_data = _as_dict(data.get("baseline"))
    settings.baseline = BaselineConfig(
        remote=_as_str(baseline_data.get("remote")) or BaselineConfig.remote,
        branch=_as_str(baseline_data.get("branch")) or BaselineConfig.branch,
    )

    integration_data = _as_dict(data.get("integration"))
    settings.integration = IntegrationConfig(
        branch=_as_str(integration_data.get("branch")) or IntegrationConfig.branch,
    )

    publish_data = _as_dict(data.get("publish"))
    settings.publish = PublishConfig(
        remote=_as_str(publish_data.get("remote")) or settings.baseline.remote,
        branch=_as_str(publish_data.get("branch")) or settings.integration.branch,
    )

    report_data = _as_dict(data.get("report"))
    location_field = _checked(report_data, "location_field", _as_int, "report")
    timeout = _checked(report_data, "timeout", _as_float, "report")
    settings.report = ReportConfig(
        url_template=_first_env_value(ENV_REPORT_URL_KEYS)
        or _as_str(report_data.get("url_template")),
        location_field=location_field if location_field is not None else 0,
        timeout=timeout if timeout is not None else ReportConfig.timeout,
    )
    if settings.report.location_field < 0:
        raise ConfigError("report.location_field must not be negative")

    test_data = _as_dict(data.get("test"))
    test_config = _first_env_value(ENV_TEST_CONFIG_KEYS) or _as_str(test_data.get("config"))
    settings.test = TestConfig(
        command=_as_str_list(test_data.get("command")),
        config=Path(test_config).expanduser() if test_config else None,
    )

    return settings


def _read_settings(path: Path) -> Dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ConfigError(f"{path.name} must contain a mapping at the root")
    return loaded


def _checked(section: Dict[str, Any], key: str, convert, section_name: str):
    raw = section.get(key)
    if raw is None:
        return None
    value = convert(raw)
    if value is None:
        raise ConfigError(f"{section_name}.{key} has an invalid value: {raw!r}")
    return value


def _first_env_value(keys: Sequence[str]) -> Optional[str]:
    for key in keys:
        value = os.environ.get(key)
        if value:
            return value
    return None


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float)) and not isinstance(value, bool) else None


def _as_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return None
    return None


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return value.split()
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float))]
    return []


__all__ = [
    "BaselineConfig",
    "ConfigError",
    "ConfigNotFoundError",
    "IntegrationConfig",
    "PublishConfig",
    "ReportConfig",
    "SETTINGS_FILENAME",
    "Settings",
    "TOPICS_FILENAME",
    "TestConfig",
    "default_candidates",
    "load_settings",
    "load_topics",
    "locate_config",
    "parse_topics",
    "significant_lines",
]
