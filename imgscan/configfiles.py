"""Analyzers for structured configuration files (JSON, TOML, YAML, Terraform)."""

from __future__ import annotations

import json
import posixpath
import re
import tomllib
from dataclasses import dataclass, field
from typing import Any

import yaml

from imgscan.analyzer import (
    AnalysisResult,
    AnalysisTarget,
    AnalyzerType,
    Config,
    register_analyzer,
)

_SEPARATOR = ":"
_VERSION = 1

# File types a pattern may be given for. Dockerfile and HCL patterns are
# accepted, but this package has no analyzer for those file types.
_KNOWN_PATTERN_TYPES = frozenset(
    {
        AnalyzerType.DOCKERFILE,
        AnalyzerType.HCL,
        AnalyzerType.JSON,
        AnalyzerType.TOML,
        AnalyzerType.YAML,
    }
)


def _base(path: str) -> str:
    stripped = path.rstrip("/")
    if not stripped:
        return "/" if path else "."
    return stripped.rsplit("/", 1)[-1]


def _ext(path: str) -> str:
    """Extension of the last path element, dot included, or an empty string."""
    last = path.rsplit("/", 1)[-1]
    dot = last.rfind(".")
    return last[dot:] if dot >= 0 else ""


def _compile(pattern: str | re.Pattern[str] | None) -> re.Pattern[str] | None:
    if pattern is None or isinstance(pattern, re.Pattern):
        return pattern
    return re.compile(pattern)


@dataclass
class ScannerOption:
    """Options for scanning configuration files against policies."""

    trace: bool = False
    namespaces: list[str] = field(default_factory=list)
    file_patterns: list[str] = field(default_factory=list)
    policy_paths: list[str] = field(default_factory=list)
    data_paths: list[str] = field(default_factory=list)

    def sort(self) -> None:
        """Sort every list option in place."""
        for values in (self.namespaces, self.file_patterns, self.policy_paths, self.data_paths):
            values.sort()


def register_config_analyzers(file_patterns) -> None:
    """Register the config analyzers, with extra patterns such as ``"yaml:conf_.*"``."""
    patterns: dict[str, re.Pattern[str]] = {}
    for entry in file_patterns:
        file_type, sep, pattern = entry.partition(_SEPARATOR)
        if not sep:
            raise ValueError(f"invalid file pattern ({entry})")
        try:
            regex = re.compile(pattern)
        except re.error as exc:
            raise ValueError(f"invalid file regexp ({entry}): {exc}") from exc
        if file_type not in _KNOWN_PATTERN_TYPES:
            raise ValueError(f"unknown file type: {file_type}, pattern: {pattern}")
        patterns[file_type] = regex

    register_analyzer(JsonConfigAnalyzer(patterns.get(AnalyzerType.JSON)))
    register_analyzer(TerraformConfigAnalyzer())
    register_analyzer(TomlConfigAnalyzer(patterns.get(AnalyzerType.TOML)))
    register_analyzer(YamlConfigAnalyzer(patterns.get(AnalyzerType.YAML)))


class JsonConfigAnalyzer:
    """Parses ``*.json`` files, leaving out package manager lock files."""

    type = AnalyzerType.JSON
    version = _VERSION
    excluded_files = ("package-lock.json", "packages.lock.json")

    def __init__(self, file_pattern=None) -> None:
        self.file_pattern = _compile(file_pattern)

    def analyze(self, target: AnalysisTarget) -> AnalysisResult:
        try:
            parsed = json.loads(target.content)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise ValueError(f"unable to parse JSON ({target.file_path}): {exc}") from exc
        return AnalysisResult(
            configs=[Config(type=AnalyzerType.JSON, file_path=target.file_path, content=parsed)]
        )

    def required(self, file_path: str, info: Any) -> bool:
        if self.file_pattern is not None and self.file_pattern.search(file_path):
            return True
        if _base(file_path) in self.excluded_files:
            return False
        return _ext(file_path) == ".json"


class TomlConfigAnalyzer:
    """Parses ``*.toml`` files."""

    type = AnalyzerType.TOML
    version = _VERSION
    required_exts = (".toml",)

    def __init__(self, file_pattern=None) -> None:
        self.file_pattern = _compile(file_pattern)

    def analyze(self, target: AnalysisTarget) -> AnalysisResult:
        try:
            parsed = tomllib.loads(target.content.decode("utf-8"))
        except (tomllib.TOMLDecodeError, UnicodeDecodeError) as exc:
            raise ValueError(f"unable to parse TOML ({target.file_path}): {exc}") from exc
        return AnalysisResult(
            configs=[Config(type=AnalyzerType.TOML, file_path=target.file_path, content=parsed)]
        )

    def required(self, file_path: str, info: Any) -> bool:
        if self.file_pattern is not None and self.file_pattern.search(file_path):
            return True
        return _ext(file_path) in self.required_exts


class _CircularAnchorError(ValueError):
    def __init__(self, anchor: str) -> None:
        super().__init__(f"yaml: anchor '{anchor}' value contains itself")


def _check_anchors(text: str) -> None:
    """Reject aliases that point into the collection carrying their own anchor."""
    open_anchors: list[str | None] = []
    for event in yaml.parse(text, Loader=yaml.SafeLoader):
        if isinstance(event, (yaml.MappingStartEvent, yaml.SequenceStartEvent)):
            open_anchors.append(event.anchor)
        elif isinstance(event, (yaml.MappingEndEvent, yaml.SequenceEndEvent)):
            open_anchors.pop()
        elif isinstance(event, yaml.AliasEvent) and event.anchor in open_anchors:
            raise _CircularAnchorError(event.anchor)


def _load_documents(content: bytes) -> list[Any]:
    try:
        text = content.decode("utf-8")
        _check_anchors(text)
        return [doc for doc in yaml.safe_load_all(text) if doc is not None]
    except _CircularAnchorError:
        raise
    except (yaml.YAMLError, UnicodeDecodeError) as exc:
        raise ValueError(f"unmarshal yaml: {exc}") from exc


class YamlConfigAnalyzer:
    """Parses ``*.yaml`` and ``*.yml`` files, one config per sub-document."""

    type = AnalyzerType.YAML
    version = _VERSION
    required_exts = (".yaml", ".yml")

    def __init__(self, file_pattern=None) -> None:
        self.file_pattern = _compile(file_pattern)

    def analyze(self, target: AnalysisTarget) -> AnalysisResult:
        try:
            documents = _load_documents(target.content)
        except ValueError as exc:
            raise ValueError(f"unable to parse YAML ({target.file_path}): {exc}") from exc
        return AnalysisResult(
            configs=[
                Config(type=AnalyzerType.YAML, file_path=target.file_path, content=doc)
                for doc in documents
            ]
        )

    def required(self, file_path: str, info: Any) -> bool:
        if self.file_pattern is not None and self.file_pattern.search(file_path):
            return True
        return _ext(file_path) in self.required_exts


class TerraformConfigAnalyzer:
    """Records the paths of Terraform files, relative to the working directory."""

    type = AnalyzerType.TERRAFORM
    version = _VERSION

    def analyze(self, target: AnalysisTarget) -> AnalysisResult:
        joined = "/".join(part for part in (target.dir, target.file_path) if part)
        path = posixpath.normpath(joined) if joined else ""
        return AnalysisResult(configs=[Config(type=AnalyzerType.TERRAFORM, file_path=path)])

    def required(self, file_path: str, info: Any) -> bool:
        return _ext(file_path) == ".tf"