"""Analyzers for language package manager lock files, archives and binaries."""

from __future__ import annotations

import io
import posixpath
import stat
from collections.abc import Callable, Mapping
from typing import Any, BinaryIO

from imgscan.analyzer import AnalysisResult, AnalysisTarget, AnalyzerType, Library
from imgscan.library import analyze as analyze_libraries
from imgscan.library import to_analysis_result

_VERSION = 1

Parser = Callable[[BinaryIO], list[Library]]
JarParser = Callable[..., list[Library]]

_JAR_EXTENSIONS = (".jar", ".war", ".ear")

# analyzer type -> (lock file names, error message prefix)
_LOCKFILES: dict[str, tuple[tuple[str, ...], str]] = {
    AnalyzerType.BUNDLER: (("Gemfile.lock",), "unable to parse Gemfile.lock"),
    AnalyzerType.CARGO: (("Cargo.lock",), "error with Cargo.lock"),
    AnalyzerType.COMPOSER: (("composer.lock",), "error with composer.lock"),
    AnalyzerType.GO_MOD: (("go.sum",), "failed to analyze {file_path}"),
    AnalyzerType.NPM: (("package-lock.json",), "unable to parse package-lock.json"),
    AnalyzerType.NUGET: (("packages.lock.json",), "unable to parse packages.lock.json"),
    AnalyzerType.PIPENV: (("Pipfile.lock",), "unable to parse Pipfile.lock"),
    AnalyzerType.POETRY: (("poetry.lock",), "unable to parse poetry.lock"),
    AnalyzerType.YARN: (("yarn.lock",), "unable to parse yarn.lock"),
}


def _ext(path: str) -> str:
    base = posixpath.basename(path)
    dot = base.rfind(".")
    return base[dot:] if dot >= 0 else ""


class LockfileAnalyzer:
    """Finds libraries in a lock file recognised by its file name.

    ``error_label`` prefixes parse errors and may contain ``{file_path}``.
    """

    version = _VERSION

    def __init__(self, analyzer_type, app_type, file_names, parse: Parser, error_label) -> None:
        self.type = analyzer_type
        self.app_type = str(app_type)
        self.file_names = tuple(file_names)
        self.parse = parse
        self.error_label = error_label

    def analyze(self, target: AnalysisTarget) -> AnalysisResult | None:
        try:
            return analyze_libraries(self.app_type, target.file_path, target.content, self.parse)
        except ValueError as exc:
            label = self.error_label.format(file_path=target.file_path)
            raise ValueError(f"{label}: {exc}") from exc

    def required(self, file_path: str, info: Any) -> bool:
        return posixpath.basename(file_path) in self.file_names


class JarAnalyzer:
    """Finds Java libraries in jar, war and ear archives."""

    type = AnalyzerType.JAR
    version = _VERSION

    def __init__(self, parse: JarParser) -> None:
        self.parse = parse

    def analyze(self, target: AnalysisTarget) -> AnalysisResult:
        try:
            libs = self.parse(io.BytesIO(target.content), file_path=target.file_path)
        except Exception as exc:
            raise ValueError(f"jar/war/ear parse error: {exc}") from exc
        return to_analysis_result(str(AnalyzerType.JAR), target.file_path, libs or [])

    def required(self, file_path: str, info: Any) -> bool:
        return _ext(file_path).lower() in _JAR_EXTENSIONS


class GoBinaryAnalyzer:
    """Finds the modules compiled into executable Go binaries."""

    type = AnalyzerType.GO_BINARY
    version = _VERSION

    def __init__(self, parse: Parser) -> None:
        self.parse = parse

    def analyze(self, target: AnalysisTarget) -> AnalysisResult | None:
        try:
            return analyze_libraries(
                str(AnalyzerType.GO_BINARY), target.file_path, target.content, self.parse
            )
        except ValueError as exc:
            raise ValueError(f"unable to parse {target.file_path}: {exc}") from exc

    def required(self, file_path: str, info: Any) -> bool:
        return bool(stat.S_IMODE(info.st_mode) & 0o111)


def library_analyzers(parsers: Mapping[str, Callable[..., list[Library]]]) -> list[Any]:
    """Build one analyzer for each analyzer type given a parser."""
    built: list[Any] = []
    for analyzer_type, parse in parsers.items():
        key = str(analyzer_type)
        if key == AnalyzerType.JAR:
            built.append(JarAnalyzer(parse))
        elif key == AnalyzerType.GO_BINARY:
            built.append(GoBinaryAnalyzer(parse))
        elif key in _LOCKFILES:
            file_names, label = _LOCKFILES[key]
            kind = AnalyzerType(key)
            built.append(LockfileAnalyzer(kind, kind, file_names, parse, label))
        else:
            raise ValueError(f"no library analyzer for type: {key}")
    return built