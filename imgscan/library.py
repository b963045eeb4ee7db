"""Helpers shared by the language lock file analyzers."""

from __future__ import annotations

import io
from collections.abc import Callable
from typing import BinaryIO

from imgscan.analyzer import AnalysisResult, Application, Library, LibraryInfo

Parser = Callable[[BinaryIO], list[Library]]


def analyze(
    analyzer_type: str, file_path: str, content: bytes, parse: Parser
) -> AnalysisResult | None:
    """Parse ``content`` into libraries; None when the file declares none."""
    try:
        libs = parse(io.BytesIO(content))
    except Exception as exc:
        raise ValueError(f"failed to parse {file_path}: {exc}") from exc
    if not libs:
        return None
    return to_analysis_result(analyzer_type, file_path, libs)


def to_analysis_result(analyzer_type: str, file_path: str, libs) -> AnalysisResult:
    """Wrap libraries found in one file as a single application."""
    app = Application(
        type=analyzer_type,
        file_path=file_path,
        libraries=[LibraryInfo(library=lib) for lib in libs],
    )
    return AnalysisResult(applications=[app])