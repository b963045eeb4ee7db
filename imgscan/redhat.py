"""Detection of Red Hat based distributions from their release files."""

from __future__ import annotations

import re
from typing import Any

from imgscan.analyzer import (
    OS,
    AnalysisResult,
    AnalysisTarget,
    AnalyzeOSError,
    AnalyzerType,
    OSFamily,
)
from imgscan.distro import ReleaseFileAnalyzer, release_lines

_RELEASE_RE = re.compile(r"(.*) release (\d[\d.]*)")

_CENTOS_NAMES = ("centos", "centos linux")
_ORACLE_NAMES = ("oracle", "oracle linux", "oracle linux server")
_FEDORA_NAMES = ("fedora", "fedora linux")


def _parse_release_line(line: str, error: str) -> tuple[str, str]:
    """Return the distribution name and version of one release line."""
    match = _RELEASE_RE.search(line.strip())
    if match is None:
        raise ValueError(error)
    return match.group(1), match.group(2)


def _result(family: str, name: str) -> AnalysisResult:
    return AnalysisResult(os=OS(family=family, name=name))


class RedHatAnalyzer(ReleaseFileAnalyzer):
    """Reads etc/redhat-release, which several RHEL derivatives also ship."""

    type = AnalyzerType.REDHAT_BASE
    required_files = ("etc/redhat-release",)

    def analyze(self, target: AnalysisTarget) -> AnalysisResult:
        for line in release_lines(target.content):
            distro, version = _parse_release_line(line, "redhat: invalid redhat-release")
            lowered = distro.lower()
            if lowered in _CENTOS_NAMES:
                return _result(OSFamily.CENTOS, version)
            if lowered in _ORACLE_NAMES:
                return _result(OSFamily.ORACLE, version)
            if lowered in _FEDORA_NAMES:
                return _result(OSFamily.FEDORA, version)
            return _result(OSFamily.REDHAT, version)
        raise AnalyzeOSError("redhatbase")

    def required(self, file_path: str, info: Any) -> bool:
        return super().required(file_path, info)


class CentOSAnalyzer(ReleaseFileAnalyzer):
    """Reads etc/centos-release."""

    type = AnalyzerType.CENTOS
    required_files = ("etc/centos-release",)

    def analyze(self, target: AnalysisTarget) -> AnalysisResult:
        for line in release_lines(target.content):
            distro, version = _parse_release_line(line, "centos: invalid centos-release")
            if distro.lower() in _CENTOS_NAMES:
                return _result(OSFamily.CENTOS, version)
        raise AnalyzeOSError("centos")

    def required(self, file_path: str, info: Any) -> bool:
        return super().required(file_path, info)


class FedoraAnalyzer(ReleaseFileAnalyzer):
    """Reads fedora-release."""

    type = AnalyzerType.FEDORA
    required_files = ("etc/fedora-release", "usr/lib/fedora-release")

    def analyze(self, target: AnalysisTarget) -> AnalysisResult:
        for line in release_lines(target.content):
            distro, version = _parse_release_line(line, "fedora: invalid fedora-release")
            if distro.lower() in _FEDORA_NAMES:
                return _result(OSFamily.FEDORA, version)
        raise AnalyzeOSError("fedora")

    def required(self, file_path: str, info: Any) -> bool:
        return super().required(file_path, info)


class OracleAnalyzer(ReleaseFileAnalyzer):
    """Reads etc/oracle-release."""

    type = AnalyzerType.ORACLE
    required_files = ("etc/oracle-release",)

    def analyze(self, target: AnalysisTarget) -> AnalysisResult:
        for line in release_lines(target.content):
            _, version = _parse_release_line(line, "oracle: invalid oracle-release")
            return _result(OSFamily.ORACLE, version)
        raise AnalyzeOSError("oracle")

    def required(self, file_path: str, info: Any) -> bool:
        return super().required(file_path, info)