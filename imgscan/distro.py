"""Operating system detection from distribution release files."""

from __future__ import annotations

from typing import Any

from imgscan.analyzer import (
    OS,
    AnalysisResult,
    AnalysisTarget,
    AnalyzeOSError,
    AnalyzerType,
    OSFamily,
)


def release_lines(content: bytes) -> list[str]:
    """Split file content into lines the way a line scanner reads them."""
    text = content.decode("utf-8", errors="replace")
    if not text:
        return []
    lines = text.split("\n")
    if lines[-1] == "":
        lines.pop()
    return [line.removesuffix("\r") for line in lines]


class ReleaseFileAnalyzer:
    """Base for analyzers that look at a fixed set of release files."""

    type: str = ""
    version: int = 1
    required_files: tuple[str, ...] = ()

    def required(self, file_path: str, info: Any) -> bool:
        return file_path in self.required_files


def _result(family: str, name: str) -> AnalysisResult:
    return AnalysisResult(os=OS(family=family, name=name))


class AlpineAnalyzer(ReleaseFileAnalyzer):
    """Reads the Alpine version from etc/alpine-release."""

    type = AnalyzerType.ALPINE
    required_files = ("etc/alpine-release",)

    def analyze(self, target: AnalysisTarget) -> AnalysisResult:
        for line in release_lines(target.content):
            return _result(OSFamily.ALPINE, line)
        raise AnalyzeOSError("alpine")

    def required(self, file_path: str, info: Any) -> bool:
        return super().required(file_path, info)


class AmazonLinuxAnalyzer(ReleaseFileAnalyzer):
    """Reads the Amazon Linux release from etc/system-release."""

    type = AnalyzerType.AMAZON
    required_files = ("etc/system-release",)

    def analyze(self, target: AnalysisTarget) -> AnalysisResult:
        for line in release_lines(target.content):
            fields = line.split()
            if line.startswith("Amazon Linux release 2"):
                if len(fields) < 5:
                    continue
                return _result(OSFamily.AMAZON, f"{fields[3]} {fields[4]}")
            if line.startswith("Amazon Linux"):
                return _result(OSFamily.AMAZON, " ".join(fields[2:]))
        raise AnalyzeOSError("amazon")

    def required(self, file_path: str, info: Any) -> bool:
        return super().required(file_path, info)


class DebianAnalyzer(ReleaseFileAnalyzer):
    """Reads the Debian version from etc/debian_version."""

    type = AnalyzerType.DEBIAN
    required_files = ("etc/debian_version",)

    def analyze(self, target: AnalysisTarget) -> AnalysisResult:
        for line in release_lines(target.content):
            return _result(OSFamily.DEBIAN, line)
        raise AnalyzeOSError("debian")

    def required(self, file_path: str, info: Any) -> bool:
        return super().required(file_path, info)


class PhotonAnalyzer(ReleaseFileAnalyzer):
    """Detects VMware Photon OS from os-release."""

    type = AnalyzerType.PHOTON
    required_files = ("usr/lib/os-release", "etc/os-release")

    def analyze(self, target: AnalysisTarget) -> AnalysisResult:
        family = ""
        for line in release_lines(target.content):
            if line.startswith('NAME="VMware Photon'):
                family = OSFamily.PHOTON
                continue
            if family and line.startswith("VERSION_ID="):
                return _result(family, line[11:].strip())
        raise AnalyzeOSError("photon")

    def required(self, file_path: str, info: Any) -> bool:
        return super().required(file_path, info)


class SuseAnalyzer(ReleaseFileAnalyzer):
    """Detects openSUSE and SLES from os-release."""

    type = AnalyzerType.SUSE
    required_files = ("usr/lib/os-release", "etc/os-release")

    def analyze(self, target: AnalysisTarget) -> AnalysisResult:
        family = ""
        for line in release_lines(target.content):
            if line.startswith('NAME="openSUSE'):
                if "Leap" in line:
                    family = OSFamily.OPENSUSE_LEAP
                elif "Tumbleweed" in line:
                    family = OSFamily.OPENSUSE_TUMBLEWEED
                else:
                    family = OSFamily.OPENSUSE
                continue
            if line.startswith('NAME="SLES'):
                family = OSFamily.SLES
                continue
            if family and line.startswith("VERSION_ID="):
                # VERSION_ID="15.0" -> 15.0
                return _result(family, line[12:-1].strip())
        raise AnalyzeOSError("suse")

    def required(self, file_path: str, info: Any) -> bool:
        return super().required(file_path, info)


class UbuntuAnalyzer(ReleaseFileAnalyzer):
    """Reads the Ubuntu release from etc/lsb-release."""

    type = AnalyzerType.UBUNTU
    required_files = ("etc/lsb-release",)

    def analyze(self, target: AnalysisTarget) -> AnalysisResult:
        is_ubuntu = False
        for line in release_lines(target.content):
            if line == "DISTRIB_ID=Ubuntu":
                is_ubuntu = True
                continue
            if is_ubuntu and line.startswith("DISTRIB_RELEASE="):
                return _result(OSFamily.UBUNTU, line[16:].strip())
        raise AnalyzeOSError("ubuntu")

    def required(self, file_path: str, info: Any) -> bool:
        return super().required(file_path, info)