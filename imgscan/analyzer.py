"""Core analysis types, the analyzer registry and the per-file dispatcher."""

from __future__ import annotations

import logging
import stat
import threading
from collections.abc import Callable
from concurrent.futures import Executor, Future
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Protocol

logger = logging.getLogger(__name__)


class AnalyzerType(StrEnum):
    """Identifiers of the built-in analyzers."""

    # OS
    ALPINE = "alpine"
    AMAZON = "amazon"
    DEBIAN = "debian"
    PHOTON = "photon"
    CENTOS = "centos"
    FEDORA = "fedora"
    ORACLE = "oracle"
    REDHAT_BASE = "redhat"
    SUSE = "suse"
    UBUNTU = "ubuntu"

    # OS packages
    APK = "apk"
    DPKG = "dpkg"
    RPM = "rpm"

    # Language packages
    BUNDLER = "bundler"
    CARGO = "cargo"
    COMPOSER = "composer"
    JAR = "jar"
    NPM = "npm"
    NUGET = "nuget"
    PIPENV = "pipenv"
    POETRY = "poetry"
    YARN = "yarn"
    GO_BINARY = "gobinary"
    GO_MOD = "gomod"

    # Image config
    APK_COMMAND = "apk-command"

    # Structured config
    YAML = "yaml"
    TOML = "toml"
    JSON = "json"
    DOCKERFILE = "dockerfile"
    HCL = "hcl"
    TERRAFORM = "terraform"


class OSFamily(StrEnum):
    """Operating system families that can be detected."""

    REDHAT = "redhat"
    DEBIAN = "debian"
    UBUNTU = "ubuntu"
    CENTOS = "centos"
    FEDORA = "fedora"
    AMAZON = "amazon"
    ORACLE = "oracle"
    WINDOWS = "windows"
    OPENSUSE = "opensuse"
    OPENSUSE_LEAP = "opensuse.leap"
    OPENSUSE_TUMBLEWEED = "opensuse.tumbleweed"
    SLES = "suse linux enterprise server"
    PHOTON = "photon"
    ALPINE = "alpine"


class AnalyzeOSError(Exception):
    """Raised when OS information cannot be extracted from a release file."""

    MESSAGE = "unable to analyze OS information"

    def __init__(self, source: str | None = None) -> None:
        self.source = source
        message = f"{source}: {self.MESSAGE}" if source else self.MESSAGE
        super().__init__(message)


@dataclass
class OS:
    family: str
    name: str


@dataclass
class Package:
    name: str
    version: str
    src_name: str = ""
    src_version: str = ""


@dataclass
class PackageInfo:
    file_path: str
    packages: list[Package] = field(default_factory=list)


@dataclass
class Library:
    name: str
    version: str


@dataclass
class LibraryInfo:
    library: Library


@dataclass
class Application:
    type: str
    file_path: str
    libraries: list[LibraryInfo] = field(default_factory=list)


@dataclass
class Config:
    type: str
    file_path: str
    content: Any = None


@dataclass
class AnalysisTarget:
    dir: str = ""
    file_path: str = ""
    content: bytes = b""


@dataclass
class AnalysisResult:
    """What the analyzers found; safe to merge into from several threads."""

    os: OS | None = None
    package_infos: list[PackageInfo] = field(default_factory=list)
    applications: list[Application] = field(default_factory=list)
    configs: list[Config] = field(default_factory=list)
    _lock: threading.Lock = field(
        default_factory=threading.Lock, init=False, repr=False, compare=False
    )

    def is_empty(self) -> bool:
        return (
            self.os is None
            and not self.package_infos
            and not self.applications
            and not self.configs
        )

    def sort(self) -> None:
        """Order everything by path and name so results are reproducible."""
        self.package_infos.sort(key=lambda pi: pi.file_path)
        for info in self.package_infos:
            info.packages.sort(key=lambda p: p.name)
        self.applications.sort(key=lambda app: app.file_path)
        for app in self.applications:
            app.libraries.sort(key=lambda li: (li.library.name, li.library.version))

    def merge(self, new: AnalysisResult | None) -> None:
        if new is None or new.is_empty():
            return
        with self._lock:
            if new.os is not None:
                # Oracle Linux also ships /etc/redhat-release and Ubuntu ships
                # /etc/debian_version, so a more specific OS replaces these.
                if self.os is None or self.os.family in (OSFamily.REDHAT, OSFamily.DEBIAN):
                    self.os = new.os
            self.package_infos.extend(new.package_infos)
            self.applications.extend(new.applications)
            self.configs.extend(new.configs)


class _FileAnalyzer(Protocol):
    type: str
    version: int

    def analyze(self, target: AnalysisTarget) -> AnalysisResult | None: ...

    def required(self, file_path: str, info: Any) -> bool: ...


class _ImageConfigAnalyzer(Protocol):
    type: str
    version: int

    def analyze(self, target_os: OS, config_blob: bytes) -> list[Package] | None: ...

    def required(self, target_os: OS) -> bool: ...


Opener = Callable[[], bytes]

_analyzers: dict[str, _FileAnalyzer] = {}
_config_analyzers: dict[str, _ImageConfigAnalyzer] = {}


def register_analyzer(analyzer: _FileAnalyzer) -> None:
    """Register a file analyzer, replacing any with the same type."""
    _analyzers[str(analyzer.type)] = analyzer


def register_config_analyzer(analyzer: _ImageConfigAnalyzer) -> None:
    """Register an image config analyzer, replacing any with the same type."""
    _config_analyzers[str(analyzer.type)] = analyzer


def check_package(pkg: Package) -> bool:
    """Return True when the package has both a name and a version."""
    return bool(pkg.name) and bool(pkg.version)


def _run_analyzer(driver: _FileAnalyzer, target: AnalysisTarget, result: AnalysisResult) -> None:
    try:
        found = driver.analyze(target)
    except AnalyzeOSError:
        return
    except Exception as exc:  # an analyzer failing must not stop the scan
        logger.debug("Analysis error: %s", exc)
        return
    result.merge(found)


class Analyzer:
    """Dispatches files and image configs to the registered analyzers."""

    def __init__(self, disabled_analyzers=None) -> None:
        self._disabled = {str(t) for t in (disabled_analyzers or ())}
        self._drivers = [a for t, a in _analyzers.items() if t not in self._disabled]
        self._config_drivers = [
            a for t, a in _config_analyzers.items() if t not in self._disabled
        ]

    def analyzer_versions(self) -> dict[str, int]:
        """Versions of all file analyzers, 0 for disabled ones; used in cache keys."""
        return {
            t: 0 if t in self._disabled else a.version for t, a in _analyzers.items()
        }

    def image_config_analyzer_versions(self) -> dict[str, int]:
        """Versions of all image config analyzers, 0 for disabled ones."""
        return {
            t: 0 if t in self._disabled else a.version
            for t, a in _config_analyzers.items()
        }

    def analyze_file(
        self,
        result: AnalysisResult,
        dir: str,
        file_path: str,
        info,
        opener: Opener,
        executor: Executor | None = None,
    ) -> list[Future]:
        """Run every analyzer that wants this file and merge into ``result``.

        With an executor the analyses are submitted to it and their futures
        returned; without one they run before this call returns.
        """
        if stat.S_ISDIR(info.st_mode):
            return []
        futures: list[Future] = []
        # paths taken from tar archives carry no leading slash
        relative = file_path.lstrip("/")
        for driver in self._drivers:
            if not driver.required(relative, info):
                continue
            try:
                content = opener()
            except Exception as exc:
                raise OSError(f"unable to open a file ({file_path}): {exc}") from exc
            target = AnalysisTarget(dir=dir, file_path=file_path, content=content)
            if executor is None:
                _run_analyzer(driver, target, result)
            else:
                futures.append(executor.submit(_run_analyzer, driver, target, result))
        return futures

    def analyze_image_config(self, target_os: OS, config_blob: bytes) -> list[Package] | None:
        """Return packages from the first applicable config analyzer that succeeds."""
        for driver in self._config_drivers:
            if not driver.required(target_os):
                continue
            try:
                return driver.analyze(target_os, config_blob)
            except Exception:
                continue
        return None