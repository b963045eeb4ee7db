"""Guesses Alpine packages installed by ``apk add`` commands in image history."""

from __future__ import annotations

import json
import logging
import os
import re
import urllib.request
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from imgscan.analyzer import OS, AnalyzerType, OSFamily, Package

logger = logging.getLogger(__name__)

ENV_INDEX_URL = "IMGSCAN_APK_INDEX_ARCHIVE_URL"
_FILE_SCHEME = "file://"
_ZERO_TIME = datetime(1, 1, 1, tzinfo=timezone.utc)
_FRACTION_RE = re.compile(r"\.(\d+)")


def _field(data: Any, name: str, default: Any) -> Any:
    """Look a key up exactly, then without regard to case."""
    if not isinstance(data, dict):
        return default
    if name in data:
        return data[name]
    lowered = name.lower()
    for key, value in data.items():
        if isinstance(key, str) and key.lower() == lowered:
            return value
    return default


@dataclass
class _Archive:
    origin: str = ""
    versions: dict[str, int] = field(default_factory=dict)
    dependencies: list[str] = field(default_factory=list)
    provides: list[str] = field(default_factory=list)


@dataclass
class _Provider:
    package: str = ""
    versions: dict[str, int] = field(default_factory=dict)


def _provider(data: Any) -> _Provider:
    return _Provider(
        package=_field(data, "Package", "") or "",
        versions=dict(_field(data, "Versions", {}) or {}),
    )


@dataclass
class ApkIndex:
    """History of Alpine package builds and what each package provides."""

    packages: dict[str, _Archive] = field(default_factory=dict)
    provide_so: dict[str, _Provider] = field(default_factory=dict)
    provide_package: dict[str, _Provider] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data) -> ApkIndex:
        packages = {
            name: _Archive(
                origin=_field(entry, "Origin", "") or "",
                versions=dict(_field(entry, "Versions", {}) or {}),
                dependencies=list(_field(entry, "Dependencies", []) or []),
                provides=list(_field(entry, "Provides", []) or []),
            )
            for name, entry in (_field(data, "Package", {}) or {}).items()
        }
        provide = _field(data, "Provide", {}) or {}
        return cls(
            packages=packages,
            provide_so={
                name: _provider(p) for name, p in (_field(provide, "SO", {}) or {}).items()
            },
            provide_package={
                name: _provider(p) for name, p in (_field(provide, "Package", {}) or {}).items()
            },
        )


def _parse_created(value: str | None) -> datetime:
    if not value:
        return _ZERO_TIME
    text = value[:-1] + "+00:00" if value.endswith("Z") else value
    # datetime only carries microseconds
    text = _FRACTION_RE.sub(lambda m: "." + m.group(1)[:6], text, count=1)
    try:
        created = datetime.fromisoformat(text)
    except ValueError as exc:
        raise ValueError(f"invalid history creation time: {value}") from exc
    if created.tzinfo is None:
        created = created.replace(tzinfo=timezone.utc)
    return created


class AlpineCommandAnalyzer:
    """Image config analyzer that reconstructs packages added with ``apk add``.

    ``index_url`` is a template whose ``%s`` is replaced by the Alpine
    minor version; ``file://`` URLs are read from disk.
    """

    type = AnalyzerType.APK_COMMAND
    version = 1

    def __init__(self, index_url=None) -> None:
        self.index_url = os.environ.get(ENV_INDEX_URL) or index_url

    def analyze(self, target_os: OS, config_blob: bytes) -> list[Package]:
        try:
            index = self.fetch_apk_index_archive(target_os)
        except (OSError, ValueError) as exc:
            logger.warning("%s", exc)
            raise ValueError(f"failed to fetch apk index archive: {exc}") from exc
        try:
            config = json.loads(config_blob)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise ValueError(f"failed to unmarshal docker config: {exc}") from exc
        if not isinstance(config, dict):
            raise ValueError("failed to unmarshal docker config: not a JSON object")
        return self.parse_config(index, config)

    def required(self, target_os: OS) -> bool:
        return target_os.family == OSFamily.ALPINE

    def fetch_apk_index_archive(self, target_os: OS) -> ApkIndex:
        if not self.index_url:
            raise ValueError("no APK index archive URL configured")
        # 3.9.3 => 3.9
        os_version = target_os.name
        if os_version.count(".") > 1:
            os_version = os_version[: os_version.rfind(".")]
        url = self.index_url.replace("%s", os_version, 1)

        if url.startswith(_FILE_SCHEME):
            try:
                with open(url.removeprefix(_FILE_SCHEME), "rb") as fh:
                    raw = fh.read()
            except OSError as exc:
                raise OSError(f"failed to read APKINDEX archive file: {exc}") from exc
        else:
            try:
                with urllib.request.urlopen(url) as resp:
                    raw = resp.read()
            except OSError as exc:
                raise OSError(f"failed to fetch APKINDEX archive: {exc}") from exc
        try:
            data = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise ValueError(f"failed to decode APKINDEX JSON: {exc}") from exc
        return ApkIndex.from_dict(data)

    def parse_config(self, apk_index: ApkIndex, config) -> list[Package]:
        """Packages found in the history of a decoded image config."""
        container_config = _field(config, "container_config", {}) or {}
        envs: dict[str, str] = {}
        for env in _field(container_config, "Env", []) or []:
            name, _, value = env.partition("=")
            envs["$" + name] = value

        unique: dict[str, Package] = {}
        for history in _field(config, "history", []) or []:
            created_by = _field(history, "created_by", "") or ""
            created_at = _parse_created(_field(history, "created", None))
            pkgs = self.parse_command(created_by, envs)
            pkgs = self.resolve_dependencies(apk_index, pkgs)
            for pkg in self.guess_version(apk_index, pkgs, created_at):
                unique[pkg.name] = pkg
        return list(unique.values())

    def parse_command(self, command: str, envs) -> list[str]:
        """Package names passed to ``apk add`` in one shell command."""
        if "#(nop)" in command:
            return []
        command = command.removeprefix("/bin/sh -c")
        commands = [
            part.strip() for chain in command.split("&&") for part in chain.split(";")
        ]
        pkgs: list[str] = []
        for cmd in commands:
            if not cmd.startswith("apk"):
                continue
            adding = False
            for word in cmd.split():
                if word.startswith(("-", ".")):
                    continue
                if word == "add":
                    adding = True
                elif adding:
                    if word.startswith("$"):
                        pkgs.extend(envs.get(word, "").split())
                    else:
                        pkgs.append(word)
        return pkgs

    def resolve_dependencies(self, apk_index: ApkIndex, original_pkgs) -> list[str]:
        """The given packages and everything they pull in, without repeats."""
        unique: dict[str, None] = {}
        for name in original_pkgs:
            if name in unique:
                continue
            for resolved in self._resolve_dependency(apk_index, name, set()):
                unique[resolved] = None
        return list(unique)

    def _resolve_dependency(self, apk_index: ApkIndex, name: str, seen: set[str]) -> list[str]:
        archive = apk_index.packages.get(name)
        if archive is None or name in seen:
            return []
        seen.add(name)

        names = [name]
        for dependency in archive.dependencies:
            # sqlite-libs=3.26.0-r3 => sqlite-libs
            dependency = dependency.partition("=")[0]
            if dependency.startswith("so:"):
                provider = apk_index.provide_so.get(dependency[3:], _Provider())
                names.extend(self._resolve_dependency(apk_index, provider.package, seen))
                continue
            if dependency.startswith(("pc:", "cmd:")):
                continue
            provider = apk_index.provide_package.get(dependency)
            if provider is not None:
                names.extend(self._resolve_dependency(apk_index, provider.package, seen))
                continue
            names.extend(self._resolve_dependency(apk_index, dependency, seen))
        return names

    def guess_version(self, apk_index: ApkIndex, original_pkgs, created_at) -> list[Package]:
        """Pick, for each package, the latest version built before ``created_at``."""
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)
        created_unix = int(created_at.timestamp())

        pkgs: list[Package] = []
        for name in original_pkgs:
            archive = apk_index.packages.get(name)
            if archive is None:
                continue
            candidate = ""
            for version, built_at in sorted(archive.versions.items(), key=lambda kv: kv[1]):
                if built_at > created_unix:
                    break
                candidate = version
            if not candidate:
                continue
            pkgs.append(Package(name=name, version=candidate))
            if archive.origin and archive.origin != name:
                pkgs.append(Package(name=archive.origin, version=candidate))
        return pkgs