"""Registration of every built-in analyzer."""

from __future__ import annotations

from collections.abc import Callable, Mapping

from imgscan.analyzer import Library, register_analyzer, register_config_analyzer
from imgscan.apkcommand import AlpineCommandAnalyzer
from imgscan.distro import (
    AlpineAnalyzer,
    AmazonLinuxAnalyzer,
    DebianAnalyzer,
    PhotonAnalyzer,
    SuseAnalyzer,
    UbuntuAnalyzer,
)
from imgscan.libraries import library_analyzers
from imgscan.redhat import CentOSAnalyzer, FedoraAnalyzer, OracleAnalyzer, RedHatAnalyzer


def register_all(parsers: Mapping[str, Callable[..., list[Library]]] | None = None) -> None:
    """Register the OS analyzers, the apk command analyzer and library analyzers.

    Library analyzers are registered for the analyzer types that ``parsers``
    gives a parse function for.
    """
    for os_analyzer in (
        AlpineAnalyzer(),
        AmazonLinuxAnalyzer(),
        DebianAnalyzer(),
        PhotonAnalyzer(),
        RedHatAnalyzer(),
        CentOSAnalyzer(),
        FedoraAnalyzer(),
        OracleAnalyzer(),
        SuseAnalyzer(),
        UbuntuAnalyzer(),
    ):
        register_analyzer(os_analyzer)
    for lib_analyzer in library_analyzers(parsers or {}):
        register_analyzer(lib_analyzer)
    register_config_analyzer(AlpineCommandAnalyzer())