import pytest

from imgscan.analyzer import OS, AnalysisResult, AnalysisTarget, AnalyzeOSError, OSFamily
from imgscan.distro import (
    AlpineAnalyzer,
    AmazonLinuxAnalyzer,
    DebianAnalyzer,
    PhotonAnalyzer,
    SuseAnalyzer,
    UbuntuAnalyzer,
    release_lines,
)

PHOTON_3 = b"""NAME="VMware Photon OS"
VERSION="3.0"
ID=photon
VERSION_ID=3.0
PRETTY_NAME="VMware Photon OS/Linux"
"""

NOT_PHOTON = b"""NAME="Ubuntu"
VERSION="18.04 LTS (Bionic Beaver)"
ID=ubuntu
VERSION_ID="18.04"
"""

OPENSUSE_LEAP_150 = b"""NAME="openSUSE Leap"
VERSION="15.0"
ID="opensuse-leap"
ID_LIKE="suse opensuse"
VERSION_ID="15.0"
PRETTY_NAME="openSUSE Leap 15.0"
"""

OPENSUSE_TUMBLEWEED = b"""NAME="openSUSE Tumbleweed"
ID="opensuse-tumbleweed"
ID_LIKE="opensuse suse"
VERSION_ID="20191204"
PRETTY_NAME="openSUSE Tumbleweed"
"""

SLES_151 = b"""NAME="SLES"
VERSION="15-SP1"
VERSION_ID="15.1"
PRETTY_NAME="SUSE Linux Enterprise Server 15 SP1"
ID="sles"
"""

LSB_RELEASE = b"""DISTRIB_ID=Ubuntu
DISTRIB_RELEASE=18.04
DISTRIB_CODENAME=bionic
DISTRIB_DESCRIPTION="Ubuntu 18.04.2 LTS"
"""


def _target(path, content):
    return AnalysisTarget(file_path=path, content=content)


def test_release_lines_handles_trailing_newline_and_crlf():
    assert release_lines(b"a\r\nb\n") == ["a", "b"]
    assert release_lines(b"") == []
    assert release_lines(b"\n") == [""]


def test_alpine_happy_path():
    got = AlpineAnalyzer().analyze(_target("etc/alpine-release", b"3.11.6\n"))
    assert got == AnalysisResult(os=OS(family=OSFamily.ALPINE, name="3.11.6"))


def test_alpine_empty_raises():
    with pytest.raises(AnalyzeOSError, match="alpine: unable to analyze OS information"):
        AlpineAnalyzer().analyze(_target("etc/alpine-release", b""))


@pytest.mark.parametrize(
    "content,name",
    [
        (b"Amazon Linux AMI release 2018.03", "AMI release 2018.03"),
        (b"Amazon Linux release 2 (Karoo)", "2 (Karoo)"),
    ],
)
def test_amazon_happy(content, name):
    got = AmazonLinuxAnalyzer().analyze(_target("etc/system-release", content))
    assert got == AnalysisResult(os=OS(family=OSFamily.AMAZON, name=name))


@pytest.mark.parametrize("content", [b"Amazon Linux release 2", b"foo bar"])
def test_amazon_sad(content):
    with pytest.raises(AnalyzeOSError, match="unable to analyze OS information"):
        AmazonLinuxAnalyzer().analyze(_target("etc/system-release", content))


@pytest.mark.parametrize(
    "content,name", [(b"9.8\n", "9.8"), (b"buster/sid\n", "buster/sid")]
)
def test_debian_happy(content, name):
    got = DebianAnalyzer().analyze(_target("etc/debian_version", content))
    assert got == AnalysisResult(os=OS(family=OSFamily.DEBIAN, name=name))


def test_debian_empty():
    with pytest.raises(AnalyzeOSError) as exc:
        DebianAnalyzer().analyze(_target("etc/debian_version", b""))
    assert "debian: unable to analyze OS information" in str(exc.value)


def test_photon_happy():
    got = PhotonAnalyzer().analyze(_target("etc/os-release", PHOTON_3))
    assert got == AnalysisResult(os=OS(family=OSFamily.PHOTON, name="3.0"))


def test_photon_sad():
    with pytest.raises(AnalyzeOSError, match="photon: unable to analyze OS information"):
        PhotonAnalyzer().analyze(_target("etc/os-release", NOT_PHOTON))


@pytest.mark.parametrize(
    "content,family,name",
    [
        (OPENSUSE_LEAP_150, OSFamily.OPENSUSE_LEAP, "15.0"),
        (OPENSUSE_TUMBLEWEED, OSFamily.OPENSUSE_TUMBLEWEED, "20191204"),
        (SLES_151, OSFamily.SLES, "15.1"),
    ],
)
def test_suse_happy(content, family, name):
    got = SuseAnalyzer().analyze(_target("etc/lsb-release", content))
    assert got == AnalysisResult(os=OS(family=family, name=name))


def test_suse_sad():
    with pytest.raises(AnalyzeOSError, match="suse: unable to analyze OS information"):
        SuseAnalyzer().analyze(_target("etc/lsb-release", NOT_PHOTON))


def test_ubuntu_happy():
    got = UbuntuAnalyzer().analyze(_target("etc/lsb-release", LSB_RELEASE))
    assert got == AnalysisResult(os=OS(family="ubuntu", name="18.04"))


def test_ubuntu_sad():
    with pytest.raises(AnalyzeOSError, match="ubuntu: unable to analyze OS information"):
        UbuntuAnalyzer().analyze(_target("etc/lsb-release", b"invalid\n"))


@pytest.mark.parametrize(
    "path,want", [("etc/lsb-release", True), ("etc/invalid", False)]
)
def test_ubuntu_required(path, want):
    assert UbuntuAnalyzer().required(path, None) is want


@pytest.mark.parametrize(
    "analyzer,path,want",
    [
        (AlpineAnalyzer(), "etc/alpine-release", True),
        (AlpineAnalyzer(), "/etc/alpine-release", False),
        (AmazonLinuxAnalyzer(), "etc/system-release", True),
        (DebianAnalyzer(), "etc/debian_version", True),
        (DebianAnalyzer(), "etc/os-release", False),
        (PhotonAnalyzer(), "usr/lib/os-release", True),
        (PhotonAnalyzer(), "etc/os-release", True),
        (SuseAnalyzer(), "etc/os-release", True),
        (SuseAnalyzer(), "etc/lsb-release", False),
    ],
)
def test_required(analyzer, path, want):
    assert analyzer.required(path, None) is want


@pytest.mark.parametrize(
    "analyzer,type_name",
    [
        (AlpineAnalyzer(), "alpine"),
        (AmazonLinuxAnalyzer(), "amazon"),
        (DebianAnalyzer(), "debian"),
        (PhotonAnalyzer(), "photon"),
        (SuseAnalyzer(), "suse"),
        (UbuntuAnalyzer(), "ubuntu"),
    ],
)
def test_type_and_version(analyzer, type_name):
    assert analyzer.type == type_name
    assert analyzer.version == 1