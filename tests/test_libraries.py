import os

import pytest

from imgscan.analyzer import (
    AnalysisResult,
    AnalysisTarget,
    Application,
    AnalyzerType,
    Library,
    LibraryInfo,
)
from imgscan.libraries import (
    GoBinaryAnalyzer,
    JarAnalyzer,
    LockfileAnalyzer,
    library_analyzers,
)

GOMOD_LIBS = [
    Library("example.com/mod/alpha", "0.3.1"),
    Library("example.com/mod/bravo/v2", "2.0.0-20190314233015-f79a8a8ca69d"),
    Library("example.com/mod/charlie", "1.1.0"),
    Library("example.com/mod/delta", "1.0.0"),
    Library("example.com/mod/echo/v2", "2.0.1"),
    Library("example.com/mod/foxtrot", "1.0.0"),
    Library("example.com/mod/golf", "0.1.0"),
    Library("example.com/mod/hotel", "1.7.0"),
    Library("example.com/mod/india", "1.22.5"),
    Library("example.com/mod/juliet", "0.0.0-20200804184101-5ec99f83aff1"),
    Library("example.com/mod/kilo.v1", "0.0.0-20161208181325-20d25e280405"),
    Library("example.com/mod/lima.v2", "2.2.2"),
    Library("example.com/mod/lima.v3", "3.0.0-20200313102051-9f266ea9e77c"),
]

JAR_LIBS = [
    Library("org.glassfish:javax.el", "3.0.0"),
    Library("com.fasterxml.jackson.core:jackson-databind", "2.9.10.6"),
    Library("com.fasterxml.jackson.core:jackson-annotations", "2.9.10"),
    Library("com.fasterxml.jackson.core:jackson-core", "2.9.10"),
    Library("org.slf4j:slf4j-api", "1.7.30"),
    Library("com.cronutils:cron-utils", "9.1.2"),
    Library("org.apache.commons:commons-lang3", "3.11"),
    Library("com.example:web-app", "1.0-SNAPSHOT"),
]

GOBINARY_LIBS = [
    Library("example.com/bin/pep440-version", "v0.0.0-20210121094942-22b2f8951d46"),
    Library("example.com/bin/version", "v0.0.0-20210121072130-637058cfe492"),
    Library("example.com/bin/errors", "v0.0.0-20200804184101-5ec99f83aff1"),
]


def gomod_parse(reader):
    if reader.read() == b"gosum":
        return list(reversed(GOMOD_LIBS))
    return []


def jar_parse(reader, file_path):
    if reader.read() == b"zip":
        return list(JAR_LIBS)
    raise ValueError("zip: not a valid zip file")


def gobinary_parse(reader):
    if reader.read() == b"elf":
        return list(GOBINARY_LIBS)
    raise ValueError("unrecognized executable format")


def gomod_analyzer():
    (a,) = library_analyzers({AnalyzerType.GO_MOD: gomod_parse})
    return a


def test_gomod_analyze_happy_path():
    got = gomod_analyzer().analyze(
        AnalysisTarget(file_path="testdata/gomod_many.sum", content=b"gosum")
    )
    got.applications[0].libraries.sort(key=lambda li: li.library.name)
    want = AnalysisResult(
        applications=[
            Application(
                type="gomod",
                file_path="testdata/gomod_many.sum",
                libraries=[LibraryInfo(lib) for lib in GOMOD_LIBS],
            )
        ]
    )
    assert got == want


def test_gomod_analyze_sad_path_returns_none():
    got = gomod_analyzer().analyze(
        AnalysisTarget(file_path="testdata/invalid.txt", content=b"invalid")
    )
    assert got is None


@pytest.mark.parametrize(
    "file_path, want",
    [("test/go.sum", True), ("a/b/c/d/test.sum", False)],
)
def test_gomod_required(file_path, want):
    assert gomod_analyzer().required(file_path, None) is want


def test_gomod_error_names_file():
    def failing(reader):
        raise ValueError("broken")

    (a,) = library_analyzers({"gomod": failing})
    with pytest.raises(ValueError, match="failed to analyze app/go.sum"):
        a.analyze(AnalysisTarget(file_path="app/go.sum", content=b"x"))


def test_jar_analyze_happy_path():
    got = JarAnalyzer(jar_parse).analyze(
        AnalysisTarget(file_path="testdata/test.war", content=b"zip")
    )
    want = AnalysisResult(
        applications=[
            Application(
                type="jar",
                file_path="testdata/test.war",
                libraries=[LibraryInfo(lib) for lib in JAR_LIBS],
            )
        ]
    )
    assert got == want


def test_jar_analyze_sad_path():
    with pytest.raises(ValueError, match="not a valid zip file"):
        JarAnalyzer(jar_parse).analyze(
            AnalysisTarget(file_path="testdata/test.txt", content=b"text")
        )


def test_jar_parser_receives_file_path():
    seen = []

    def parse(reader, file_path):
        seen.append(file_path)
        return [Library("com.example:core", "1.0")]

    got = JarAnalyzer(parse).analyze(AnalysisTarget(file_path="lib/app.jar", content=b""))
    assert seen == ["lib/app.jar"]
    assert got == AnalysisResult(
        applications=[
            Application(
                type="jar",
                file_path="lib/app.jar",
                libraries=[LibraryInfo(Library("com.example:core", "1.0"))],
            )
        ]
    )


@pytest.mark.parametrize(
    "file_path, want",
    [
        ("test/test.war", True),
        ("test.jar", True),
        ("a/b/c/d/test.ear", True),
        ("a/b/c/d/test.JAR", True),
        ("test.zip", False),
    ],
)
def test_jar_required(file_path, want):
    assert JarAnalyzer(jar_parse).required(file_path, None) is want


def test_gobinary_analyze_happy_path():
    got = GoBinaryAnalyzer(gobinary_parse).analyze(
        AnalysisTarget(file_path="testdata/executable_gobinary", content=b"elf")
    )
    want = AnalysisResult(
        applications=[
            Application(
                type="gobinary",
                file_path="testdata/executable_gobinary",
                libraries=[LibraryInfo(lib) for lib in GOBINARY_LIBS],
            )
        ]
    )
    assert got == want


def test_gobinary_analyze_sad_path():
    with pytest.raises(ValueError, match="unrecognized executable format"):
        GoBinaryAnalyzer(gobinary_parse).analyze(
            AnalysisTarget(file_path="testdata/executable_bash", content=b"#!/bin/bash")
        )


@pytest.mark.parametrize("mode, want", [(0o755, True), (0o644, False)])
def test_gobinary_required(tmp_path, mode, want):
    path = tmp_path / f"{mode:o}"
    path.write_bytes(b"")
    os.chmod(path, mode)
    assert GoBinaryAnalyzer(gobinary_parse).required(str(path), os.stat(path)) is want


def test_lockfile_analyzer_wraps_errors():
    def failing(reader):
        raise ValueError("bad lock")

    a = LockfileAnalyzer(
        AnalyzerType.BUNDLER, AnalyzerType.BUNDLER, ("Gemfile.lock",), failing,
        "unable to parse Gemfile.lock",
    )
    with pytest.raises(ValueError, match="unable to parse Gemfile.lock") as info:
        a.analyze(AnalysisTarget(file_path="app/Gemfile.lock", content=b"x"))
    assert "bad lock" in str(info.value)


@pytest.mark.parametrize(
    "analyzer_type, file_name",
    [
        ("bundler", "Gemfile.lock"),
        ("cargo", "Cargo.lock"),
        ("composer", "composer.lock"),
        ("npm", "package-lock.json"),
        ("nuget", "packages.lock.json"),
        ("pipenv", "Pipfile.lock"),
        ("poetry", "poetry.lock"),
        ("yarn", "yarn.lock"),
    ],
)
def test_library_analyzers_required_files(analyzer_type, file_name):
    (a,) = library_analyzers({analyzer_type: gomod_parse})
    assert a.type == analyzer_type
    assert a.required(f"app/{file_name}", None) is True
    assert a.required("app/other.lock", None) is False


def test_library_analyzers_application_type():
    (a,) = library_analyzers({"bundler": lambda r: [Library("rails", "5.0.0")]})
    got = a.analyze(AnalysisTarget(file_path="app/Gemfile.lock", content=b""))
    assert got.applications[0].type == "bundler"
    assert got.applications[0].libraries == [LibraryInfo(Library("rails", "5.0.0"))]


def test_library_analyzers_unknown_type():
    with pytest.raises(ValueError, match="no library analyzer"):
        library_analyzers({"unknown": gomod_parse})