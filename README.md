# imgscan

`imgscan` looks at files taken from a container image or a directory tree and reports what it finds:

- the operating system, from release files: Alpine, Amazon Linux, Debian, Ubuntu, Photon OS, openSUSE and SLES, and the Red Hat family (RHEL, CentOS, Fedora, Oracle Linux);
- application dependencies from lock files (Gemfile.lock, Cargo.lock, composer.lock, go.sum, package-lock.json, packages.lock.json, Pipfile.lock, poetry.lock, yarn.lock), from jar/war/ear archives and from executable Go binaries, using parser functions that you supply;
- structured configuration files: JSON, TOML, YAML (one config for each non-empty document) and Terraform (the file path only);
- Alpine packages installed by `apk add` commands in an image config's build history.

## Installation

```
pip install imgscan
```

To run the tests:

```
pip install "imgscan[test]"
pytest
```

## Usage

Analyzers are kept in a module-level registry. Register them before you build an `Analyzer`, because an `Analyzer` only uses the analyzers that are registered when it is created.

`imgscan.registry.register_all(parsers)` registers these analyzers:

- all the OS analyzers;
- the `AlpineCommandAnalyzer` image-config analyzer;
- a library analyzer for each entry in `parsers`.

```python
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from imgscan.analyzer import AnalysisResult, Analyzer, AnalyzerType
from imgscan.registry import register_all

register_all(parsers={})

analyzer = Analyzer(disabled_analyzers=[AnalyzerType.UBUNTU])
result = AnalysisResult()

path = Path("rootfs/etc/alpine-release")
with ThreadPoolExecutor(max_workers=3) as executor:
    analyzer.analyze_file(
        result,
        "rootfs",
        "/etc/alpine-release",
        path.stat(),
        path.read_bytes,
        executor,
    )

result.sort()
print(result.os.family, result.os.name)  # alpine 3.11.6
```

### `Analyzer.analyze_file`

`Analyzer.analyze_file(result, dir, file_path, info, opener, executor=None)` works like this:

- **Input.** `info` is anything with an `st_mode`, such as an `os.stat_result`. Directories are skipped. The leading `/` is removed from `file_path` before each analyzer decides whether it wants the file.
- **Reading the file.** `opener` is called once for each analyzer that wants the file. If it fails, `analyze_file` raises `OSError`.
- **Running the analyzers.** With an `executor`, each analysis is submitted to it, and the futures are returned. Without one, the analyses run before the call returns.
- **Errors.** If an analyzer raises, the exception is logged at debug level and that analyzer is skipped.
- **Merging.** `AnalysisResult.merge` combines results. It is safe to call from several threads. A detected OS replaces an earlier one only if the earlier one is unset, Red Hat or Debian. This is because Oracle Linux also ships `etc/redhat-release` and Ubuntu also ships `etc/debian_version`.

### Other `Analyzer` methods

- `Analyzer.analyze_image_config(target_os, config_blob)` returns the packages from the first applicable image-config analyzer that succeeds. It returns `None` if none succeeds.
- `Analyzer.analyzer_versions()` and `Analyzer.image_config_analyzer_versions()` return maps from analyzer type to version, for use in cache keys. A disabled analyzer reports version `0`.

`imgscan.analyzer.check_package(pkg)` tells whether a `Package` has both a name and a version.

### Library parsers

`parsers` maps an `AnalyzerType` to a parse function. Each function receives a binary stream and returns a list of `imgscan.analyzer.Library`. Library analyzers exist for these types:

- `bundler`, `cargo`, `composer`, `gomod`, `npm`, `nuget`, `pipenv`, `poetry` and `yarn`. Each one is chosen by the file name of its lock file. A parse error raises `ValueError`. A file that declares no libraries gives `None`.
- `jar`. It is chosen for `.jar`, `.war` and `.ear` files, compared without regard to case. Its parser is also called with a `file_path` keyword argument.
- `gobinary`. It is chosen for any file with an executable permission bit.

`imgscan.libraries.library_analyzers(parsers)` builds these analyzers without registering them. It raises `ValueError` for a type that has no library analyzer. `imgscan.library.analyze` and `imgscan.library.to_analysis_result` are the helpers the analyzers share.

```python
from imgscan.analyzer import AnalyzerType, Library
from imgscan.registry import register_all

def parse_go_sum(stream):
    libs = {}
    for line in stream.read().decode().splitlines():
        module, version, *_ = line.split()
        libs[module] = Library(module, version.removeprefix("v").split("/")[0])
    return list(libs.values())

register_all(parsers={AnalyzerType.GO_MOD: parse_go_sum})
```

### Config files

`register_all` does not register the config-file analyzers. Register them with `register_config_analyzers`:

```python
from imgscan.configfiles import register_config_analyzers

register_config_analyzers(["yaml:^manifests/.*", "json:settings_.*"])
```

The analyzers match files in two ways:

- By default they pick files by extension: `.json` (except `package-lock.json` and `packages.lock.json`), `.toml`, `.yaml`/`.yml` and `.tf`.
- Each pattern has the form `<type>:<regex>`. A file whose path the regex matches is taken as well.

The type in a pattern is one of `dockerfile`, `hcl`, `json`, `toml` or `yaml`. A malformed pattern, a bad regex or an unknown type raises `ValueError`.

You can also build the analyzers directly: `JsonConfigAnalyzer`, `TomlConfigAnalyzer`, `YamlConfigAnalyzer` and `TerraformConfigAnalyzer`. When a file cannot be parsed, `analyze` raises `ValueError`. This includes YAML whose anchors refer to themselves.

`ScannerOption` holds policy-scanning options. Its `sort()` method sorts each list in place.

### Apk commands in image history

`imgscan.apkcommand.AlpineCommandAnalyzer` reads the `apk add` commands in an image config's history. It works in three steps:

1. It expands `$VAR` arguments from the container environment.
2. It resolves dependencies through an APKINDEX history archive, loaded as `ApkIndex`.
3. For each package, it picks the latest version built before the layer's creation time.

The archive location works like this:

- It is a URL template in which `%s` is replaced by the Alpine minor version, for example `3.9`.
- `file://` URLs are read from disk.
- The environment variable `IMGSCAN_APK_INDEX_ARCHIVE_URL` overrides the `index_url` argument.

No default location is built in. Without a URL, `analyze` raises `ValueError`, so `Analyzer.analyze_image_config` returns `None`.

## What it does not do

- There is no command-line tool. `imgscan` is a library only.
- It does not pull images, unpack layers or walk directories. You pass each file to `Analyzer.analyze_file` yourself.
- It ships no lock-file, jar or Go binary parsers. Library analysis only works with the parsers you provide.
- It does not read OS package databases (apk, dpkg, rpm). `AnalyzerType` names these, but no analyzers exist for them.
- It does not analyze Dockerfiles or HCL files. `register_config_analyzers` accepts patterns for these types, but no analyzer uses them.
- It does not evaluate policies. `ScannerOption` only holds the options.