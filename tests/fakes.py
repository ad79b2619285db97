# fakes.py
# In-memory stand-ins for the backend and the library under test. Every call
# that matters is appended to a shared `calls` list so tests can check order.

from __future__ import annotations

import copy
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from sketchci.config import DEFAULT_CONFIG, CIConfig
from sketchci.model import GccConfig, Transcript


class FakeDependency:
    def __init__(self, backend: FakeBackend, name: str, deps: Sequence[str] = (), installed: bool = False, installable: bool = True):
        self.backend = backend
        self.name = name
        self.deps = list(deps)
        self.installed = installed
        self.installable = installable

    def is_installed(self) -> bool:
        return self.installed

    def install(self) -> bool:
        self.backend.calls.append(("install", self.name))
        if self.installable:
            self.installed = True
        return self.installable

    def declared_dependencies(self) -> List[str]:
        return list(self.deps)


class FakeBackend:
    binary_path = Path("/usr/local/bin/arduino-cli")

    def __init__(
        self,
        graph: Optional[Dict[str, Sequence[str]]] = None,
        *,
        preinstalled: Iterable[str] = (),
        broken: Iterable[str] = (),
        library: Optional[FakeLibrary] = None,
        fail_compile: Iterable[Tuple[str, str]] = (),
        fail_packages: Iterable[str] = (),
        urls_ok: bool = True,
    ):
        self.calls: List[Tuple[Any, ...]] = []
        self.lookups: List[str] = []
        self.library = library
        self.fail_compile: Set[Tuple[str, str]] = set(fail_compile)
        self.fail_packages = set(fail_packages)
        self.urls_ok = urls_ok
        self._last = Transcript()
        self.deps: Dict[str, FakeDependency] = {}
        preinstalled = set(preinstalled)
        broken = set(broken)
        for name, deps in (graph or {}).items():
            self.deps[name] = FakeDependency(
                self, name, deps, installed=name in preinstalled, installable=name not in broken
            )

    @property
    def last_transcript(self) -> Transcript:
        return self._last

    def library_of_name(self, name: str) -> FakeDependency:
        self.lookups.append(name)
        if name not in self.deps:
            self.deps[name] = FakeDependency(self, name)
        return self.deps[name]

    def install_local_library(self, path: Path) -> Optional[FakeLibrary]:
        self.calls.append(("install_local", str(path)))
        if self.library is None:
            self._last = Transcript(message="link failed", stderr="permission denied")
        return self.library

    def name_of_library(self, path: Path) -> str:
        return Path(path).resolve().name

    def set_package_source_urls(self, urls: Sequence[str]) -> bool:
        self.calls.append(("urls", tuple(urls)))
        return self.urls_ok

    def install_board_package(self, package: str) -> bool:
        self.calls.append(("package", package))
        return package not in self.fail_packages

    def compile_sketch(self, path: Path, board: str) -> bool:
        self.calls.append(("compile", Path(path).name, board))
        if (Path(path).name, board) in self.fail_compile:
            self._last = Transcript(message=f"arduino-cli compile --fqbn {board} {path}", stderr="error: boom")
            return False
        return True


class FakeLibrary:
    def __init__(
        self,
        path: Path,
        *,
        test_files: Sequence[str] = ("basic.cpp",),
        examples: Sequence[Path] = (),
        deps: Sequence[str] = (),
        make_tests_dir: bool = True,
        fail_build: Iterable[Tuple[str, str]] = (),
        fail_run: Iterable[str] = (),
        versions: Optional[Dict[str, Optional[str]]] = None,
        calls: Optional[List[Tuple[Any, ...]]] = None,
    ):
        self.path = Path(path)
        self.path.mkdir(parents=True, exist_ok=True)
        if make_tests_dir:
            self.tests_dir.mkdir(exist_ok=True)
        self._test_files = [self.tests_dir / name for name in test_files]
        self.examples = list(examples)
        self.deps = list(deps)
        self.fail_build = set(fail_build)
        self.fail_run = set(fail_run)
        self.versions = versions or {}
        self.calls = calls if calls is not None else []
        self._last = Transcript()

    @property
    def tests_dir(self) -> Path:
        return self.path / "test"

    def test_files(self) -> List[Path]:
        return list(self._test_files) if self.tests_dir.exists() else []

    def example_sketches(self) -> List[Path]:
        return list(self.examples)

    def declared_dependencies(self) -> List[str]:
        return list(self.deps)

    def build_for_test(self, test_file: Path, aux_libraries: Sequence[str], compiler: str, gcc_config: GccConfig) -> Optional[Path]:
        self.calls.append(("build", test_file.name, compiler, tuple(gcc_config.defines)))
        if (test_file.name, compiler) in self.fail_build:
            self._last = Transcript(message=f"{compiler} {test_file}", stdout="", stderr="undefined reference")
            return None
        return Path(f"/tmp/{test_file.stem}.{compiler}.bin")

    def run_test_file(self, executable: Path) -> bool:
        self.calls.append(("run", executable.name))
        return executable.name not in self.fail_run

    def gcc_version(self, compiler: str) -> Optional[str]:
        return self.versions.get(compiler, f"{compiler} (GCC) 12.2.0\nCopyright (C) 2022")

    def libasan_available(self, compiler: str) -> bool:
        return True

    def one_point_five(self) -> bool:
        return True

    @property
    def last_transcript(self) -> Transcript:
        return self._last


def make_config(**sections: Dict[str, Any]) -> CIConfig:
    """A default config with whole sections swapped out."""
    data = copy.deepcopy(DEFAULT_CONFIG)
    for name, body in sections.items():
        data[name] = body
    return CIConfig(data)
