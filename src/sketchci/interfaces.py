# interfaces.py
# Collaborators the orchestration engine talks to. The engine only ever sees
# these protocols; sketchci.backend, sketchci.config and sketchci.library are
# the concrete implementations used by the CLI.

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Sequence

from .model import GccConfig, PlatformDefinition, Transcript


class Dependency(Protocol):
    name: str

    def is_installed(self) -> bool: ...

    def install(self) -> bool: ...

    def declared_dependencies(self) -> List[str]: ...


class LibraryUnderTest(Protocol):
    path: Path

    @property
    def tests_dir(self) -> Path: ...

    def test_files(self) -> List[Path]: ...

    def example_sketches(self) -> List[Path]: ...

    def declared_dependencies(self) -> List[str]: ...

    def build_for_test(
        self,
        test_file: Path,
        aux_libraries: Sequence[str],
        compiler: str,
        gcc_config: GccConfig,
    ) -> Optional[Path]: ...

    def run_test_file(self, executable: Path) -> bool: ...

    def gcc_version(self, compiler: str) -> Optional[str]: ...

    def libasan_available(self, compiler: str) -> bool: ...

    def one_point_five(self) -> bool: ...

    @property
    def last_transcript(self) -> Transcript: ...


class Backend(Protocol):
    @property
    def binary_path(self) -> Path: ...

    def install_local_library(self, path: Path) -> Optional[LibraryUnderTest]: ...

    def name_of_library(self, path: Path) -> str: ...

    def library_of_name(self, name: str) -> Dependency: ...

    def set_package_source_urls(self, urls: Sequence[str]) -> bool: ...

    def install_board_package(self, package: str) -> bool: ...

    def compile_sketch(self, path: Path, board: str) -> bool: ...

    @property
    def last_transcript(self) -> Transcript: ...


class ProjectConfig(Protocol):
    def compilers_to_use(self) -> List[str]: ...

    def platforms_to_unittest(self) -> List[str]: ...

    def platforms_to_build(self) -> List[str]: ...

    def platform_definition(self, name: str) -> Optional[PlatformDefinition]: ...

    def aux_libraries_for_unittest(self) -> List[str]: ...

    def aux_libraries_for_build(self) -> List[str]: ...

    def allowable_unittest_files(self, paths: Sequence[Path]) -> List[Path]: ...

    def gcc_config(self, platform: str) -> GccConfig: ...

    def package_url(self, package: str) -> Optional[str]: ...

    def is_builtin_package(self, package: str) -> bool: ...

    def from_example(self, example_path: Path) -> ProjectConfig: ...

    def with_override_config(self, overrides: Dict[str, Any]) -> ProjectConfig: ...
