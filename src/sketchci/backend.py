# backend.py
# Small wrapper around the arduino-cli binary.
# Every arduino-cli call goes through ArduinoBackend._run so the last command
# and its output are always available for failure reporting.

from __future__ import annotations

import json
import shlex
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

from .library import (
    LIBRARY_PROPERTIES_FILE,
    CppLibrary,
    library_dir_name,
    read_library_properties,
    split_depends,
)
from .model import Transcript

DEFAULT_BINARY = "arduino-cli"


@dataclass
class BackendNotFound(Exception):
    binary: str

    def __str__(self) -> str:
        return f"could not find '{self.binary}' on PATH"


class ArduinoLibrary:
    """A library installed (or installable) by name through arduino-cli."""

    def __init__(self, backend: ArduinoBackend, name: str):
        self.backend = backend
        self.name = name

    @property
    def path(self) -> Path:
        return self.backend.libraries_dir / library_dir_name(self.name)

    def is_installed(self) -> bool:
        return self.path.exists()

    def install(self) -> bool:
        return self.backend.install_library(self.name)

    def declared_dependencies(self) -> List[str]:
        props = read_library_properties(self.path / LIBRARY_PROPERTIES_FILE)
        return split_depends(props.get("depends", ""))


class ArduinoBackend:
    def __init__(
        self,
        binary_path: Path,
        *,
        framework_include: Optional[Path] = None,
        build_dir: Optional[Path] = None,
    ):
        self._binary_path = Path(binary_path)
        self.framework_include = framework_include
        self.build_dir = build_dir
        self._user_dir: Optional[Path] = None
        self._last = Transcript()

    @classmethod
    def locate(cls, binary: Optional[str] = None, **kwargs) -> ArduinoBackend:
        """
        Find arduino-cli (or the given binary) on PATH.

        Raises:
            BackendNotFound: if it isn't there
        """
        wanted = binary or DEFAULT_BINARY
        found = shutil.which(wanted)
        if found is None:
            raise BackendNotFound(binary=wanted)
        return cls(Path(found), **kwargs)

    @property
    def binary_path(self) -> Path:
        return self._binary_path

    @property
    def last_transcript(self) -> Transcript:
        return self._last

    def _run(self, args: List[str]) -> Optional[subprocess.CompletedProcess]:
        cmd = [str(self._binary_path), *args]
        message = shlex.join(cmd)
        try:
            proc = subprocess.run(cmd, text=True, capture_output=True)
        except OSError as e:
            self._last = Transcript(message=message, stderr=str(e))
            return None
        self._last = Transcript(message=message, stdout=proc.stdout or "", stderr=proc.stderr or "")
        return proc

    def _ok(self, args: List[str]) -> bool:
        proc = self._run(args)
        return proc is not None and proc.returncode == 0

    # ---- directories ----

    @property
    def user_dir(self) -> Path:
        """The sketchbook directory arduino-cli installs libraries under."""
        if self._user_dir is None:
            self._user_dir = self._query_user_dir() or Path.home() / "Arduino"
        return self._user_dir

    def _query_user_dir(self) -> Optional[Path]:
        proc = self._run(["config", "dump", "--format", "json"])
        if proc is None or proc.returncode != 0:
            return None
        try:
            data = json.loads(proc.stdout or "{}")
        except json.JSONDecodeError:
            return None
        # newer arduino-cli nests everything under "config"
        data = data.get("config", data)
        user = (data.get("directories") or {}).get("user")
        return Path(user) if user else None

    @property
    def libraries_dir(self) -> Path:
        return self.user_dir / "libraries"

    # ---- libraries ----

    def name_of_library(self, path: Path) -> str:
        props = read_library_properties(Path(path) / LIBRARY_PROPERTIES_FILE)
        return library_dir_name(props.get("name") or Path(path).resolve().name)

    def install_local_library(self, path: Path) -> Optional[CppLibrary]:
        """Symlink the library at `path` into the libraries dir."""
        source = Path(path).resolve()
        dest = self.libraries_dir / self.name_of_library(path)
        message = f"link {dest} -> {source}"

        try:
            if dest.is_symlink() and dest.resolve() != source:
                dest.unlink()
            if not dest.exists():
                dest.parent.mkdir(parents=True, exist_ok=True)
                dest.symlink_to(source, target_is_directory=True)
        except OSError as e:
            self._last = Transcript(message=message, stderr=str(e))
            return None

        if dest.resolve() != source:
            self._last = Transcript(
                message=message,
                stderr=f"{dest} already exists and is not a link to {source}",
            )
            return None

        self._last = Transcript(message=message)
        return CppLibrary(
            dest,
            self.libraries_dir,
            framework_include=self.framework_include,
            build_dir=self.build_dir,
        )

    def library_of_name(self, name: str) -> ArduinoLibrary:
        return ArduinoLibrary(self, name)

    def install_library(self, name: str) -> bool:
        # dependencies are resolved one by one by the caller
        return self._ok(["lib", "install", "--no-deps", name])

    # ---- boards ----

    def set_package_source_urls(self, urls: Sequence[str]) -> bool:
        if not self._ok(["config", "set", "board_manager.additional_urls", *urls]):
            return False
        return self._ok(["core", "update-index"])

    def install_board_package(self, package: str) -> bool:
        return self._ok(["core", "install", package])

    def compile_sketch(self, path: Path, board: str) -> bool:
        return self._ok(["compile", "--fqbn", board, "--warnings", "all", str(path)])
