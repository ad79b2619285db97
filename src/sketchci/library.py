# library.py
# The library under test, as seen from the host: where its tests and
# examples live, and how to build and run a unit test with the host compiler.

from __future__ import annotations

import os
import re
import shlex
import subprocess
import tempfile
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from .model import GccConfig, Transcript

LIBRARY_PROPERTIES_FILE = "library.properties"
CPP_EXTENSIONS = (".cpp", ".cc", ".cxx", ".c")
TESTS_DIR = "test"
EXAMPLES_DIR = "examples"

_ASAN_PROBE = "int main() { return 0; }\n"
_ASAN_FLAGS = ["-fsanitize=address", "-fno-omit-frame-pointer"]


def read_library_properties(path: Path) -> Dict[str, str]:
    """
    Parse a library.properties file into a dict. Missing file -> {}.
    """
    if not path.is_file():
        return {}
    props: Dict[str, str] = {}
    for raw_line in path.read_text(encoding="utf-8", errors="replace").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition("=")
        if sep:
            props[key.strip()] = value.strip()
    return props


def split_depends(value: str) -> List[str]:
    """'Foo (>=1.2), Bar Baz' -> ['Foo', 'Bar Baz']"""
    names: List[str] = []
    for part in value.split(","):
        name = re.sub(r"\(.*?\)", "", part).strip()
        if name and name not in names:
            names.append(name)
    return names


def library_dir_name(name: str) -> str:
    """arduino-cli installs 'Foo Bar' into a directory called 'Foo_Bar'."""
    return name.strip().replace(" ", "_")


def _is_hidden(path: Path, root: Path) -> bool:
    return any(part.startswith(".") for part in path.relative_to(root).parts)


class CppLibrary:
    def __init__(
        self,
        path: Path,
        libraries_dir: Optional[Path] = None,
        *,
        framework_include: Optional[Path] = None,
        build_dir: Optional[Path] = None,
    ):
        self.path = Path(path)
        self.libraries_dir = Path(libraries_dir) if libraries_dir is not None else self.path.parent
        self.framework_include = framework_include
        self._build_dir = build_dir
        self._tmp: Optional[tempfile.TemporaryDirectory] = None
        self._asan: Dict[str, bool] = {}
        self._last = Transcript()

    # ---- layout ----

    @property
    def properties(self) -> Dict[str, str]:
        return read_library_properties(self.path / LIBRARY_PROPERTIES_FILE)

    @property
    def tests_dir(self) -> Path:
        return self.path / TESTS_DIR

    def one_point_five(self) -> bool:
        """1.5-format libraries have library.properties and keep sources in src/."""
        return (self.path / LIBRARY_PROPERTIES_FILE).is_file() and (self.path / "src").is_dir()

    def declared_dependencies(self) -> List[str]:
        return split_depends(self.properties.get("depends", ""))

    def test_files(self) -> List[Path]:
        if not self.tests_dir.is_dir():
            return []
        return sorted(
            p for p in self.tests_dir.iterdir()
            if p.is_file() and p.suffix in CPP_EXTENSIONS
        )

    def example_sketches(self) -> List[Path]:
        """Every examples/**/<name>/<name>.ino, skipping hidden directories."""
        root = self.path / EXAMPLES_DIR
        if not root.is_dir():
            return []
        return sorted(
            p for p in root.rglob("*.ino")
            if p.stem == p.parent.name and not _is_hidden(p, root)
        )

    def source_files(self) -> List[Path]:
        if self.one_point_five():
            candidates = sorted((self.path / "src").rglob("*"))
        else:
            candidates = sorted(self.path.glob("*")) + sorted((self.path / "utility").glob("*"))
        return [p for p in candidates if p.is_file() and p.suffix in CPP_EXTENSIONS]

    def include_dirs(self, aux_libraries: Sequence[str]) -> List[Path]:
        dirs: List[Path] = []
        if self.framework_include is not None:
            dirs.append(Path(self.framework_include))
        dirs.append(self.path / "src" if self.one_point_five() else self.path)
        for name in aux_libraries:
            lib = self.libraries_dir / library_dir_name(name)
            dirs.append(lib / "src" if (lib / "src").is_dir() else lib)
        return dirs

    # ---- toolchain ----

    @property
    def last_transcript(self) -> Transcript:
        return self._last

    def _run(
        self,
        cmd: List[str],
        *,
        capture: bool = True,
        input: Optional[str] = None,
    ) -> Optional[subprocess.CompletedProcess]:
        message = shlex.join(cmd)
        try:
            proc = subprocess.run(
                cmd,
                cwd=str(self.path),
                text=True,
                capture_output=capture,
                input=input,
            )
        except OSError as e:
            self._last = Transcript(message=message, stderr=str(e))
            return None
        self._last = Transcript(message=message, stdout=proc.stdout or "", stderr=proc.stderr or "")
        return proc

    def gcc_version(self, compiler: str) -> Optional[str]:
        proc = self._run([compiler, "-v"])
        if proc is None or proc.returncode != 0:
            return None
        # gcc prints its version banner on stderr
        return (proc.stderr or proc.stdout).strip() or None

    def libasan_available(self, compiler: str) -> bool:
        if compiler not in self._asan:
            proc = self._run(
                [compiler, "-x", "c++", *_ASAN_FLAGS, "-o", os.devnull, "-"],
                input=_ASAN_PROBE,
            )
            self._asan[compiler] = proc is not None and proc.returncode == 0
        return self._asan[compiler]

    def _executable_path(self, test_file: Path, compiler: str) -> Path:
        if self._build_dir is None:
            # removed when the library object goes away
            self._tmp = tempfile.TemporaryDirectory(prefix="sketchci-")
            self._build_dir = Path(self._tmp.name)
        safe_compiler = re.sub(r"[^A-Za-z0-9_.+-]", "_", Path(compiler).name)
        return self._build_dir / f"{test_file.stem}.{safe_compiler}.bin"

    def build_for_test(
        self,
        test_file: Path,
        aux_libraries: Sequence[str],
        compiler: str,
        gcc_config: GccConfig,
    ) -> Optional[Path]:
        """Compile one test file against the library; the executable path or None."""
        exe = self._executable_path(test_file, compiler)
        cmd = [compiler, "-std=c++11", "-o", str(exe)]
        if self.libasan_available(compiler):
            cmd.extend(_ASAN_FLAGS)
        cmd.extend(gcc_config.args())
        cmd.extend(f"-I{d}" for d in self.include_dirs(aux_libraries))
        cmd.extend(str(p) for p in self.source_files())
        cmd.append(str(test_file))

        proc = self._run(cmd)
        if proc is None or proc.returncode != 0:
            return None
        return exe

    def run_test_file(self, executable: Path) -> bool:
        # let the test binary talk straight to the terminal
        proc = self._run([str(executable)], capture=False)
        return proc is not None and proc.returncode == 0
