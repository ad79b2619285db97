# model.py
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class GccConfig:
    """Compiler knobs a platform contributes to a unit-test build."""
    features: List[str] = field(default_factory=list)
    defines: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    flags: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> GccConfig:
        data = data or {}
        return cls(
            features=list(data.get("features") or []),
            defines=list(data.get("defines") or []),
            warnings=list(data.get("warnings") or []),
            flags=list(data.get("flags") or []),
        )

    def args(self) -> List[str]:
        """Command-line arguments for gcc/clang, in a stable order."""
        out: List[str] = []
        out.extend(f"-f{f}" for f in self.features)
        out.extend(f"-D{d}" for d in self.defines)
        out.extend(f"-W{w}" for w in self.warnings)
        out.extend(self.flags)
        return out


@dataclass(frozen=True)
class PlatformDefinition:
    """
    A named target board.

    `package` is the board package that provides `board` (e.g. "arduino:avr");
    None means the platform needs no package at all.
    """
    name: str
    board: str
    package: Optional[str] = None
    gcc: GccConfig = field(default_factory=GccConfig)


@dataclass(frozen=True)
class Transcript:
    """What the last external command said: the command itself plus its output."""
    message: str = ""
    stdout: str = ""
    stderr: str = ""


@dataclass(frozen=True)
class TestMatrixCell:
    # not a test class, keep pytest from collecting it
    __test__ = False

    platform: str
    test_file: Path
    compiler: str

    @property
    def label(self) -> str:
        return f"Unit testing {self.test_file.name} with {self.compiler} for {self.platform}"


@dataclass(frozen=True)
class BuildMatrixCell:
    example: Path
    platform: str
    board: str

    @property
    def label(self) -> str:
        return f"Compiling {self.example.name} for {self.board}"
