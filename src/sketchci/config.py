# config.py
# Project configuration: built-in defaults, overlaid by .arduino-ci.yml files
# in the library root and in individual example directories.

from __future__ import annotations

import copy
from dataclasses import dataclass
from fnmatch import fnmatch
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import yaml

from .model import GccConfig, PlatformDefinition

CONFIG_FILENAMES = (".arduino-ci.yml", ".arduino-ci.yaml")

DEFAULT_COMPILERS = ["g++"]

_AVR_WARNINGS = ["no-unknown-attributes", "no-attributes"]

DEFAULT_CONFIG: Dict[str, Any] = {
    "packages": {
        # bundled with the backend: installable without a package index URL
        "arduino:avr": {"url": None},
        "arduino:sam": {"url": None},
        "arduino:samd": {"url": None},
        "adafruit:avr": {"url": "https://adafruit.github.io/arduino-board-index/package_adafruit_index.json"},
        "adafruit:samd": {"url": "https://adafruit.github.io/arduino-board-index/package_adafruit_index.json"},
        "esp32:esp32": {"url": "https://raw.githubusercontent.com/espressif/arduino-esp32/gh-pages/package_esp32_index.json"},
        "esp8266:esp8266": {"url": "http://arduino.esp8266.com/stable/package_esp8266com_index.json"},
    },
    "platforms": {
        "uno": {
            "board": "arduino:avr:uno",
            "package": "arduino:avr",
            "gcc": {
                "defines": ["__AVR__", "__AVR_ATmega328P__", "ARDUINO_ARCH_AVR", "ARDUINO_AVR_UNO"],
                "warnings": list(_AVR_WARNINGS),
            },
        },
        "leonardo": {
            "board": "arduino:avr:leonardo",
            "package": "arduino:avr",
            "gcc": {
                "defines": ["__AVR__", "__AVR_ATmega32U4__", "ARDUINO_ARCH_AVR", "ARDUINO_AVR_LEONARDO"],
                "warnings": list(_AVR_WARNINGS),
            },
        },
        "mega2560": {
            "board": "arduino:avr:mega:cpu=atmega2560",
            "package": "arduino:avr",
            "gcc": {
                "defines": ["__AVR__", "__AVR_ATmega2560__", "ARDUINO_ARCH_AVR", "ARDUINO_AVR_MEGA2560"],
                "warnings": list(_AVR_WARNINGS),
            },
        },
        "due": {
            "board": "arduino:sam:arduino_due_x",
            "package": "arduino:sam",
            "gcc": {
                "defines": ["__SAM3X8E__", "ARDUINO_ARCH_SAM", "ARDUINO_SAM_DUE"],
                "warnings": list(_AVR_WARNINGS),
            },
        },
        "zero": {
            "board": "arduino:samd:arduino_zero_native",
            "package": "arduino:samd",
            "gcc": {
                "defines": ["__SAMD21G18A__", "ARDUINO_ARCH_SAMD", "ARDUINO_SAMD_ZERO"],
                "warnings": list(_AVR_WARNINGS),
            },
        },
        "m4": {
            "board": "adafruit:samd:adafruit_metro_m4",
            "package": "adafruit:samd",
            "gcc": {
                "defines": ["__SAMD51__", "__SAMD51J19A__", "ARDUINO_ARCH_SAMD", "ARDUINO_METRO_M4"],
                "warnings": list(_AVR_WARNINGS),
            },
        },
        "esp32": {
            "board": "esp32:esp32:featheresp32:FlashFreq=80",
            "package": "esp32:esp32",
            "gcc": {
                "defines": ["ESP32", "ARDUINO_ARCH_ESP32", "ARDUINO_FEATHER_ESP32"],
                "warnings": list(_AVR_WARNINGS),
            },
        },
        "esp8266": {
            "board": "esp8266:esp8266:huzzah:eesz=4M3M,xtal=80",
            "package": "esp8266:esp8266",
            "gcc": {
                "defines": ["ESP8266", "ARDUINO_ARCH_ESP8266", "ARDUINO_ESP8266_ESP12"],
                "warnings": list(_AVR_WARNINGS),
            },
        },
    },
    "compile": {
        "libraries": [],
        "platforms": ["uno", "due", "zero", "leonardo", "m4", "esp32", "esp8266", "mega2560"],
    },
    "unittest": {
        "compilers": None,
        "libraries": [],
        "platforms": ["uno", "due", "zero", "leonardo"],
        "testfiles": {"select": [], "reject": []},
    },
}

_SECTION_KEYS: Dict[str, set] = {
    "compile": {"libraries", "platforms"},
    "unittest": {"compilers", "libraries", "platforms", "testfiles"},
}
_PLATFORM_KEYS = {"board", "package", "gcc"}
_PACKAGE_KEYS = {"url"}
_TESTFILES_KEYS = {"select", "reject"}


@dataclass
class ConfigError(Exception):
    """A config file is unreadable or doesn't have the expected shape."""
    source: str
    message: str

    def __str__(self) -> str:
        return f"{self.source}: {self.message}"


def load_yaml(path: Path) -> Dict[str, Any]:
    """Read one config file. An empty file is an empty overlay."""
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ConfigError(str(path), f"invalid YAML: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(str(path), "top level must be a mapping")
    return data


def find_config_file(directory: Path) -> Optional[Path]:
    for name in CONFIG_FILENAMES:
        candidate = directory / name
        if candidate.is_file():
            return candidate
    return None


def _check_keys(source: str, where: str, data: Any, allowed: set) -> Dict[str, Any]:
    if not isinstance(data, dict):
        raise ConfigError(source, f"'{where}' must be a mapping")
    unknown = sorted(set(data) - allowed)
    if unknown:
        raise ConfigError(source, f"unknown key(s) in '{where}': {', '.join(map(str, unknown))}")
    return data


def validate(data: Dict[str, Any], source: str = "<config>") -> None:
    """Raise ConfigError if `data` isn't a well-formed overlay."""
    _check_keys(source, "<top level>", data, {"packages", "platforms", *_SECTION_KEYS})

    for name, entry in (data.get("packages") or {}).items():
        if entry is not None:
            _check_keys(source, f"packages.{name}", entry, _PACKAGE_KEYS)
    for name, entry in (data.get("platforms") or {}).items():
        if entry is not None:
            _check_keys(source, f"platforms.{name}", entry, _PLATFORM_KEYS)
    for section, allowed in _SECTION_KEYS.items():
        body = data.get(section)
        if body is None:
            continue
        _check_keys(source, section, body, allowed)
        if body.get("testfiles") is not None:
            _check_keys(source, f"{section}.testfiles", body["testfiles"], _TESTFILES_KEYS)


def overlay(base: Dict[str, Any], overrides: Dict[str, Any], source: str = "<config>") -> Dict[str, Any]:
    """
    Lay `overrides` over `base` and return the result (neither is mutated).

    packages/platforms merge per entry, and a null entry removes it.
    Inside compile/unittest every given key replaces the old value, except
    testfiles where select and reject are replaced independently.
    """
    validate(overrides, source)
    merged = copy.deepcopy(base)

    for section in ("packages", "platforms"):
        for name, entry in (overrides.get(section) or {}).items():
            if entry is None:
                merged[section].pop(name, None)
            else:
                merged[section][name] = copy.deepcopy(entry)

    for section in _SECTION_KEYS:
        for key, value in (overrides.get(section) or {}).items():
            if key == "testfiles" and value is not None:
                testfiles = merged[section].get("testfiles") or {}
                testfiles.update(copy.deepcopy(value))
                merged[section]["testfiles"] = testfiles
            else:
                merged[section][key] = copy.deepcopy(value)

    return merged


class CIConfig:
    """The resolved configuration of one library (or one of its examples)."""

    def __init__(self, data: Dict[str, Any]):
        self.data = data

    @classmethod
    def default(cls) -> CIConfig:
        return cls(copy.deepcopy(DEFAULT_CONFIG))

    # ---- overlays ----

    def with_config(self, overrides: Dict[str, Any], source: str = "<config>") -> CIConfig:
        return CIConfig(overlay(self.data, overrides, source))

    def with_override_config(self, overrides: Dict[str, Any]) -> CIConfig:
        return self.with_config(overrides, "<command line>")

    def with_file(self, path: Path) -> CIConfig:
        return self.with_config(load_yaml(path), str(path))

    def _with_file_in(self, directory: Path) -> CIConfig:
        path = find_config_file(directory)
        return self if path is None else self.with_file(path)

    def from_project_library(self, path: Path = Path(".")) -> CIConfig:
        return self._with_file_in(Path(path))

    def from_example(self, example_path: Path) -> CIConfig:
        example_path = Path(example_path)
        directory = example_path if example_path.is_dir() else example_path.parent
        return self._with_file_in(directory)

    # ---- sections ----

    @property
    def _unittest(self) -> Dict[str, Any]:
        return self.data.get("unittest") or {}

    @property
    def _compile(self) -> Dict[str, Any]:
        return self.data.get("compile") or {}

    def compilers_to_use(self) -> List[str]:
        compilers = self._unittest.get("compilers")
        if compilers is None:
            return list(DEFAULT_COMPILERS)
        return list(compilers)

    def platforms_to_unittest(self) -> List[str]:
        return list(self._unittest.get("platforms") or [])

    def platforms_to_build(self) -> List[str]:
        return list(self._compile.get("platforms") or [])

    def aux_libraries_for_unittest(self) -> List[str]:
        return list(self._unittest.get("libraries") or [])

    def aux_libraries_for_build(self) -> List[str]:
        return list(self._compile.get("libraries") or [])

    def platform_definition(self, name: str) -> Optional[PlatformDefinition]:
        entry = (self.data.get("platforms") or {}).get(name)
        if entry is None:
            return None
        return PlatformDefinition(
            name=name,
            board=entry.get("board") or "",
            package=entry.get("package"),
            gcc=GccConfig.from_dict(entry.get("gcc")),
        )

    def gcc_config(self, platform: str) -> GccConfig:
        definition = self.platform_definition(platform)
        return definition.gcc if definition is not None else GccConfig()

    def package_url(self, package: str) -> Optional[str]:
        entry = (self.data.get("packages") or {}).get(package) or {}
        return entry.get("url")

    def is_builtin_package(self, package: str) -> bool:
        return package in (self.data.get("packages") or {}) and self.package_url(package) is None

    def allowable_unittest_files(self, paths: Sequence[Path]) -> List[Path]:
        """Apply testfiles.select, then testfiles.reject, to the basenames of `paths`."""
        testfiles = self._unittest.get("testfiles") or {}
        select = testfiles.get("select") or []
        reject = testfiles.get("reject") or []

        out = list(paths)
        if select:
            out = [p for p in out if any(fnmatch(p.name, g) for g in select)]
        if reject:
            out = [p for p in out if not any(fnmatch(p.name, g) for g in reject)]
        return out
