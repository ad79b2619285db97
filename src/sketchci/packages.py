# packages.py
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set, Tuple

from .interfaces import Backend, ProjectConfig
from .model import PlatformDefinition
from .reporter import ActionReporter


@dataclass
class PackagePlan:
    """Everything the example builds need installed before the first compile."""
    definitions: List[PlatformDefinition] = field(default_factory=list)
    boards: Dict[Tuple[Path, str], str] = field(default_factory=dict)
    package_urls: Dict[str, Optional[str]] = field(default_factory=dict)
    builtin: Set[str] = field(default_factory=set)
    aux_libraries: List[str] = field(default_factory=list)

    @property
    def platforms(self) -> List[str]:
        """Distinct platform names, in the order they were first seen."""
        out: List[str] = []
        for definition in self.definitions:
            if definition.name not in out:
                out.append(definition.name)
        return out

    @property
    def packages(self) -> List[str]:
        """Distinct board packages, in the order their platforms were first seen."""
        out: List[str] = []
        for definition in self.definitions:
            if definition.package is not None and definition.package not in out:
                out.append(definition.package)
        return out

    @property
    def urls(self) -> List[str]:
        """Distinct package source URLs; builtin packages contribute none."""
        out: List[str] = []
        for package in self.packages:
            url = self.package_urls.get(package)
            if url is not None and url not in out:
                out.append(url)
        return out

    def add_libraries(self, names: Iterable[str]) -> None:
        for name in names:
            if name not in self.aux_libraries:
                self.aux_libraries.append(name)


class PackageResolver:
    def __init__(self, backend: Backend, reporter: ActionReporter):
        self.backend = backend
        self.reporter = reporter

    def collect(self, config: ProjectConfig, examples: Iterable[Path]) -> PackagePlan:
        """
        Walk every example's (possibly overridden) config and gather the
        platforms, board packages and libraries the builds will need.
        Aborts the run on the first platform that isn't defined.

        A platform name is resolved in each example's own config, so two
        examples may build the same name for different boards.
        """
        plan = PackagePlan()
        plan.add_libraries(config.aux_libraries_for_build())

        for path in examples:
            example_config = config.from_example(path)
            for platform in example_config.platforms_to_build():
                definition = example_config.platform_definition(platform)
                if definition is not None and definition in plan.definitions:
                    plan.boards[(path, platform)] = definition.board
                    continue
                definition = self.reporter.assured_platform("library example", platform, example_config)
                plan.definitions.append(definition)
                plan.boards[(path, platform)] = definition.board

                package = definition.package
                if package is None:
                    continue
                plan.package_urls[package] = example_config.package_url(package)
                if example_config.is_builtin_package(package):
                    plan.builtin.add(package)
            plan.add_libraries(example_config.aux_libraries_for_build())

        return plan

    def prepare(self, plan: PackagePlan) -> None:
        """Point the backend at the package sources and install every package."""
        for package in plan.packages:
            if package in plan.builtin:
                continue
            self.reporter.assure(
                f"Board package {package} has a defined URL",
                lambda: plan.package_urls.get(package),
            )

        urls = plan.urls
        if urls:
            self.reporter.attempt(
                "Setting board manager URLs",
                lambda: self.backend.set_package_source_urls(urls),
            )

        for package in plan.packages:
            self.reporter.attempt(
                f"Installing board package {package}",
                lambda: self.backend.install_board_package(package),
            )
