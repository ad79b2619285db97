# deps.py
from __future__ import annotations

from typing import Iterable, List, Sequence

from .interfaces import Backend
from .reporter import ActionReporter


class DependencyResolver:
    """
    Installs libraries and everything they depend on.

    The list of names seen so far is threaded through each recursive call,
    so a name shared by several libraries (or reachable through a cycle)
    is handled once.
    """

    def __init__(self, backend: Backend, reporter: ActionReporter):
        self.backend = backend
        self.reporter = reporter

    def resolve(
        self,
        names: Iterable[str],
        on_behalf_of: str,
        already_installed: Sequence[str] = (),
    ) -> List[str]:
        """
        Install `names` and their transitive dependencies.

        Returns:
            `already_installed` followed by every name processed here, in
            processing order. Names whose install failed are included.
        """
        installed = list(already_installed)
        for name in names:
            if name in installed:
                continue

            dep = self.backend.library_of_name(name)
            if dep.name in installed:
                continue
            if dep.is_installed():
                self.reporter.inform(
                    f"Using pre-existing dependency of {on_behalf_of}",
                    lambda: dep.name,
                )
            else:
                self.reporter.attempt(
                    f"Installing dependency of {on_behalf_of}: '{dep.name}'",
                    lambda: dep.name if dep.install() else None,
                )

            # keep going past failed installs: the sub-dependencies may
            # still be installable and are reported on their own
            installed.append(dep.name)
            installed = self.resolve(dep.declared_dependencies(), dep.name, installed)
        return installed
