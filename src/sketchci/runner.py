# runner.py
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from .deps import DependencyResolver
from .interfaces import Backend, LibraryUnderTest, ProjectConfig
from .model import BuildMatrixCell, PlatformDefinition, TestMatrixCell
from .packages import PackagePlan, PackageResolver
from .reporter import ActionReporter, FailureTally, RunAborted, SelfTestDetected
from .ui.console import Console, get_console

# Root of the sketchci source tree (src/sketchci/runner.py -> repo root).
TOOL_ROOT = Path(__file__).resolve().parents[2]

SELF_TEST_EXPLANATION = [
    "sketchci (the python package) isn't an arduino project itself, so running the CI test script",
    "against its own source tree isn't really a valid thing to do... but it's easy for a developer",
    "to mistakenly do just that. You probably meant to run this against one of the sample",
    "libraries instead; if not, please submit a bug report.",
]


@dataclass(frozen=True)
class CLIOptions:
    """Command-line switches that steer the two matrix phases."""
    skip_unittests: bool = False
    skip_compilation: bool = False
    testfile_select: Tuple[str, ...] = ()
    testfile_reject: Tuple[str, ...] = ()

    def ci_config(self) -> Dict[str, Any]:
        """The overrides to lay over the project config, in config-file shape."""
        testfiles: Dict[str, List[str]] = {}
        if self.testfile_select:
            testfiles["select"] = list(self.testfile_select)
        if self.testfile_reject:
            testfiles["reject"] = list(self.testfile_reject)
        if not testfiles:
            return {}
        return {"unittest": {"testfiles": testfiles}}


class MatrixRunner:
    """
    Expands and runs the unit-test and example-build matrices of one library.

    Cells run one after another; each is a reported action, so a failing cell
    is tallied and the matrix moves on.
    """

    def __init__(
        self,
        backend: Backend,
        library: LibraryUnderTest,
        reporter: ActionReporter,
        options: CLIOptions = CLIOptions(),
        *,
        tool_root: Path = TOOL_ROOT,
        workdir: Optional[Path] = None,
    ):
        self.backend = backend
        self.library = library
        self.reporter = reporter
        self.options = options
        self.tool_root = Path(tool_root).resolve()
        self.workdir = Path(workdir) if workdir is not None else Path.cwd()
        self.console: Console = reporter.console
        self.resolver = DependencyResolver(backend, reporter)
        self.packages = PackageResolver(backend, reporter)
        self.unittest_platforms: Dict[str, PlatformDefinition] = {}

    # ------------------------------------------------------------------
    # Unit tests
    # ------------------------------------------------------------------

    def perform_unit_tests(self, file_config: ProjectConfig) -> None:
        if self.options.skip_unittests:
            self.reporter.inform("Skipping unit tests", lambda: "as requested via command line")
            return
        config = file_config.with_override_config(self.options.ci_config())
        library = self.library

        compilers = config.compilers_to_use()
        self.reporter.assure(
            f"The set of compilers ({len(compilers)}) isn't empty",
            lambda: len(compilers) > 0,
        )
        for compiler in compilers:
            self.reporter.attempt_multiline(
                f"Checking {compiler} version",
                lambda: self._show_compiler_version(compiler),
            )
            self.reporter.inform(
                f"libasan availability for {compiler}",
                lambda: library.libasan_available(compiler),
            )

        platforms = config.platforms_to_unittest()
        for platform in platforms:
            self.unittest_platforms[platform] = self.reporter.assured_platform("unittest", platform, config)

        self.reporter.inform(
            "Library conforms to Arduino library specification",
            lambda: "1.5" if library.one_point_five() else "1.0",
        )

        tests_dir = library.tests_dir
        if not tests_dir.exists():
            if self.workdir.resolve() == self.tool_root:
                self._refuse_self_test()
            self.reporter.inform_multiline(
                f"Skipping unit tests; no tests dir at {tests_dir}",
                lambda: self._show_files(
                    "  In case that's an error, this is what was found in the library:",
                    tests_dir.parent,
                ),
            )
            return

        test_files = library.test_files()
        if not test_files:
            self.reporter.inform_multiline(
                f"Skipping unit tests; no test files were found in {tests_dir}",
                lambda: self._show_files(
                    "  In case that's an error, this is what was found in the tests directory:",
                    tests_dir,
                ),
            )
            return

        if not platforms:
            self.reporter.inform("Skipping unit tests", lambda: "no platforms were requested")
            return

        aux_libraries = config.aux_libraries_for_unittest()
        self.resolver.resolve(aux_libraries, "<unittest/libraries>")

        for cell in self.unit_test_cells(config, platforms, test_files, compilers):
            self.reporter.attempt_multiline(
                cell.label,
                lambda: self._run_unit_test(cell, config, aux_libraries),
            )

    def unit_test_cells(
        self,
        config: ProjectConfig,
        platforms: Sequence[str],
        test_files: Sequence[Path],
        compilers: Sequence[str],
    ) -> Iterator[TestMatrixCell]:
        """Platform outermost, compiler innermost."""
        selected = config.allowable_unittest_files(test_files)
        for platform in platforms:
            for test_file in selected:
                for compiler in compilers:
                    yield TestMatrixCell(platform=platform, test_file=test_file, compiler=compiler)

    def _show_compiler_version(self, compiler: str) -> Optional[str]:
        version = self.library.gcc_version(compiler)
        if not version:
            return None
        self.console.print_indented(version)
        return version

    def _run_unit_test(self, cell: TestMatrixCell, config: ProjectConfig, aux_libraries: List[str]) -> bool:
        exe = self.library.build_for_test(
            cell.test_file,
            aux_libraries,
            cell.compiler,
            config.gcc_config(cell.platform),
        )
        self.console.print_info()
        if exe is None:
            self.console.print_transcript(self.library.last_transcript)
            return False
        return self.library.run_test_file(exe)

    def _refuse_self_test(self) -> None:
        def explain() -> bool:
            for line in SELF_TEST_EXPLANATION:
                self.console.print_info(f"  {line}")
            return False

        self.reporter.inform_multiline("sketchci seems to be trying to test itself", explain)
        raise SelfTestDetected(path=str(self.tool_root))

    def _show_files(self, heading: Optional[str], path: Path) -> bool:
        if heading:
            self.console.print_info(heading)
        self.console.display_files(path)
        return True

    # ------------------------------------------------------------------
    # Example builds
    # ------------------------------------------------------------------

    def perform_example_compilation(self, config: ProjectConfig) -> None:
        if self.options.skip_compilation:
            self.reporter.inform("Skipping compilation of examples", lambda: "as requested via command line")
            return

        examples = self.library.example_sketches()

        # boards and libraries are installed up front, before any compile
        plan = self.packages.collect(config, examples)
        self.packages.prepare(plan)
        self.resolver.resolve(plan.aux_libraries, "<compile/libraries>")

        if not config.platforms_to_build():
            self.reporter.inform("Skipping builds", lambda: "no platforms were requested")
            return
        if not examples:
            self.reporter.inform_multiline(
                f"Skipping builds; no examples found in {self.library.path}",
                lambda: self._show_files(None, self.library.path),
            )
            return

        for cell in self.build_cells(config, examples, plan):
            self.reporter.attempt(cell.label, lambda: self._compile(cell))

    def build_cells(
        self,
        config: ProjectConfig,
        examples: Sequence[Path],
        plan: PackagePlan,
    ) -> Iterator[BuildMatrixCell]:
        for example in examples:
            example_config = config.from_example(example)
            for platform in example_config.platforms_to_build():
                board = plan.boards[(example, platform)]
                yield BuildMatrixCell(example=example, platform=platform, board=board)

    def _compile(self, cell: BuildMatrixCell) -> bool:
        ok = self.backend.compile_sketch(cell.example, cell.board)
        if not ok:
            self.console.print_info()
            self.console.print_transcript(self.backend.last_transcript, with_stdout=False)
        return ok


# ----------------------------------------------------------------------
# Top-level driver
# ----------------------------------------------------------------------

def _install_library_under_test(
    backend: Backend,
    reporter: ActionReporter,
    library_path: Path,
) -> LibraryUnderTest:
    # the backend's last transcript explains a failed install in the final report
    library = reporter.assure(
        "Installing library under test",
        lambda: backend.install_local_library(library_path),
    )

    assumed_name = backend.name_of_library(library_path)
    ondisk_name = library_path.resolve().name
    if assumed_name != ondisk_name:
        reporter.inform(
            "WARNING",
            lambda: f"Installed library named '{assumed_name}' has directory name '{ondisk_name}'",
        )

    reporter.inform("Library installed at", lambda: str(library.path))
    return library


def run_ci(
    backend: Backend,
    config: ProjectConfig,
    library_path: Path,
    options: CLIOptions = CLIOptions(),
    *,
    console: Optional[Console] = None,
    tool_root: Path = TOOL_ROOT,
    workdir: Optional[Path] = None,
) -> int:
    """
    Run the whole CI sequence against the library at `library_path`.

    Returns:
        The process exit status: 0 if nothing tallied a failure, 1 otherwise.

    Raises:
        SelfTestDetected: if run from sketchci's own source tree
    """
    reporter = ActionReporter(FailureTally(), console or get_console())

    try:
        reporter.inform("Located arduino-cli binary", lambda: str(backend.binary_path))
        library = _install_library_under_test(backend, reporter, library_path)

        runner = MatrixRunner(
            backend,
            library,
            reporter,
            options,
            tool_root=tool_root,
            workdir=workdir if workdir is not None else library_path,
        )
        runner.resolver.resolve(library.declared_dependencies(), "<library.properties>")
        runner.perform_unit_tests(config)
        runner.perform_example_compilation(config)
    except RunAborted as e:
        reporter.console.print_debug(str(e))

    return reporter.final_report(backend.last_transcript)
