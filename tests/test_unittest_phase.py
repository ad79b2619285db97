from __future__ import annotations

import pytest

from sketchci.reporter import RunAborted, SelfTestDetected
from sketchci.runner import CLIOptions, MatrixRunner

from fakes import FakeBackend, FakeLibrary, make_config


def unittest_config(**unittest):
    body = {"compilers": None, "libraries": [], "platforms": ["uno"], "testfiles": {}}
    body.update(unittest)
    return make_config(unittest=body)


@pytest.fixture
def workdirs(tmp_path):
    tool_root = tmp_path / "tool"
    tool_root.mkdir()
    return tmp_path / "lib", tool_root


def make_runner(library, reporter, tool_root, options=CLIOptions(), backend=None):
    return MatrixRunner(
        backend or FakeBackend(),
        library,
        reporter,
        options,
        tool_root=tool_root,
        workdir=library.path,
    )


def test_platform_outer_compiler_inner(workdirs, reporter, tally):
    lib_path, tool_root = workdirs
    library = FakeLibrary(lib_path)
    config = unittest_config(platforms=["uno", "due"], compilers=["g++", "clang++"])

    make_runner(library, reporter, tool_root).perform_unit_tests(config)

    builds = [(c[3][-1], c[2]) for c in library.calls if c[0] == "build"]
    assert builds == [
        ("ARDUINO_AVR_UNO", "g++"),
        ("ARDUINO_AVR_UNO", "clang++"),
        ("ARDUINO_SAM_DUE", "g++"),
        ("ARDUINO_SAM_DUE", "clang++"),
    ]
    assert tally.count == 0


def test_every_test_file_runs_for_every_compiler(workdirs, reporter, capsys):
    lib_path, tool_root = workdirs
    library = FakeLibrary(lib_path, test_files=["a.cpp", "b.cpp"])
    config = unittest_config(compilers=["g++", "clang++"])

    make_runner(library, reporter, tool_root).perform_unit_tests(config)

    runs = [c[1] for c in library.calls if c[0] == "run"]
    assert runs == ["a.g++.bin", "a.clang++.bin", "b.g++.bin", "b.clang++.bin"]
    out = capsys.readouterr().out
    assert "Unit testing a.cpp with clang++ for uno" in out


def test_zero_compilers_aborts_before_any_cell(workdirs, reporter, tally):
    lib_path, tool_root = workdirs
    library = FakeLibrary(lib_path)

    with pytest.raises(RunAborted):
        make_runner(library, reporter, tool_root).perform_unit_tests(unittest_config(compilers=[]))

    assert tally.count >= 1
    assert library.calls == []


def test_unknown_platform_aborts(workdirs, reporter, tally):
    lib_path, tool_root = workdirs
    library = FakeLibrary(lib_path)

    with pytest.raises(RunAborted):
        make_runner(library, reporter, tool_root).perform_unit_tests(unittest_config(platforms=["uno", "bogus"]))

    assert tally.count == 1
    assert library.calls == []


def test_build_failure_skips_run_and_prints_transcript(workdirs, reporter, tally, capsys):
    lib_path, tool_root = workdirs
    library = FakeLibrary(lib_path, fail_build=[("basic.cpp", "g++")])

    make_runner(library, reporter, tool_root).perform_unit_tests(unittest_config())

    assert [c[0] for c in library.calls] == ["build"]
    out = capsys.readouterr().out
    assert "Last command: g++" in out
    assert "undefined reference" in out
    assert tally.count == 1


def test_failing_test_run_is_soft(workdirs, reporter, tally):
    lib_path, tool_root = workdirs
    library = FakeLibrary(lib_path, test_files=["a.cpp", "b.cpp"], fail_run=["a.g++.bin"])

    make_runner(library, reporter, tool_root).perform_unit_tests(unittest_config())

    assert [c[1] for c in library.calls if c[0] == "run"] == ["a.g++.bin", "b.g++.bin"]
    assert tally.count == 1


def test_unreadable_compiler_version_is_soft(workdirs, reporter, tally):
    lib_path, tool_root = workdirs
    library = FakeLibrary(lib_path, versions={"g++": None})

    make_runner(library, reporter, tool_root).perform_unit_tests(unittest_config())

    assert tally.count == 1
    assert any(c[0] == "run" for c in library.calls)


def test_skip_unittests_option(workdirs, reporter, capsys):
    lib_path, tool_root = workdirs
    library = FakeLibrary(lib_path)

    make_runner(library, reporter, tool_root, CLIOptions(skip_unittests=True)).perform_unit_tests(unittest_config())

    assert library.calls == []
    assert "as requested via command line" in capsys.readouterr().out


def test_missing_tests_dir_lists_library_files(workdirs, reporter, tally, capsys):
    lib_path, tool_root = workdirs
    library = FakeLibrary(lib_path, make_tests_dir=False)
    (lib_path / "src").mkdir()
    (lib_path / "src" / "thing.h").write_text("")
    (lib_path / ".git").mkdir()
    (lib_path / ".git" / "HEAD").write_text("")

    make_runner(library, reporter, tool_root).perform_unit_tests(unittest_config())

    out = capsys.readouterr().out
    assert "Skipping unit tests; no tests dir at" in out
    assert "thing.h" in out
    assert "HEAD" not in out
    assert tally.count == 0
    assert library.calls == []


def test_missing_tests_dir_in_own_source_tree_is_fatal(tmp_path, reporter, tally):
    library = FakeLibrary(tmp_path / "tool", make_tests_dir=False)
    runner = MatrixRunner(
        FakeBackend(), library, reporter, tool_root=library.path, workdir=library.path
    )

    with pytest.raises(SelfTestDetected):
        runner.perform_unit_tests(unittest_config())

    assert tally.count == 0


def test_empty_tests_dir_is_skipped(workdirs, reporter, tally, capsys):
    lib_path, tool_root = workdirs
    library = FakeLibrary(lib_path, test_files=[])

    make_runner(library, reporter, tool_root).perform_unit_tests(unittest_config())

    assert "no test files were found in" in capsys.readouterr().out
    assert tally.count == 0
    assert library.calls == []


def test_no_platforms_is_skipped(workdirs, reporter, tally, capsys):
    lib_path, tool_root = workdirs
    library = FakeLibrary(lib_path)

    make_runner(library, reporter, tool_root).perform_unit_tests(unittest_config(platforms=[]))

    assert "no platforms were requested" in capsys.readouterr().out
    assert library.calls == []
    assert tally.count == 0


def test_aux_libraries_installed_before_cells(workdirs, reporter):
    lib_path, tool_root = workdirs
    calls = []
    library = FakeLibrary(lib_path, calls=calls)
    backend = FakeBackend({"Helper": []})
    backend.calls = calls

    make_runner(library, reporter, tool_root, backend=backend).perform_unit_tests(
        unittest_config(libraries=["Helper"])
    )

    assert calls[0] == ("install", "Helper")
    assert calls[1][0] == "build"


def test_testfile_select_and_reject_from_command_line(workdirs, reporter):
    lib_path, tool_root = workdirs
    library = FakeLibrary(lib_path, test_files=["alpha.cpp", "beta.cpp", "gamma.cpp"])
    options = CLIOptions(testfile_select=("*a.cpp",), testfile_reject=("gamma*",))

    make_runner(library, reporter, tool_root, options).perform_unit_tests(unittest_config())

    assert [c[1] for c in library.calls if c[0] == "build"] == ["alpha.cpp", "beta.cpp"]
