"""Tests for compiled-artifact lookup and capability binding."""

import importlib.machinery
import py_compile
import subprocess
import sys
import textwrap
from types import ModuleType
from unittest.mock import patch

import pytest

from plugin_spine.errors import ArtifactLoadError, BuildFailedError, ErrorCategory
from plugin_spine.handlers import FunctionHandler, IterableHandler
from plugin_spine.resolver.artifacts import (
    BuildTool,
    artifact_candidates,
    bind_capabilities,
    find_artifact,
    load_artifact_handler,
)
from plugin_spine.settings import DEFAULT_BUILD_COMMAND


def _module(**attrs) -> ModuleType:
    module = ModuleType("fake_artifact")
    for name, value in attrs.items():
        setattr(module, name, value)
    return module


def _compile(plugin_dir, source: str, name: str = "artifact") -> None:
    src = plugin_dir / f"{name}.py"
    src.write_text(textwrap.dedent(source), encoding="utf-8")
    py_compile.compile(str(src), cfile=str(plugin_dir / f"{name}.pyc"), doraise=True)


class TestLookup:
    def test_candidates_prefer_extension_modules(self, tmp_path):
        candidates = artifact_candidates(tmp_path, "ping", "plugin.py")

        suffix = importlib.machinery.EXTENSION_SUFFIXES[0]
        assert candidates[0] == tmp_path / f"ping{suffix}"
        assert candidates[-1] == tmp_path / "artifact.pyc"

    def test_custom_artifact_source(self, tmp_path):
        candidates = artifact_candidates(tmp_path, "p", "plugin.py", "native_impl.py")
        assert candidates[-1] == tmp_path / "native_impl.pyc"

    def test_entry_point_bytecode_never_a_candidate(self, tmp_path):
        candidates = artifact_candidates(tmp_path, "p", "plugin.py", "plugin.py")
        assert tmp_path / "plugin.pyc" not in candidates

    def test_entry_point_bytecode_not_found(self, tmp_path, sources):
        _compile(tmp_path, sources.script, name="plugin")
        assert find_artifact(tmp_path, "p", "plugin.py") is None

    def test_find_none_in_empty_dir(self, tmp_path):
        assert find_artifact(tmp_path, "ping", "plugin.py") is None

    def test_find_missing_dir(self, tmp_path):
        assert find_artifact(tmp_path / "nope", "ping", "plugin.py") is None


class TestBindCapabilities:
    def test_execute_only(self):
        module = _module(plugin=lambda: {"execute": lambda params: {"ok": True}})

        handler = bind_capabilities(module, "p", "plugin")

        assert isinstance(handler, FunctionHandler)
        assert handler.supports_iteration() is False
        assert handler.execute({}) == {"ok": True}

    def test_with_iteration(self):
        module = _module(
            plugin=lambda: {
                "execute": lambda params: 1,
                "execute_iteration": lambda params, index: (index, False),
            }
        )

        handler = bind_capabilities(module, "p", "plugin")

        assert isinstance(handler, IterableHandler)
        assert handler.execute_iteration({}, 4) == (4, False)

    def test_missing_symbol(self):
        with pytest.raises(ArtifactLoadError, match="does not export"):
            bind_capabilities(_module(), "p", "plugin")

    def test_symbol_not_callable(self):
        with pytest.raises(ArtifactLoadError, match="not callable"):
            bind_capabilities(_module(plugin={"execute": print}), "p", "plugin")

    def test_symbol_raises(self):
        def plugin():
            raise RuntimeError("init failed")

        with pytest.raises(ArtifactLoadError, match="init failed") as exc_info:
            bind_capabilities(_module(plugin=plugin), "p", "plugin")
        assert isinstance(exc_info.value.__cause__, RuntimeError)

    def test_symbol_exits(self):
        def plugin():
            raise SystemExit(2)

        with pytest.raises(ArtifactLoadError) as exc_info:
            bind_capabilities(_module(plugin=plugin), "p", "plugin")
        assert isinstance(exc_info.value.__cause__, SystemExit)

    def test_wrong_shape(self):
        with pytest.raises(ArtifactLoadError, match="expected a mapping"):
            bind_capabilities(_module(plugin=lambda: [1, 2]), "p", "plugin")

    def test_missing_execute(self):
        with pytest.raises(ArtifactLoadError, match="execute"):
            bind_capabilities(_module(plugin=lambda: {"run": print}), "p", "plugin")

    def test_custom_entry_symbol(self):
        module = _module(create=lambda: {"execute": lambda params: "custom"})
        assert bind_capabilities(module, "p", "create").execute({}) == "custom"


class TestLoadArtifactHandler:
    def test_loads_bytecode(self, tmp_path, sources):
        _compile(tmp_path, sources.artifact)

        handler = load_artifact_handler(
            tmp_path, "echo", entry_point="plugin.py", entry_symbol="plugin"
        )

        assert handler.name == "echo"
        assert handler.execute({"a": 1}) == {"source": "artifact", "params": {"a": 1}}
        assert handler.supports_iteration()

    def test_no_artifact(self, tmp_path):
        with pytest.raises(ArtifactLoadError, match="No compiled artifact") as exc_info:
            load_artifact_handler(tmp_path, "echo", entry_point="plugin.py", entry_symbol="plugin")
        assert exc_info.value.category is ErrorCategory.ARTIFACT

    def test_module_body_error(self, tmp_path):
        _compile(tmp_path, "raise ImportError('missing dependency')\n")

        with pytest.raises(ArtifactLoadError, match="missing dependency"):
            load_artifact_handler(tmp_path, "echo", entry_point="plugin.py", entry_symbol="plugin")

    def test_module_body_exit(self, tmp_path):
        _compile(tmp_path, "import sys\nsys.exit(0)\n")

        with pytest.raises(ArtifactLoadError, match="Failed to load") as exc_info:
            load_artifact_handler(tmp_path, "echo", entry_point="plugin.py", entry_symbol="plugin")
        assert isinstance(exc_info.value.__cause__, SystemExit)

    def test_compiled_entry_script_not_loaded(self, tmp_path, sources, capsys):
        _compile(tmp_path, sources.unguarded, name="plugin")

        with pytest.raises(ArtifactLoadError, match="No compiled artifact"):
            load_artifact_handler(tmp_path, "s", entry_point="plugin.py", entry_symbol="plugin")
        assert capsys.readouterr().out == ""
        assert not (tmp_path / "ran_in.pid").exists()


class TestBuildTool:
    def test_argv_substitution(self, tmp_path):
        tool = BuildTool(
            ["{python}", "-m", "build_it", "{plugin_dir}", "--name={plugin_id}"],
            python_executable="/usr/bin/python3",
        )

        assert tool.argv(tmp_path, "ping") == [
            "/usr/bin/python3",
            "-m",
            "build_it",
            str(tmp_path),
            "--name=ping",
        ]

    def test_artifact_source_placeholder(self, tmp_path):
        tool = BuildTool(
            ["cc", "{artifact_source}"], python_executable="python", artifact_source="impl.c"
        )
        assert tool.argv(tmp_path, "p") == ["cc", str(tmp_path / "impl.c")]

    def test_other_braces_pass_through(self, tmp_path):
        tool = BuildTool(
            ["sh", "-c", "test -d {plugin_dir} && echo ${HOME} {unknown}"],
            python_executable="python",
        )
        assert tool.argv(tmp_path, "p")[2] == f"test -d {tmp_path} && echo ${{HOME}} {{unknown}}"

    def test_default_command_compiles_only_artifact_source(self, tmp_path, sources):
        (tmp_path / "plugin.py").write_text(textwrap.dedent(sources.unguarded), encoding="utf-8")
        (tmp_path / "artifact.py").write_text(textwrap.dedent(sources.artifact), encoding="utf-8")
        tool = BuildTool(DEFAULT_BUILD_COMMAND, python_executable=sys.executable)

        tool.build(tmp_path, "p")

        assert (tmp_path / "artifact.pyc").is_file()
        assert not (tmp_path / "plugin.pyc").exists()
        assert not (tmp_path / "ran_in.pid").exists()

    def test_non_zero_exit(self, tmp_path):
        tool = BuildTool(
            ["{python}", "-c", "import sys; print('compile error'); sys.exit(3)"],
            python_executable=sys.executable,
        )

        with pytest.raises(BuildFailedError) as exc_info:
            tool.build(tmp_path, "p")

        error = exc_info.value
        assert error.exit_code == 3
        assert "compile error" in error.output
        assert error.category is ErrorCategory.BUILD

    def test_tool_missing(self, tmp_path):
        tool = BuildTool(["/nonexistent/build-tool"], python_executable="python")

        with pytest.raises(BuildFailedError, match="could not be started"):
            tool.build(tmp_path, "p")

    def test_timeout(self, tmp_path):
        tool = BuildTool(["make"], python_executable="python", timeout_seconds=1)
        timeout = subprocess.TimeoutExpired(["make"], 1, output=b"partial")

        with patch("plugin_spine.resolver.artifacts.subprocess.run", side_effect=timeout):
            with pytest.raises(BuildFailedError, match="timed out") as exc_info:
                tool.build(tmp_path, "p")
        assert exc_info.value.output == "partial"
