"""Tests for the DSL helpers and workflow file loading."""

import textwrap
from pathlib import Path

import pytest

from pipegate.dsl import job, pipeline, sh, step
from pipegate.errors import CIError
from pipegate.model import ALL_TRIGGERS, Pipeline, TriggerKind
from pipegate.workflow import load_workflow

REPO_ROOT = Path(__file__).resolve().parent.parent


def write(tmp_path, body, name="my_workflow.py"):
    path = tmp_path / name
    path.write_text(textwrap.dedent(body))
    return path


class TestTriggerKind:

    @pytest.mark.parametrize(
        "text, kind",
        [
            ("push", TriggerKind.PUSH),
            ("PUSH", TriggerKind.PUSH),
            ("pull_request", TriggerKind.PULL_REQUEST),
            ("pull-request", TriggerKind.PULL_REQUEST),
            ("pr", TriggerKind.PULL_REQUEST),
        ],
    )
    def test_parse(self, text, kind):
        assert TriggerKind.parse(text) is kind

    def test_parse_rejects_unknown(self):
        with pytest.raises(ValueError, match="schedule"):
            TriggerKind.parse("schedule")


class TestDsl:

    def test_sh_splits_without_a_shell(self):
        s = sh("fmt", "cargo fmt --check --all")
        assert s.command == "cargo"
        assert s.args == ("fmt", "--check", "--all")

    def test_sh_respects_quotes(self):
        s = sh("echo", "echo 'hello world'")
        assert s.argv == ["echo", "hello world"]

    def test_sh_rejects_empty_command(self):
        with pytest.raises(ValueError):
            sh("nothing", "   ")

    def test_job_requires_steps(self):
        with pytest.raises(ValueError):
            job("empty")

    def test_job_defaults(self):
        j = job("x", step("s", "true"))
        assert j.on == ALL_TRIGGERS
        assert j.continue_on_failure is False
        assert j.parallel is True

    def test_job_applies_default_cwd_and_timeout(self):
        j = job(
            "x",
            step("a", "true"),
            step("b", "true", cwd="sub", timeout=5),
            cwd="crate",
            timeout=60,
        )
        assert [(s.cwd, s.timeout) for s in j.steps] == [("crate", 60), ("sub", 5)]

    def test_env_values_are_strings(self):
        j = job("x", step("s", "true"), env={"CARGO_INCREMENTAL": 0})
        p = pipeline(j, env={"JOBS": 4})
        assert j.env == {"CARGO_INCREMENTAL": "0"}
        assert p.env == {"JOBS": "4"}

    def test_env_is_read_only(self):
        source = {"RUSTFLAGS": "-D warnings"}
        j = job("x", step("s", "true"), env=source)
        p = Pipeline(jobs=(j,), env=source)
        source["RUSTFLAGS"] = "changed"
        with pytest.raises(TypeError):
            j.env["RUSTFLAGS"] = "-A warnings"
        with pytest.raises(TypeError):
            p.env["NEW"] = "1"
        assert j.env["RUSTFLAGS"] == "-D warnings"
        assert p.env["RUSTFLAGS"] == "-D warnings"

    def test_jobs_are_hashable(self):
        a = job("x", step("s", "true"), env={"A": "1"})
        b = job("x", step("s", "true"), env={"A": "1"})
        assert a == b
        assert len({a, b}) == 1


class TestLoadWorkflow:

    def test_workflow_returning_pipeline(self, tmp_path):
        path = write(tmp_path, """
            from pipegate import job, pipeline, sh

            def workflow():
                return pipeline(
                    job("lint", sh("ruff", "ruff check .")),
                    env={"CARGO_TERM_COLOR": "always"},
                    name="gate",
                )
        """)
        p = load_workflow(path)
        assert isinstance(p, Pipeline)
        assert p.name == "gate"
        assert [j.name for j in p.jobs] == ["lint"]
        assert p.env == {"CARGO_TERM_COLOR": "always"}

    def test_jobs_list_with_module_env(self, tmp_path):
        path = write(tmp_path, """
            from pipegate import job, sh

            ENV = {"RUSTFLAGS": "-D warnings"}
            JOBS = [job("a", sh("a", "true")), job("b", sh("b", "true"))]
        """)
        p = load_workflow(path)
        assert [j.name for j in p.jobs] == ["a", "b"]
        assert p.env == {"RUSTFLAGS": "-D warnings"}
        assert p.name == "my_workflow"

    def test_missing_file(self, tmp_path):
        with pytest.raises(CIError, match="not found"):
            load_workflow(tmp_path / "nope.py")

    def test_not_a_python_file(self, tmp_path):
        path = tmp_path / "ci.yml"
        path.write_text("on: [push]\n")
        with pytest.raises(CIError, match=r"\.py"):
            load_workflow(path)

    def test_duplicate_job_names(self, tmp_path):
        path = write(tmp_path, """
            from pipegate import job, sh
            JOBS = [job("a", sh("a", "true")), job("a", sh("b", "true"))]
        """)
        with pytest.raises(CIError) as exc_info:
            load_workflow(path)
        assert exc_info.value.kind == "definition"
        assert "Duplicate" in exc_info.value.message

    def test_non_job_entries(self, tmp_path):
        path = write(tmp_path, """
            JOBS = ["cargo test"]
        """)
        with pytest.raises(CIError, match="Job objects"):
            load_workflow(path)

    def test_bad_env(self, tmp_path):
        path = write(tmp_path, """
            from pipegate import job, sh
            ENV = {"JOBS": 4}
            JOBS = [job("a", sh("a", "true"))]
        """)
        with pytest.raises(CIError, match="strings"):
            load_workflow(path)

    def test_nothing_defined(self, tmp_path):
        path = write(tmp_path, "X = 1\n")
        with pytest.raises(CIError, match="workflow()"):
            load_workflow(path)

    def test_file_that_raises(self, tmp_path):
        path = write(tmp_path, "raise RuntimeError('broken import')\n")
        with pytest.raises(CIError, match="broken import"):
            load_workflow(path)

    @pytest.mark.parametrize(
        "body, fragment",
        [
            ('job("nightly", sh("t", "cargo test"), on="schedule")', "schedule"),
            ('job("lint")', "at least one step"),
            ('job("lint", sh("empty", "   "))', "needs a command"),
        ],
    )
    def test_dsl_errors_inside_workflow_are_definition_errors(self, tmp_path, body, fragment):
        path = write(tmp_path, f"""
            from pipegate import job, pipeline, sh

            def workflow():
                return pipeline({body})
        """)
        with pytest.raises(CIError, match=fragment) as exc_info:
            load_workflow(path)
        assert exc_info.value.kind == "definition"
        assert isinstance(exc_info.value.__cause__, ValueError)

    def test_reference_pipeline(self):
        p = load_workflow(REPO_ROOT / "pipegate_workflow.py")
        assert [j.name for j in p.jobs] == ["format", "check", "test", "clippy", "doc"]
        assert p.env["RUSTFLAGS"] == "-D warnings"
        assert p.env["CARGO_TERM_COLOR"] == "always"

        by_name = {j.name: j for j in p.jobs}
        assert by_name["doc"].env == {"RUSTDOCFLAGS": "-D warnings"}
        assert "--no-fail-fast" in by_name["test"].steps[0].args
        assert by_name["format"].steps[0].argv == ["cargo", "fmt", "--check", "--all"]
        assert all(j.on == ALL_TRIGGERS for j in p.jobs)
