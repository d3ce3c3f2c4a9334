# pipegate_workflow.py
# The project's own CI gate: five independent checks run on every push and
# pull request, with warnings treated as errors everywhere.
from __future__ import annotations

from pipegate import job, pipeline, step

# every check runs against the whole workspace with every target enabled
ALL_TARGETS = ("--workspace", "--bins", "--examples", "--tests", "--benches", "--all-targets", "--all-features")


def workflow():
    return pipeline(
        job(
            "format",
            step("cargo fmt", "cargo", "fmt", "--check", "--all"),
        ),
        job(
            "check",
            step("cargo check", "cargo", "check", *ALL_TARGETS),
        ),
        job(
            "test",
            step("cargo test", "cargo", "test", *ALL_TARGETS, "--no-fail-fast"),
        ),
        job(
            "clippy",
            step("cargo clippy", "cargo", "clippy", *ALL_TARGETS),
        ),
        job(
            "doc",
            step("cargo doc", "cargo", "doc", "--workspace", "--bins", "--examples", "--all-features", "--no-deps"),
            env={"RUSTDOCFLAGS": "-D warnings"},
        ),
        env={
            "CARGO_TERM_COLOR": "always",
            "RUSTFLAGS": "-D warnings",
            "CARGO_INCREMENTAL": "0",
        },
        name="ci",
    )
