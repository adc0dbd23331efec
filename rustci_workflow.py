# rustci_workflow.py
# Pipeline for the seite binary: build, lint, and a musl release on tag pushes.
from __future__ import annotations

from rustci.pipeline import PipelineConfig, pipeline


def workflow():
    return pipeline(
        PipelineConfig(
            binary="seite",
            target="x86_64-unknown-linux-musl",
        )
    )
