# src/cadenza/engine/__init__.py
"""Job engine: compile invocations, link compiled jobs to live handlers."""

from cadenza.engine.compiler import (
    JobCompiler,
    compile_job,
    load_invocations,
)
from cadenza.engine.linker import LinkedJob, LinkedStep, link_job

__all__ = [
    "JobCompiler",
    "LinkedJob",
    "LinkedStep",
    "compile_job",
    "link_job",
    "load_invocations",
]
