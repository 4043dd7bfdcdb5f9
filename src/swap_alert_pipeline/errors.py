"""Shared base for the errors that end a pipeline run.

Each collaborator module defines its own subclass; the orchestrator only
relies on the ``kind`` label to report which collaborator failed.
"""


class PipelineError(Exception):
    """Base exception for failures that terminate a single run."""

    kind = "PipelineError"
