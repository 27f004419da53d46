"""Pipelines - node capture, cookbook and node reports."""

from .capture import CaptureProgress, NodeCapture, NodeCapturer
from .cookbooks import CookbooksReporter
from .nodes import generate_nodes_report

__all__ = [
    "CaptureProgress",
    "NodeCapture",
    "NodeCapturer",
    "CookbooksReporter",
    "generate_nodes_report",
]
