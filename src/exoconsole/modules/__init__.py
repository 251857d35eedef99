"""exoconsole modules - Self-contained bricks following the brick philosophy

Each module is a self-contained component with clear contracts:
- Subprocess Helper: Run short-lived commands without pipe deadlocks
- Environment Detector: Classify the host and locate PowerShell
- Prerequisites Checker: Verify PowerShell is installed
- Interaction Handler: Operator prompts and output, with a test double
"""

from . import environment_detector, interaction_handler, prerequisites, subprocess_helper

__all__ = [
    "environment_detector",
    "interaction_handler",
    "prerequisites",
    "subprocess_helper",
]
