"""
Controllers that orchestrate the core editing logic.
"""
from .session_controller import (
    EditSessionController,
    SessionState,
    ShapeSettings,
    TextSettings,
)

__all__ = [
    'EditSessionController',
    'SessionState',
    'TextSettings',
    'ShapeSettings',
]
