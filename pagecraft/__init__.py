"""
Pagecraft: multi-page PDF edit sessions with annotation overlays.
"""
__version__ = "1.0.0"
