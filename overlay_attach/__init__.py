"""Keep a click-through overlay window attached to an X11 target window."""

__version__ = "0.1.0"
