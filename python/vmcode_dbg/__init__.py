"""
vmcode-dbg inspector package.

Interactive shell for checking side-car metadata outside the editor: resolve
the side-car of an assembly source, load it with the same provider the
language server uses, and query hover/annotation output per line.  Use
``python -m vmcode_dbg`` or the ``vmcode-dbg`` script to launch it.
"""

from __future__ import annotations

from .cli import main

__all__ = ["main"]
