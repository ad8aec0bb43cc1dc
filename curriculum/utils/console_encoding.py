"""
UTF-8 console output for the command line utilities on Windows.
"""

import os
import sys


def setup_console_encoding():
    """
    Switches stdout/stderr to UTF-8 on a Windows terminal.

    Leaves streams alone elsewhere, under pytest, and when output is
    redirected, so captured or piped output keeps its encoding.
    """
    if sys.platform != "win32" or "pytest" in sys.modules:
        return

    if not sys.stdout.isatty() or not sys.stderr.isatty():
        return

    os.environ["PYTHONIOENCODING"] = "utf-8"
    for stream in (sys.stdout, sys.stderr):
        if hasattr(stream, "reconfigure"):
            stream.reconfigure(encoding="utf-8")
