"""Hand a connection URI to a local psql process."""

from __future__ import annotations

import logging
import shutil
import signal
import subprocess
from collections.abc import Sequence

from neonctl.errors import NeonCtlError

logger = logging.getLogger(__name__)

_FORWARDED_SIGNALS = (signal.SIGINT, signal.SIGTERM)


def run_psql(connection_uri: str, args: Sequence[str] = ()) -> int:
    """Run psql attached to the terminal and return its exit code.

    SIGINT/SIGTERM received while psql runs are passed on to it; psql decides
    whether to exit, and its exit code becomes ours.
    """
    executable = shutil.which("psql")
    if executable is None:
        raise NeonCtlError("psql is not available in the PATH")

    logger.debug("Starting psql with %d extra argument(s)", len(args))
    proc = subprocess.Popen([executable, connection_uri, *args])

    def forward(signum: int, _frame: object) -> None:
        if proc.poll() is None:
            proc.send_signal(signum)

    previous = {sig: signal.signal(sig, forward) for sig in _FORWARDED_SIGNALS}
    try:
        code = proc.wait()
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)
    # Killed by a signal: negative returncode.
    return code if code >= 0 else 128 - code
