from __future__ import annotations

import logging
import traceback
from typing import TextIO


class LaunchLog:
    """
    Progress log for one launch attempt.

    Every event is written as a human-readable line to ``sink`` (the stream
    the operator watches) and recorded at DEBUG on the ``ec2_launcher``
    logger. The sink is append-only and may be shared between attempts.
    """

    def __init__(self, sink: TextIO, name: str = "ec2_launcher") -> None:
        self.sink = sink
        self._logger = logging.getLogger(name)

    def _emit(self, text: str) -> None:
        self.sink.write(text + "\n")
        self.sink.flush()

    def info(self, msg: str, *args: object) -> None:
        self._emit(msg % args if args else msg)
        self._logger.debug(msg, *args)

    def warning(self, msg: str, *args: object) -> None:
        self._emit("WARNING: " + (msg % args if args else msg))
        self._logger.warning(msg, *args)

    def exception(self, msg: str, exc: BaseException) -> None:
        self._emit(msg)
        self.sink.write("".join(traceback.format_exception(type(exc), exc, exc.__traceback__)))
        self.sink.flush()
        self._logger.debug(msg, exc_info=exc)

    def write(self, text: str) -> None:
        """Copy raw remote output to the sink."""
        self.sink.write(text)
        self.sink.flush()
