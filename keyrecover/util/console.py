"""
Console logging output. Records are styled with ANSI sequences by level, colorama translates those sequences for
legacy Windows consoles.
"""

import bisect
import logging
import sys
import typing

import colorama


# ANSI prefix applied to records at or above each level
LEVEL_STYLES = {
    logging.NOTSET: colorama.Style.DIM + colorama.Fore.WHITE,
    logging.INFO: '',
    logging.WARNING: colorama.Style.BRIGHT + colorama.Fore.YELLOW,
    logging.ERROR: colorama.Style.BRIGHT + colorama.Fore.RED,
    logging.CRITICAL: colorama.Back.RED + colorama.Fore.BLACK
}


class ColoramaStreamHandler(logging.StreamHandler):
    """ Stream handler that styles records by level when writing to a terminal.

    A level without its own style uses the style of the closest level below it, so SCAN records look like DEBUG
    records. Only the first line of a record and the closing line of an attached traceback are styled.
    """

    def __init__(self, stream: typing.Optional[typing.TextIO] = None,
                 level_styles: typing.Optional[typing.Dict[int, str]] = None, colour: typing.Optional[bool] = None):
        """ Create a handler, by default records are only styled when the stream is interactive.

        :param stream: output stream, defaults to sys.stderr
        :param level_styles: mapping of level to ANSI prefix, defaults to LEVEL_STYLES
        :param colour: if provided overrides terminal detection
        """
        super().__init__(colorama.AnsiToWin32(stream or sys.stderr).stream)

        if level_styles is None:
            level_styles = LEVEL_STYLES

        self._levels = sorted(level_styles)
        self._styles = [level_styles[level] for level in self._levels]
        self._colour = colour

    def use_colour(self) -> bool:
        if self._colour is not None:
            return self._colour

        isatty = getattr(self.stream, 'isatty', None)

        return bool(isatty and isatty())

    def get_style(self, levelno: int) -> str:
        index = bisect.bisect_right(self._levels, levelno) - 1

        return self._styles[index] if index >= 0 else ''

    def colorize(self, message: str, record: logging.LogRecord) -> str:
        style = self.get_style(record.levelno)

        if not style:
            return message

        return style + message + colorama.Style.RESET_ALL

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)

        if not self.use_colour():
            return message

        lines = message.split('\n')
        lines[0] = self.colorize(lines[0], record)

        if record.exc_info and len(lines) > 1:
            # Exception type and message
            lines[-1] = self.colorize(lines[-1], record)

        return '\n'.join(lines)
