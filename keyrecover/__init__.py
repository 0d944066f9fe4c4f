# -*- coding: utf-8 -*-

"""
keyrecover recovers Windows and Office product keys from the registry. It is comprised of a small decoding core
(decode), access to the Windows registry (registry), the scanner that walks known registry locations (scan) and
output formatting (output).
"""

import os.path
import typing


__app_name__ = 'keyrecover'
__version__ = '1.0.0'

__status__ = 'Production'


# Exit codes
EXIT_SUCCESS = 0
EXIT_ERROR_SCAN = 1
EXIT_ERROR_OUTPUT = 2
EXIT_ERROR_ARGUMENTS = -1
EXIT_ERROR_EXCEPTION = -2


# Application root path
APP_PATH = os.path.dirname(os.path.abspath(__file__))

CONFIG_DEFAULT = os.path.join(APP_PATH, 'resources', 'keyrecover.yaml')


class ApplicationException(Exception):
    """ Base exception for all custom application exceptions that occur during runtime. """

    def get_user_str(self, separator: str = '\n') -> str:
        current_exc: typing.Optional[BaseException] = self
        exc_str = []

        while current_exc is not None:
            exc_str.append(str(current_exc))
            current_exc = current_exc.__cause__

        return separator.join(exc_str)
