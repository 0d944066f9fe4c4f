import logging
import typing


# Shortcuts
NOTSET = logging.NOTSET
DEBUG_SCAN = logging.DEBUG - 1
DEBUG = logging.DEBUG
INFO = logging.INFO
WARNING = logging.WARNING
ERROR = logging.ERROR
CRITICAL = logging.CRITICAL

# New logging levels
logging.addLevelName(DEBUG_SCAN, 'SCAN')


class _ModifiedLogger(logging.Logger):
    def debug_scan(self, msg, *args, **kwargs) -> None:
        """ Debug for individual decode attempts during a buffer scan, normally far too verbose to be useful.

        :param msg: passed to log
        :param args: passed to log
        :param kwargs: passed to log
        """
        if self.isEnabledFor(DEBUG_SCAN):
            self.log(DEBUG_SCAN, msg, *args, stacklevel=2, **kwargs)


# Use derived logger class
logging.setLoggerClass(_ModifiedLogger)


def get_logger(name: typing.Optional[str] = None) -> _ModifiedLogger:
    """ Get a wrapped Logging object.

    :param name: name of the Logger to get from the logging library
    :return: logger
    """
    logger = logging.getLogger(name)
    logger = typing.cast(_ModifiedLogger, logger)

    # Ensure logger is enabled
    logger.disabled = False

    return logger


class LoggerObject(object):
    """ Base class for objects that needs to access to a logger. """
    def __init__(self, logger_name_prefix: typing.Optional[str] = None, logger_name: typing.Optional[str] = None,
                 logger_name_postfix: typing.Optional[str] = None):
        """
        Creates a new object that has a logging capability. An optional custom name and/or a custom name may be
        appended to the fetched logger.

        :param logger_name_prefix: string to prepend to the logger name
        :param logger_name: string to use as the logger name, defaults to the class name
        :param logger_name_postfix: string to append to the logger name
        """
        # If no name is provided then used the class name as the logger name
        logger_name = (logger_name_prefix or '') + (logger_name or self.__class__.__name__) + \
                      (logger_name_postfix or '')

        # Get a logger based upon this name
        self.__logger = get_logger(logger_name)

    def get_logger(self) -> _ModifiedLogger:
        return self.__logger
