#!/usr/bin/env python3
# -*- coding: utf-8 -*-

import argparse
import logging
import logging.config
import os
import platform
import sys
import typing

import keyrecover
from keyrecover.config import ConfigManager, ConfigurationError
from keyrecover.decode import KeyFormatError, encode_key
from keyrecover.output import OutputError, format_output, write_output
from keyrecover.registry import RegistryError, RegistryReader
from keyrecover.scan import DEFAULT_OA3_LOCATION, KeyScanner, ProductKeyRecord, decode_buffers
from keyrecover.util.logging import DEBUG, get_logger
from keyrecover.versions import dependencies, python_version_tested


MESSAGE_NO_KEYS = 'No DigitalProductId values found in the scanned locations.\n' \
                  'This is normal for digitally-licensed systems.'


def wait_for_user() -> None:
    """ Hold the console open until enter is pressed. """
    print('\nPress Enter to exit...', end='', flush=True)

    try:
        input()
    except EOFError:
        # stdin closed or redirected
        pass


def load_config(config_paths: typing.Sequence[str]) -> ConfigManager:
    """ Load the packaged default configuration followed by any user supplied files.

    :param config_paths: additional YAML files, later files take priority
    :return: ConfigManager
    :raises ConfigurationError: if a file cannot be loaded
    """
    app_config = ConfigManager()
    app_config.load(keyrecover.CONFIG_DEFAULT)

    for config_path in config_paths:
        app_config.load(os.path.abspath(config_path))

    return app_config


def _log_runtime(root_logger) -> None:
    root_logger.debug(f"Launching: {keyrecover.__app_name__} v{keyrecover.__version__}")
    root_logger.debug(f"Command: {' '.join(sys.argv)}")
    root_logger.debug("Runtime: python {}".format(sys.version.replace('\n', ' ')))
    root_logger.debug(f"Interpreter: {sys.executable}")
    root_logger.debug(f"Platform: {platform.python_implementation()} on {platform.platform()}")

    if all((sys.version_info[:len(version)] != version for version in python_version_tested)):
        root_logger.warning(f"This version of Python has not been tested! Tested versions: "
                            f"{', '.join(['.'.join(map(str, version)) for version in python_version_tested])}")

    # Dump requirements versions
    for module_name, module_version in dependencies.items():
        root_logger.debug(f"Module: {module_name} {module_version}")


def _read_buffers(decode_paths: typing.Sequence[str]) -> typing.List[typing.Tuple[str, bytes]]:
    buffers = []

    for decode_path in decode_paths:
        decode_path = os.path.abspath(decode_path)

        with open(decode_path, 'rb') as decode_file:
            buffers.append((decode_path, decode_file.read()))

    return buffers


def run(app_config: ConfigManager, out: typing.Optional[str] = None, quiet: bool = False,
        decode_paths: typing.Optional[typing.Sequence[str]] = None,
        encode_keys: typing.Optional[typing.Sequence[str]] = None, registry_backend=None) -> int:
    """ Recover keys and report them.

    :param app_config: loaded configuration
    :param out: if provided output is written to this file instead of stdout
    :param quiet: if True only keys are output
    :param decode_paths: raw DigitalProductId files to decode instead of scanning the registry
    :param encode_keys: keys to encode, if provided nothing is decoded
    :param registry_backend: winreg compatible module, defaults to winreg
    :return: exit code
    """
    root_logger = get_logger(keyrecover.__app_name__)

    if encode_keys:
        for key in encode_keys:
            try:
                print(f"{key}: {encode_key(key).hex()}")
            except KeyFormatError as exc:
                print(f"Invalid key {key}: {exc.get_user_str(': ')}")
                return keyrecover.EXIT_ERROR_ARGUMENTS

        return keyrecover.EXIT_SUCCESS

    records: typing.List[ProductKeyRecord]

    if decode_paths:
        try:
            records = decode_buffers(_read_buffers(decode_paths))
        except OSError as exc:
            print(f"Error reading input: {exc!s}")
            return keyrecover.EXIT_ERROR_ARGUMENTS
    else:
        try:
            reader = RegistryReader(backend=registry_backend)
            scanner = KeyScanner(reader, app_config.get('scan.locations'),
                                 app_config.get('scan.oa3.location', default=DEFAULT_OA3_LOCATION),
                                 app_config.get('scan.oa3.value'))
            records = scanner.scan()
        except RegistryError as exc:
            root_logger.exception(f"Scan failed: {exc!s}")
            print(f"Error scanning for keys: {exc.get_user_str(': ')}")
            return keyrecover.EXIT_ERROR_SCAN

    if len(records) == 0:
        print(MESSAGE_NO_KEYS)
        return keyrecover.EXIT_SUCCESS

    output = format_output(records, quiet)

    if out:
        try:
            write_output(out, output)
        except OutputError as exc:
            root_logger.exception(f"Output failed: {exc!s}")
            print(f"Error writing to file: {exc.get_user_str(': ')}")
            return keyrecover.EXIT_ERROR_OUTPUT

        print(f"Successfully wrote output to {out}")
    else:
        print(output, end='')

    return keyrecover.EXIT_SUCCESS


def configure_logging(app_config: ConfigManager, debug: bool = False) -> None:
    """ Apply the logging section of the configuration.

    :param app_config: loaded configuration
    :param debug: if True all handlers are lowered to DEBUG
    :raises ConfigurationError: if the logging configuration is invalid
    """
    try:
        logging.config.dictConfig(app_config.dump()['logging'])
    except (KeyError, ValueError, TypeError, AttributeError, ImportError) as exc:
        raise ConfigurationError('Invalid logging configuration') from exc

    if debug:
        for handler in logging.getLogger().handlers:
            handler.setLevel(DEBUG)


def main(config_paths: typing.Sequence[str], out: typing.Optional[str] = None, quiet: bool = False,
         debug: bool = False, pause: typing.Optional[bool] = None,
         decode_paths: typing.Optional[typing.Sequence[str]] = None,
         encode_keys: typing.Optional[typing.Sequence[str]] = None) -> int:
    """ Launch the keyrecover application.

    :param config_paths: path(s) to additional configuration file(s)
    :param out: if provided output is written to this file instead of stdout
    :param quiet: if True only keys are output
    :param debug: if True debug messages are written to the console
    :param pause: wait for enter before exiting, if None the configured behaviour is used
    :param decode_paths: raw DigitalProductId files to decode instead of scanning the registry
    :param encode_keys: keys to encode
    :return: exit code
    """
    app_config: typing.Optional[ConfigManager] = None

    try:
        try:
            app_config = load_config(config_paths)
            configure_logging(app_config, debug)
        except ConfigurationError as exc:
            print(f"An error occurred while attempting to load application configuration: {exc.get_user_str(': ')}")
            return keyrecover.EXIT_ERROR_ARGUMENTS

        root_logger = get_logger(keyrecover.__app_name__)

        try:
            _log_runtime(root_logger)

            return run(app_config, out, quiet, decode_paths, encode_keys)
        except Exception as exc:
            root_logger.exception(f"Unhandled exception: {exc!s}")
            raise
    finally:
        if pause is None:
            # Without a usable configuration fall back to waiting
            pause = app_config is None or bool(app_config.get('cli.pause', default=True))

        if pause:
            wait_for_user()


def cli(argv: typing.Optional[typing.Sequence[str]] = None) -> int:
    """ A wrapper for the main function (mostly so we can exit if an argument error is found). """
    parser = argparse.ArgumentParser(description=f"{keyrecover.__app_name__} {keyrecover.__version__}")

    parser.add_argument('config', default=[], help='YAML configuration file', nargs='*')
    parser.add_argument('--out', dest='out', help='Write output to text file')
    parser.add_argument('-q', '--quiet', action='store_true', dest='quiet', help='Quiet mode (only keys)')
    parser.add_argument('--debug', action='store_true', dest='debug', help='Enable debug mode')
    parser.add_argument('--no-pause', action='store_false', dest='pause', default=None,
                        help='Exit without waiting for enter')
    parser.add_argument('--decode', action='append', dest='decode', metavar='FILE',
                        help='Decode a raw DigitalProductId file instead of scanning the registry')
    parser.add_argument('--encode', action='append', dest='encode', metavar='KEY',
                        help='Print the encoded form of a product key')

    try:
        app_args = parser.parse_args(argv)
    except SystemExit as exc:
        # argparse exits with 0 for --help and 2 for errors
        return keyrecover.EXIT_SUCCESS if exc.code == 0 else keyrecover.EXIT_ERROR_ARGUMENTS

    try:
        return main(app_args.config, app_args.out, app_args.quiet, app_args.debug, app_args.pause, app_args.decode,
                    app_args.encode)
    except Exception:
        # Logged by main
        return keyrecover.EXIT_ERROR_EXCEPTION


if __name__ == '__main__':
    sys.exit(cli())
