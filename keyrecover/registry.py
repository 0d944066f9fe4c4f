"""
Read only access to the Windows registry.

Keys are opened with the default view first, then explicitly through the 64-bit and 32-bit views, since a 32-bit
interpreter on a 64-bit system is otherwise redirected away from some of the locations that hold product keys.
"""

import typing

from keyrecover import ApplicationException
from keyrecover.util.logging import LoggerObject

try:
    import winreg
except ImportError:
    # Not running on Windows
    winreg = None


class RegistryError(ApplicationException):
    """ Base exception for all errors raised while reading the registry. """
    pass


class RegistryUnavailableError(RegistryError):
    """ Exception thrown when the registry cannot be accessed at all on this platform. """
    pass


class RegistryKeyNotFoundError(RegistryError):
    """ Exception thrown when a key could not be opened in any registry view. """
    pass


class RegistryValueError(RegistryError):
    """ Exception thrown when a value is missing or is not of the requested type. """
    pass


class RegistryKey(object):
    """ An open registry key, close after use or use as a context manager. """

    def __init__(self, backend, handle, path: str):
        self._backend = backend
        self._handle = handle
        self.path = path

    def __enter__(self) -> 'RegistryKey':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def __str__(self) -> str:
        return self.path

    def close(self) -> None:
        if self._handle is not None:
            self._backend.CloseKey(self._handle)
            self._handle = None

    def subkey_names(self) -> typing.List[str]:
        """ Get the names of all direct subkeys.

        :return: list
        """
        try:
            subkey_count, _, _ = self._backend.QueryInfoKey(self._handle)

            return [self._backend.EnumKey(self._handle, n) for n in range(subkey_count)]
        except OSError as exc:
            raise RegistryError(f"Unable to list subkeys of {self.path}") from exc

    def value_names(self) -> typing.List[str]:
        """ Get the names of all values held by this key.

        :return: list
        """
        try:
            _, value_count, _ = self._backend.QueryInfoKey(self._handle)

            return [self._backend.EnumValue(self._handle, n)[0] for n in range(value_count)]
        except OSError as exc:
            raise RegistryError(f"Unable to list values of {self.path}") from exc

    def _read(self, name: str, value_types: typing.Sequence[int]) -> typing.Any:
        try:
            value, value_type = self._backend.QueryValueEx(self._handle, name)
        except OSError as exc:
            raise RegistryValueError(f"Value {name} not readable in {self.path}") from exc

        if value_type not in value_types:
            raise RegistryValueError(f"Value {name} in {self.path} has unexpected type {value_type}")

        return value

    def read_binary(self, name: str) -> bytes:
        """ Read a REG_BINARY value.

        :param name: value name
        :return: raw value
        :raises RegistryValueError: if value is missing or not binary
        """
        value = self._read(name, (self._backend.REG_BINARY,))

        return bytes(value) if value is not None else b''

    def read_string(self, name: str) -> str:
        """ Read a REG_SZ or REG_EXPAND_SZ value.

        :param name: value name
        :return: value
        :raises RegistryValueError: if value is missing or not a string
        """
        return self._read(name, (self._backend.REG_SZ, self._backend.REG_EXPAND_SZ))


class RegistryReader(LoggerObject):
    """ Opens keys below a root hive, HKEY_LOCAL_MACHINE by default. """

    def __init__(self, root: typing.Optional[int] = None, backend=None):
        """

        :param root: root hive handle
        :param backend: module implementing the winreg interface, defaults to winreg
        :raises RegistryUnavailableError: if no backend is provided and winreg is not available
        """
        super().__init__()

        if backend is None:
            backend = winreg

        if backend is None:
            raise RegistryUnavailableError('Windows registry is not available on this platform')

        self._backend = backend
        self._root = root if root is not None else backend.HKEY_LOCAL_MACHINE

    def _access_masks(self) -> typing.List[int]:
        key_read = self._backend.KEY_READ

        return [
            key_read,
            key_read | self._backend.KEY_WOW64_64KEY,
            key_read | self._backend.KEY_WOW64_32KEY
        ]

    def open_key(self, path: str) -> RegistryKey:
        """ Open a key, trying the default, 64-bit and 32-bit registry views in that order.

        :param path: key path below the root hive
        :return: open key
        :raises RegistryKeyNotFoundError: if the key could not be opened in any view
        """
        last_exc = None

        for access in self._access_masks():
            try:
                handle = self._backend.OpenKey(self._root, path, 0, access)
            except OSError as exc:
                self.get_logger().debug(f"Failed to open {path} (access: {access:#x}): {exc!s}")
                last_exc = exc
                continue

            return RegistryKey(self._backend, handle, path)

        raise RegistryKeyNotFoundError(f"Unable to open registry key {path}") from last_exc
