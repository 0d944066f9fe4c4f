from __future__ import annotations

import typing
from dataclasses import dataclass

from keyrecover.decode import locate_key
from keyrecover.registry import RegistryError, RegistryKey, RegistryReader
from keyrecover.util.logging import LoggerObject


# Name of the binary value holding an encoded key, matched without regard to case
DIGITAL_PRODUCT_ID = 'digitalproductid'

# Prefix used when reporting the location of keys read directly from HKEY_LOCAL_MACHINE
HKLM_PREFIX = 'HKLM:\\'

DEFAULT_LOCATIONS = [
    'SOFTWARE\\Microsoft\\Windows NT\\CurrentVersion',
    'SOFTWARE\\Wow6432Node\\Microsoft\\Windows NT\\CurrentVersion',
    'SOFTWARE\\Microsoft\\Office\\16.0\\Registration',
    'SOFTWARE\\Wow6432Node\\Microsoft\\Office\\16.0\\Registration',
    'SOFTWARE\\Microsoft\\Office\\15.0\\Registration',
    'SOFTWARE\\Wow6432Node\\Microsoft\\Office\\15.0\\Registration',
    'SOFTWARE\\Microsoft\\Office\\14.0\\Registration',
    'SOFTWARE\\Wow6432Node\\Microsoft\\Office\\14.0\\Registration'
]

DEFAULT_OA3_LOCATION = 'SOFTWARE\\Microsoft\\Windows NT\\CurrentVersion'
DEFAULT_OA3_VALUE = 'OA3xOriginalProductKey'


@dataclass(frozen=True)
class ProductKeyRecord:
    """ A recovered product key and where it was found. """
    path: str
    value_name: str
    key: str


class KeyScanner(LoggerObject):
    """ Searches registry locations, and their direct subkeys, for product keys. """

    def __init__(self, reader: RegistryReader, locations: typing.Optional[typing.Sequence[str]] = None,
                 oa3_location: str = DEFAULT_OA3_LOCATION, oa3_value: typing.Optional[str] = DEFAULT_OA3_VALUE):
        """

        :param reader: registry access
        :param locations: key paths to search, in order
        :param oa3_location: key path holding the plain text firmware key
        :param oa3_value: name of the plain text firmware key value, if None the firmware key is not read
        """
        super().__init__()

        self._reader = reader
        self._locations = list(locations) if locations is not None else list(DEFAULT_LOCATIONS)
        self._oa3_location = oa3_location
        self._oa3_value = oa3_value

    def scan(self) -> typing.List[ProductKeyRecord]:
        """ Search all configured locations followed by the firmware key.

        :return: list of records in the order they were found, empty if no keys exist
        """
        records = []

        for location in self._locations:
            records.extend(self.scan_location(location))

        oa3_record = self.read_oa3_key()

        if oa3_record is not None:
            records.append(oa3_record)

        self.get_logger().info(f"Scan complete, found {len(records)} key(s)")

        return records

    def scan_location(self, location: str) -> typing.List[ProductKeyRecord]:
        """ Search a single key and its direct subkeys. Keys that cannot be opened are skipped.

        :param location: key path
        :return: list
        """
        try:
            key = self._reader.open_key(location)
        except RegistryError as exc:
            self.get_logger().debug(f"Skipping {location}: {exc!s}")
            return []

        with key:
            records = self._scan_key(key)

            try:
                subkey_names = key.subkey_names()
            except RegistryError as exc:
                self.get_logger().warning(f"Subkeys of {location} not searched: {exc!s}")
                return records

        for subkey_name in subkey_names:
            subkey_path = location + '\\' + subkey_name

            try:
                subkey = self._reader.open_key(subkey_path)
            except RegistryError as exc:
                self.get_logger().debug(f"Skipping {subkey_path}: {exc!s}")
                continue

            with subkey:
                records.extend(self._scan_key(subkey))

        return records

    def _scan_key(self, key: RegistryKey) -> typing.List[ProductKeyRecord]:
        records = []

        try:
            value_names = key.value_names()
        except RegistryError as exc:
            self.get_logger().warning(f"Values of {key.path} not searched: {exc!s}")
            return records

        for value_name in value_names:
            if value_name.lower() != DIGITAL_PRODUCT_ID:
                continue

            try:
                data = key.read_binary(value_name)
            except RegistryError as exc:
                self.get_logger().warning(f"Unable to read {key.path}\\{value_name}: {exc!s}")
                continue

            if len(data) == 0:
                continue

            product_key = locate_key(data)

            if product_key:
                self.get_logger().info(f"Decoded key from {key.path}\\{value_name}")
                records.append(ProductKeyRecord(key.path, value_name, product_key))
            else:
                self.get_logger().info(f"No decodable key in {key.path}\\{value_name} ({len(data)} bytes)")

        return records

    def read_oa3_key(self) -> typing.Optional[ProductKeyRecord]:
        """ Read the plain text firmware key. The stored value is reported as is.

        :return: record, or None if not present
        """
        if self._oa3_value is None:
            return None

        try:
            with self._reader.open_key(self._oa3_location) as key:
                value = key.read_string(self._oa3_value)
        except RegistryError as exc:
            self.get_logger().debug(f"No firmware key: {exc!s}")
            return None

        if not value:
            return None

        return ProductKeyRecord(HKLM_PREFIX + self._oa3_location, self._oa3_value, value)


def decode_buffers(buffers: typing.Iterable[typing.Tuple[str, bytes]]) -> typing.List[ProductKeyRecord]:
    """ Decode keys from buffers that did not come from the registry, such as exported DigitalProductId values.

    :param buffers: pairs of source name and raw value
    :return: list of records for each buffer holding a key
    """
    records = []

    for source, data in buffers:
        product_key = locate_key(data)

        if product_key:
            records.append(ProductKeyRecord(source, 'DigitalProductId', product_key))

    return records
