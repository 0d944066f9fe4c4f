import unittest
import unittest.mock

import keyrecover.registry
from keyrecover.decode import encode_key
from keyrecover.registry import RegistryKeyNotFoundError, RegistryReader, RegistryUnavailableError, \
    RegistryValueError
from keyrecover.scan import DEFAULT_LOCATIONS, KeyScanner, ProductKeyRecord, decode_buffers

from fake_registry import FakeWinreg


WINDOWS = 'SOFTWARE\\Microsoft\\Windows NT\\CurrentVersion'
OFFICE = 'SOFTWARE\\Microsoft\\Office\\16.0\\Registration'

KEY_WINDOWS = 'BCDFG-HJKMP-QRTVW-XY234-6789B'
KEY_OFFICE = 'CCCCC-DDDDD-FFFFF-GGGGG-HHHHH'
KEY_OA3 = 'NXXXX-XXXXX-XXXXX-XXXXX-XXXXX'


def _product_id(key: str) -> bytes:
    # Legacy DigitalProductId layout, key at offset 52 within a 164 byte value
    return bytes(52) + encode_key(key) + bytes(97)


class RegistryReaderTestCase(unittest.TestCase):
    def setUp(self):
        self.registry = FakeWinreg()

    def test_unavailable(self):
        with unittest.mock.patch.object(keyrecover.registry, 'winreg', None):
            with self.assertRaises(RegistryUnavailableError):
                RegistryReader()

    def test_view_fallback(self):
        self.registry.add_key(WINDOWS, access=[FakeWinreg.KEY_READ | FakeWinreg.KEY_WOW64_32KEY])

        reader = RegistryReader(backend=self.registry)

        with reader.open_key(WINDOWS) as key:
            self.assertEqual(key.path, WINDOWS)

        self.assertEqual([access for _, access in self.registry.open_calls], [
            FakeWinreg.KEY_READ,
            FakeWinreg.KEY_READ | FakeWinreg.KEY_WOW64_64KEY,
            FakeWinreg.KEY_READ | FakeWinreg.KEY_WOW64_32KEY
        ])

        self.assertTrue(all(handle.closed for handle in self.registry.handles), 'Handle not closed')

    def test_not_found(self):
        reader = RegistryReader(backend=self.registry)

        with self.assertRaises(RegistryKeyNotFoundError):
            reader.open_key(WINDOWS)

        self.assertEqual(len(self.registry.open_calls), 3)

    def test_value_types(self):
        self.registry.add_key(WINDOWS, {
            'DigitalProductId': (b'\x01\x02', FakeWinreg.REG_BINARY),
            'ProductName': ('Windows 7 Professional', FakeWinreg.REG_SZ)
        })

        with RegistryReader(backend=self.registry).open_key(WINDOWS) as key:
            self.assertEqual(key.read_binary('DigitalProductId'), b'\x01\x02')
            self.assertEqual(key.read_string('ProductName'), 'Windows 7 Professional')

            with self.assertRaises(RegistryValueError):
                key.read_string('DigitalProductId')

            with self.assertRaises(RegistryValueError):
                key.read_binary('ProductName')

            with self.assertRaises(RegistryValueError):
                key.read_binary('Missing')


class KeyScannerTestCase(unittest.TestCase):
    def setUp(self):
        self.registry = FakeWinreg()
        self.reader = RegistryReader(backend=self.registry)

    def _scanner(self, **kwargs) -> KeyScanner:
        return KeyScanner(self.reader, **kwargs)

    def test_empty(self):
        self.assertEqual(self._scanner().scan(), [])

    def test_location_and_subkeys(self):
        self.registry.add_key(WINDOWS, {
            'ProductName': ('Windows 7 Professional', FakeWinreg.REG_SZ),
            'DigitalProductId': (_product_id(KEY_WINDOWS), FakeWinreg.REG_BINARY)
        })
        self.registry.add_key(OFFICE)
        self.registry.add_key(OFFICE + '\\{90160000-0011-0000-0000-0000000FF1CE}', {
            'digitalproductid': (_product_id(KEY_OFFICE), FakeWinreg.REG_BINARY)
        })

        records = self._scanner(oa3_value=None).scan()

        self.assertEqual(records, [
            ProductKeyRecord(WINDOWS, 'DigitalProductId', KEY_WINDOWS),
            ProductKeyRecord(OFFICE + '\\{90160000-0011-0000-0000-0000000FF1CE}', 'digitalproductid', KEY_OFFICE)
        ])

        self.assertTrue(all(handle.closed for handle in self.registry.handles), 'Handle not closed')

    def test_location_order(self):
        self.registry.add_key(OFFICE, {'DigitalProductId': (_product_id(KEY_OFFICE), FakeWinreg.REG_BINARY)})
        self.registry.add_key(WINDOWS, {'DigitalProductId': (_product_id(KEY_WINDOWS), FakeWinreg.REG_BINARY)})

        keys = [record.key for record in self._scanner().scan()]

        self.assertEqual(keys, [KEY_WINDOWS, KEY_OFFICE])
        self.assertLess(DEFAULT_LOCATIONS.index(WINDOWS), DEFAULT_LOCATIONS.index(OFFICE))

    def test_skip_invalid_values(self):
        self.registry.add_key(WINDOWS, {
            'DigitalProductId': (bytes(164), FakeWinreg.REG_BINARY),
            'DigitalProductId4': (_product_id(KEY_WINDOWS), FakeWinreg.REG_BINARY)
        })
        self.registry.add_key(OFFICE, {'DigitalProductId': ('not binary', FakeWinreg.REG_SZ)})
        self.registry.add_key(OFFICE + '\\Empty', {'DigitalProductId': (b'', FakeWinreg.REG_BINARY)})

        self.assertEqual(self._scanner(oa3_value=None).scan(), [])

    def test_oa3_passthrough(self):
        self.registry.add_key(WINDOWS, {'OA3xOriginalProductKey': (KEY_OA3, FakeWinreg.REG_SZ)})

        records = self._scanner().scan()

        self.assertEqual(records, [ProductKeyRecord('HKLM:\\' + WINDOWS, 'OA3xOriginalProductKey', KEY_OA3)])

    def test_oa3_after_locations(self):
        self.registry.add_key(WINDOWS, {
            'OA3xOriginalProductKey': (KEY_OA3, FakeWinreg.REG_SZ),
            'DigitalProductId': (_product_id(KEY_WINDOWS), FakeWinreg.REG_BINARY)
        })

        keys = [record.key for record in self._scanner().scan()]

        self.assertEqual(keys, [KEY_WINDOWS, KEY_OA3])

    def test_oa3_blank(self):
        self.registry.add_key(WINDOWS, {'OA3xOriginalProductKey': ('', FakeWinreg.REG_SZ)})

        self.assertIsNone(self._scanner().read_oa3_key())
        self.assertEqual(self._scanner().scan(), [])

    def test_custom_locations(self):
        location = 'SOFTWARE\\Vendor\\Registration'
        self.registry.add_key(location, {'DigitalProductId': (_product_id(KEY_OFFICE), FakeWinreg.REG_BINARY)})
        self.registry.add_key(WINDOWS, {'DigitalProductId': (_product_id(KEY_WINDOWS), FakeWinreg.REG_BINARY)})

        records = self._scanner(locations=[location], oa3_value=None).scan()

        self.assertEqual(records, [ProductKeyRecord(location, 'DigitalProductId', KEY_OFFICE)])


class DecodeBuffersTestCase(unittest.TestCase):
    def test_decode(self):
        records = decode_buffers([
            ('first.bin', _product_id(KEY_WINDOWS)),
            ('blank.bin', bytes(164)),
            ('short.bin', b'\x01' * 10),
            ('second.bin', _product_id(KEY_OFFICE))
        ])

        self.assertEqual(records, [
            ProductKeyRecord('first.bin', 'DigitalProductId', KEY_WINDOWS),
            ProductKeyRecord('second.bin', 'DigitalProductId', KEY_OFFICE)
        ])


if __name__ == '__main__':
    unittest.main()
