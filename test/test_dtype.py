import os
import sys
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))
from ndview.dtype import DType, dtypes, NATIVE
import unittest, struct

class TestDType(unittest.TestCase):
  def test_equality_ignores_name(self):
    self.assertEqual(DType(8, 'double', 'd'), dtypes.float64)
    self.assertEqual(hash(DType(8, 'double', 'd')), hash(dtypes.float64))
    self.assertNotEqual(dtypes.int64, dtypes.uint64)
    self.assertNotEqual(dtypes.float64, dtypes.float64.newbyteorder())

  def test_byteorder(self):
    swapped = dtypes.int32.newbyteorder()
    self.assertFalse(swapped.isnative)
    self.assertTrue(swapped.compatible(dtypes.int32))
    self.assertEqual(swapped.newbyteorder(), dtypes.int32)
    self.assertTrue(dtypes.uint8.newbyteorder().isnative)

  def test_typestr(self):
    self.assertEqual(dtypes.float64.typestr, NATIVE + 'f8')
    self.assertEqual(dtypes.uint8.typestr, '|u1')
    self.assertEqual(dtypes.bool.typestr, '|b1')
    self.assertEqual(DType(2, 'int16', 'h', '>').typestr, '>i2')

  def test_get_dtype(self):
    self.assertIs(dtypes.get_dtype(1.5), dtypes.float64)
    self.assertIs(dtypes.get_dtype(True), dtypes.bool)
    self.assertIs(dtypes.get_dtype(3), dtypes.int64)

  def test_from_format(self):
    self.assertEqual(dtypes.from_format('d'), dtypes.float64)
    self.assertEqual(dtypes.from_format('<H'), DType(2, 'uint16', 'H', '<'))
    self.assertEqual(dtypes.from_format('>i').byteorder, '>')
    self.assertEqual(dtypes.from_format('!i').byteorder, '>')
    self.assertEqual(dtypes.from_format('l').itemsize, struct.calcsize('l'))
    self.assertEqual(dtypes.from_format('<l').itemsize, 4)
    with self.assertRaises(TypeError): dtypes.from_format('x')
    with self.assertRaises(TypeError): dtypes.from_format('2d')

  def test_pack_unpack(self):
    buffer = bytearray(8)
    dtypes.float64.pack(buffer, 0, 2.5)
    self.assertEqual(dtypes.float64.unpack(buffer, 0), 2.5)
    DType(2, 'int16', 'h', '>').pack(buffer, 2, 258)
    self.assertEqual(bytes(buffer[2:4]), b'\x01\x02')

  def test_invalid(self):
    with self.assertRaises(AssertionError): DType(4, 'broken', 'd')
    with self.assertRaises(AssertionError): DType(1, 'broken', 'x')

  def test_repr(self):
    self.assertEqual(repr(dtypes.float32), 'dtypes.float32')
    self.assertEqual(repr(dtypes.float32.newbyteorder()), 'dtypes.float32.newbyteorder()')

if __name__ == '__main__':
  unittest.main()
