# Copyright (c) 2013-2025, Andrea Zoppi
# All rights reserved.
#
# Redistribution and use in source and binary forms, with or without
# modification, are permitted provided that the following conditions are met:
#
# 1. Redistributions of source code must retain the above copyright notice,
#    this list of conditions and the following disclaimer.
#
# 2. Redistributions in binary form must reproduce the above copyright
#    notice, this list of conditions and the following disclaimer in the
#    documentation and/or other materials provided with the distribution.
#
# THIS SOFTWARE IS PROVIDED BY THE COPYRIGHT HOLDERS AND CONTRIBUTORS "AS IS"
# AND ANY EXPRESS OR IMPLIED WARRANTIES, INCLUDING, BUT NOT LIMITED TO, THE
# IMPLIED WARRANTIES OF MERCHANTABILITY AND FITNESS FOR A PARTICULAR PURPOSE
# ARE DISCLAIMED. IN NO EVENT SHALL THE COPYRIGHT HOLDER OR CONTRIBUTORS BE
# LIABLE FOR ANY DIRECT, INDIRECT, INCIDENTAL, SPECIAL, EXEMPLARY, OR
# CONSEQUENTIAL DAMAGES (INCLUDING, BUT NOT LIMITED TO, PROCUREMENT OF
# SUBSTITUTE GOODS OR SERVICES; LOSS OF USE, DATA, OR PROFITS; OR BUSINESS
# INTERRUPTION) HOWEVER CAUSED AND ON ANY THEORY OF LIABILITY, WHETHER IN
# CONTRACT, STRICT LIABILITY, OR TORT (INCLUDING NEGLIGENCE OR OTHERWISE)
# ARISING IN ANY WAY OUT OF THE USE OF THIS SOFTWARE, EVEN IF ADVISED OF THE
# POSSIBILITY OF SUCH DAMAGE.

r"""Signetics absolute object format.

Paper tape format of the Signetics 2650 development tools.

Each record carries its own address, without any record tag.
Two *block control characters* protect the record: one for the address and
byte count fields, one for the data field.
A record without data terminates the sequence, its address being the
execution start address.

See Also:
    Signetics 2650 microprocessor applications memo SS51.
"""

import re
from typing import Any
from typing import Iterable
from typing import List
from typing import Optional
from typing import Tuple

from bytesparse import Memory

from ..base import AnyBytes
from ..base import BaseEncoder
from ..base import ChecksumMismatchError
from ..base import DataOverflowError
from ..base import InvalidSyntaxError
from ..base import LengthMismatchError
from ..base import Record
from ..utils import hexlify
from ..utils import unhexlify

EOF_REGEX = re.compile(r'^:(?P<address>[0-9A-F]{4})00$')
r"""End record syntax, after stripping and upper-casing."""

LINE_REGEX = re.compile(r'^:(?P<hexdata>([0-9A-F]{2}){5,})$')
r"""Record line syntax, after stripping and upper-casing."""


def compute_bcc(data: AnyBytes, bcc: int = 0) -> int:
    r"""Computes the block control character.

    Each byte is XOR-ed into the 8-bit accumulator, which is then rotated left
    by one bit.

    Args:
        data (bytes):
            Bytes to fold.

        bcc (int):
            Initial accumulator value.

    Returns:
        int: Updated accumulator value.

    Examples:
        >>> hex(compute_bcc(b'\x05\x00\x0A'))
        '0x3c'
    """

    for value in data:
        bcc ^= value
        bcc <<= 1
        bcc |= (bcc >> 8) & 1
        bcc &= 0xFF
    return bcc


def build_record(
    tag: Any = None,
    address: int = 0,
    data: AnyBytes = b'',
) -> str:
    r"""Builds a Signetics record.

    Args:
        tag:
            Ignored, as there are no record tags in this format.

        address (int):
            Address field; only its lowest 16 bits are kept.

        data (bytes):
            Data field, up to 255 bytes.
            If empty, the short end record is built.

    Returns:
        str: Record line, without line terminator.

    Raises:
        DataOverflowError: data too long.

    Examples:
        >>> build_record(None, 0x0500, bytes.fromhex('0455B024FFF01F050400'))
        ':05000A3C0455B024FFF01F05040030'
        >>> build_record(None, 0x0500)
        ':050000'
    """

    address = address.__index__() & 0xFFFF
    size = len(data)

    if not size:
        return ':%04X00' % address

    if size > 0xFF:
        raise DataOverflowError('data size overflow')

    address_bcc = compute_bcc((address >> 8, address & 0xFF, size))
    data_bcc = compute_bcc(data)

    return ':%04X%02X%02X%s%02X' % (address, size, address_bcc, hexlify(data), data_bcc)


def parse_record(line: str) -> Record:
    r"""Parses a Signetics record.

    Surrounding whitespace is ignored, hexadecimal digits are case-insensitive.

    Args:
        line (str):
            Record line.

    Returns:
        :class:`Record`: Parsed record, without tag.

    Raises:
        InvalidSyntaxError: not a Signetics record.
        LengthMismatchError: byte count error.
        ChecksumMismatchError: address or data checksum error.

    Examples:
        >>> parse_record(':05000A3C0455B024FFF01F05040030')
        Record(tag=None, address=1280, data=b'\x04U\xb0$\xff\xf0\x1f\x05\x04\x00')
        >>> parse_record(':050000')
        Record(tag=None, address=1280, data=b'')
    """

    line = line.strip().upper()

    match = EOF_REGEX.match(line)
    if match:
        return Record(None, int(match.group('address'), 16), b'')

    match = LINE_REGEX.match(line)
    if not match:
        raise InvalidSyntaxError('syntax error')

    raw = unhexlify(match.group('hexdata'))
    if raw[2] != len(raw) - 5:
        raise LengthMismatchError('count error')

    if compute_bcc(raw[:3]) != raw[3]:
        raise ChecksumMismatchError('address checksum error')

    data = raw[4:-1]
    if compute_bcc(data) != raw[-1]:
        raise ChecksumMismatchError('data checksum error')

    address = (raw[0] << 8) | raw[1]
    return Record(None, address, data)


def apply_records(records: Iterable[Record]) -> Tuple[Memory, Optional[int]]:
    r"""Loads records into memory.

    Args:
        records (list of :class:`Record`):
            Parsed records, in file order.

    Returns:
        tuple: Loaded memory, and the start address of the end record
        (``None`` if missing).
    """

    memory = Memory()
    start = None

    for record in records:
        if record.data:
            memory.write(record.address, record.data)
        else:
            start = record.address

    return memory, start


class SigneticsEncoder(BaseEncoder):
    r"""Signetics streaming encoder.

    Data records are all `reclen` long, except the last one.
    The end record carries the execution address.

    Args:
        base_address (int):
            Address of the first data byte, up to ``0xFFFF``.

        exec_address (int):
            Execution start address, up to ``0xFFFF``.

        reclen (int):
            Maximum data length per record, 1 to 255.

        end (str):
            Line terminator.

    Examples:
        >>> encoder = SigneticsEncoder(base_address=0x0500, exec_address=0x0500, reclen=10)
        >>> encoder.feed(bytes.fromhex('0455B024FFF01F050400AA'))
        [':05000A3C0455B024FFF01F05040030\n']
        >>> encoder.finish()
        [':050A0102AA55\n', ':050000\n']
    """

    ADDRESS_MAX: int = 0xFFFF

    build_record = staticmethod(build_record)
    parse_record = staticmethod(parse_record)
    apply_records = staticmethod(apply_records)

    def _data_records(self, address: int, data: bytes) -> List[Record]:

        return [Record(None, address, data)]

    def _trailer_records(self) -> List[Record]:

        return [Record(None, self._exec_address, b'')]
