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

r"""Intel HEX format.

See Also:
    `<https://en.wikipedia.org/wiki/Intel_HEX>`_
"""

import enum
import logging
import re
from typing import Iterable
from typing import List
from typing import Optional
from typing import Tuple
from typing import Union

from bytesparse import Memory

from ..base import AnyBytes
from ..base import BaseEncoder
from ..base import BaseTag
from ..base import ChecksumMismatchError
from ..base import DataOverflowError
from ..base import InvalidSyntaxError
from ..base import LengthMismatchError
from ..base import Record
from ..base import UnsupportedRecordTypeError
from ..utils import hexlify
from ..utils import unhexlify

_logger = logging.getLogger(__name__)


class IntelTag(BaseTag, enum.IntEnum):
    r"""Intel HEX tag."""

    DATA = 0
    r"""Binary data."""

    END_OF_FILE = 1
    r"""End of file."""

    EXTENDED_SEGMENT_ADDRESS = 2
    r"""Extended segment address."""

    START_SEGMENT_ADDRESS = 3
    r"""Start segment address."""

    EXTENDED_LINEAR_ADDRESS = 4
    r"""Extended linear address."""

    START_LINEAR_ADDRESS = 5
    r"""Start linear address."""

    def is_data(self) -> bool:

        return self == 0

    def is_eof(self) -> bool:
        r"""Tells whether this is the *end of file* tag."""

        return self == 1

    def is_extension(self) -> bool:
        r"""Tells whether this tag sets the upper address bits.

        Examples:
            >>> IntelTag.EXTENDED_LINEAR_ADDRESS.is_extension()
            True
            >>> IntelTag.START_LINEAR_ADDRESS.is_extension()
            False
        """

        return self == 2 or self == 4

    def is_file_termination(self) -> bool:

        return self.is_eof()

    def is_start(self) -> bool:
        r"""Tells whether this tag carries the execution start address."""

        return self == 3 or self == 5


LINE_REGEX = re.compile(r'^:(?P<hexdata>([0-9A-F]{2}){5,})$')
r"""Record line syntax, after stripping and upper-casing."""


def build_record(
    tag: int,
    address: int = 0,
    data: AnyBytes = b'',
) -> str:
    r"""Builds an Intel HEX record.

    Args:
        tag (int):
            Record tag, ``0x00`` to ``0xFF``.

        address (int):
            Address field; only its lowest 16 bits are kept.

        data (bytes):
            Data field, up to 255 bytes.

    Returns:
        str: Record line, without line terminator.

    Raises:
        UnsupportedRecordTypeError: tag out of range.
        DataOverflowError: data too long.

    Examples:
        >>> build_record(0x00, 0x0010, b'address gap')
        ':0B0010006164647265737320676170A7'
        >>> build_record(IntelTag.END_OF_FILE)
        ':00000001FF'
    """

    tag = tag.__index__()
    if not 0 <= tag <= 0xFF:
        raise UnsupportedRecordTypeError('tag overflow')

    size = len(data)
    if size > 0xFF:
        raise DataOverflowError('data size overflow')

    address = address.__index__() & 0xFFFF
    checksum = size + (address >> 8) + (address & 0xFF) + tag + sum(data)
    checksum = (0x100 - (checksum & 0xFF)) & 0xFF

    return ':%02X%04X%02X%s%02X' % (size, address, tag, hexlify(data), checksum)


def parse_record(line: str) -> Record:
    r"""Parses an Intel HEX record.

    Surrounding whitespace is ignored, hexadecimal digits are case-insensitive.

    Args:
        line (str):
            Record line.

    Returns:
        :class:`Record`: Parsed record; its tag is an :class:`IntelTag` when
        known, a plain integer otherwise.

    Raises:
        InvalidSyntaxError: not an Intel HEX record.
        LengthMismatchError: byte count does not match the data length.
        ChecksumMismatchError: checksum error.

    Examples:
        >>> parse_record(':00000001FF')
        Record(tag=<IntelTag.END_OF_FILE: 1>, address=0, data=b'')
    """

    match = LINE_REGEX.match(line.strip().upper())
    if not match:
        raise InvalidSyntaxError('syntax error')

    raw = unhexlify(match.group('hexdata'))
    if raw[0] != len(raw) - 5:
        raise LengthMismatchError('count error')

    if sum(raw) & 0xFF:
        raise ChecksumMismatchError('checksum error')

    tag: Union[IntelTag, int] = raw[3]
    if tag <= IntelTag.START_LINEAR_ADDRESS:
        tag = IntelTag(tag)

    address = (raw[1] << 8) | raw[2]
    return Record(tag, address, raw[4:-1])


def apply_records(records: Iterable[Record]) -> Tuple[Memory, Optional[int]]:
    r"""Loads records into memory.

    Data records are written at their extended address, as set by the latest
    *extended linear address* or *extended segment address* record.

    Args:
        records (list of :class:`Record`):
            Parsed records, in file order.

    Returns:
        tuple: Loaded memory, and the start address (``None`` if missing).

    Examples:
        >>> records = [parse_record(':020000040001F9'),
        ...            parse_record(':03001000616263C7'),
        ...            parse_record(':00000001FF')]
        >>> memory, start = apply_records(records)
        >>> memory.start, memory.to_bytes()
        (65552, b'abc')
    """

    memory = Memory()
    extension = 0
    start = None

    for record in records:
        tag = record.tag

        if tag == IntelTag.DATA:
            memory.write(extension + record.address, record.data)

        elif tag == IntelTag.EXTENDED_LINEAR_ADDRESS:
            extension = int.from_bytes(record.data, 'big') << 16

        elif tag == IntelTag.EXTENDED_SEGMENT_ADDRESS:
            extension = int.from_bytes(record.data, 'big') << 4

        elif tag == IntelTag.START_LINEAR_ADDRESS or tag == IntelTag.START_SEGMENT_ADDRESS:
            start = int.from_bytes(record.data, 'big')

    return memory, start


class IntelEncoder(BaseEncoder):
    r"""Intel HEX streaming encoder.

    Data records carry the lowest 16 bits of their address; an *extended
    linear address* record announces the upper 16 bits before the first data
    record, and again whenever the data enters another 64 KiB segment.
    Data records never span across a segment boundary.

    After the data, an optional *start linear address* record (only for a
    non-zero `exec_address`) and the *end of file* record terminate the
    sequence.

    Args:
        base_address (int):
            Address of the first data byte, up to ``0xFFFFFFFF``.

        exec_address (int):
            Execution start address, up to ``0xFFFFFFFF``; zero means none.

        reclen (int):
            Maximum data length per record, 1 to 255.

        end (str):
            Line terminator.

    Examples:
        >>> encoder = IntelEncoder(base_address=0xFFFE, reclen=4)
        >>> encoder.feed(b'abcdef')
        [':020000040000FA\n', ':02FFFE0061623E\n', ':020000040001F9\n', ':04000000636465666A\n']
        >>> encoder.finish()
        [':00000001FF\n']
    """

    Tag = IntelTag

    build_record = staticmethod(build_record)
    parse_record = staticmethod(parse_record)
    apply_records = staticmethod(apply_records)

    def __init__(
        self,
        base_address: int = 0,
        exec_address: int = 0,
        reclen: int = BaseEncoder.RECLEN_DEFAULT,
        end: str = '\n',
    ):

        super().__init__(base_address=base_address,
                         exec_address=exec_address,
                         reclen=reclen,
                         end=end)

        self._segment: Optional[int] = None

    def _data_records(self, address: int, data: bytes) -> List[Record]:

        records = []
        segment = address >> 16

        if segment != self._segment:
            _logger.debug('extended linear address 0x%04X', segment)
            extension = segment.to_bytes(2, byteorder='big')
            records.append(Record(IntelTag.EXTENDED_LINEAR_ADDRESS, 0, extension))
            self._segment = segment

        records.append(Record(IntelTag.DATA, address & 0xFFFF, data))
        return records

    def _next_record_size(self) -> int:

        room = 0x10000 - (self._pointer & 0xFFFF)
        return min(self._reclen, room)

    def _trailer_records(self) -> List[Record]:

        records = []

        if self._exec_address:
            data = self._exec_address.to_bytes(4, byteorder='big')
            records.append(Record(IntelTag.START_LINEAR_ADDRESS, 0, data))

        records.append(Record(IntelTag.END_OF_FILE, 0, b''))
        return records
