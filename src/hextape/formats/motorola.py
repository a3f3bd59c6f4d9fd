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

r"""Motorola S-record format.

See Also:
    `<https://en.wikipedia.org/wiki/SREC_(file_format)>`_
"""

import enum
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
from ..base import ConfigurationError
from ..base import DataOverflowError
from ..base import InvalidSyntaxError
from ..base import LengthMismatchError
from ..base import Record
from ..base import UnsupportedRecordTypeError
from ..utils import hexlify
from ..utils import unhexlify


class MotorolaTag(BaseTag, enum.IntEnum):
    r"""Motorola S-record tag."""

    HEADER = 0
    r"""Header string. Optional."""

    DATA_16 = 1
    r"""16-bit address data record."""

    DATA_24 = 2
    r"""24-bit address data record."""

    DATA_32 = 3
    r"""32-bit address data record."""

    RESERVED = 4
    r"""Reserved tag."""

    COUNT_16 = 5
    r"""16-bit record count. Optional."""

    COUNT_24 = 6
    r"""24-bit record count. Optional."""

    START_32 = 7
    r"""32-bit start address. Terminates :attr:`DATA_32`."""

    START_24 = 8
    r"""24-bit start address. Terminates :attr:`DATA_24`."""

    START_16 = 9
    r"""16-bit start address. Terminates :attr:`DATA_16`."""

    @classmethod
    def fit_count_tag(cls, count: int) -> 'MotorolaTag':
        r"""Fits the record count tag.

        Args:
            count (int):
                Number of data records.

        Returns:
            :class:`MotorolaTag`: The most compact *count* tag.

        Raises:
            ValueError: invalid `count`.

        Examples:
            >>> MotorolaTag.fit_count_tag(0xFFFF)
            <MotorolaTag.COUNT_16: 5>
            >>> MotorolaTag.fit_count_tag(0x10000)
            <MotorolaTag.COUNT_24: 6>
        """

        if count < 0:
            raise ValueError('count overflow')
        if count <= 0xFFFF:
            return cls.COUNT_16
        if count <= 0xFFFFFF:
            return cls.COUNT_24
        raise ValueError('count overflow')

    @classmethod
    def fit_data_tag(cls, address: int) -> 'MotorolaTag':
        r"""Fits the data record tag.

        Args:
            address (int):
                Address of the data record.

        Returns:
            :class:`MotorolaTag`: The most compact *data* tag.

        Raises:
            ValueError: invalid `address`.

        Examples:
            >>> MotorolaTag.fit_data_tag(0xFFFF)
            <MotorolaTag.DATA_16: 1>
            >>> MotorolaTag.fit_data_tag(0xFFFFFF)
            <MotorolaTag.DATA_24: 2>
            >>> MotorolaTag.fit_data_tag(0x1000000)
            <MotorolaTag.DATA_32: 3>
        """

        if address < 0:
            raise ValueError('address overflow')
        if address <= 0xFFFF:
            return cls.DATA_16
        if address <= 0xFFFFFF:
            return cls.DATA_24
        if address <= 0xFFFFFFFF:
            return cls.DATA_32
        raise ValueError('address overflow')

    @classmethod
    def fit_start_tag(cls, address: int) -> 'MotorolaTag':
        r"""Fits the start address record tag.

        Args:
            address (int):
                Start address.

        Returns:
            :class:`MotorolaTag`: The most compact *start address* tag.

        Raises:
            ValueError: invalid `address`.

        Examples:
            >>> MotorolaTag.fit_start_tag(0xFFFF)
            <MotorolaTag.START_16: 9>
            >>> MotorolaTag.fit_start_tag(0x10000)
            <MotorolaTag.START_24: 8>
            >>> MotorolaTag.fit_start_tag(0xFFFFFFFF)
            <MotorolaTag.START_32: 7>
        """

        if address < 0:
            raise ValueError('address overflow')
        if address <= 0xFFFF:
            return cls.START_16
        if address <= 0xFFFFFF:
            return cls.START_24
        if address <= 0xFFFFFFFF:
            return cls.START_32
        raise ValueError('address overflow')

    def get_address_size(self) -> int:
        r"""Size of the address field, in bytes.

        Returns zero for :attr:`RESERVED`.

        Examples:
            >>> MotorolaTag.COUNT_24.get_address_size()
            3
        """

        return ADDRESS_SIZES.get(self, 0)

    def get_data_max(self) -> int:
        r"""Maximum data field size, in bytes.

        Examples:
            >>> MotorolaTag.DATA_16.get_data_max()
            252
            >>> MotorolaTag.DATA_32.get_data_max()
            250
        """

        size = self.get_address_size()
        return (0xFE - size) if size else 0

    def is_count(self) -> bool:

        return self == self.COUNT_16 or self == self.COUNT_24

    def is_data(self) -> bool:

        return (self == self.DATA_16 or
                self == self.DATA_24 or
                self == self.DATA_32)

    def is_file_termination(self) -> bool:

        return self.is_start()

    def is_header(self) -> bool:

        return self == self.HEADER

    def is_start(self) -> bool:

        return (self == self.START_16 or
                self == self.START_24 or
                self == self.START_32)


ADDRESS_SIZES = {
    0: 2, 1: 2, 5: 2, 9: 2,
    2: 3, 6: 3, 8: 3,
    3: 4, 7: 4,
}
r"""Address field size, in bytes, for each supported tag."""

LINE_REGEX = re.compile(r'^S(?P<tag>[0-9])(?P<hexdata>([0-9A-F]{2})+)$')
r"""Record line syntax, after stripping and upper-casing."""


def build_record(
    tag: int,
    address: int = 0,
    data: AnyBytes = b'',
) -> str:
    r"""Builds a Motorola S-record.

    The width of the address field depends on the tag:

    * 16 bits for ``S0``, ``S1``, ``S5``, ``S9``;
    * 24 bits for ``S2``, ``S6``, ``S8``;
    * 32 bits for ``S3``, ``S7``.

    Args:
        tag (int):
            Record tag.

        address (int):
            Address field; masked to the width of the field.

        data (bytes):
            Data field; its size is limited by the 8-bit byte count.

    Returns:
        str: Record line, without line terminator.

    Raises:
        UnsupportedRecordTypeError: unsupported tag.
        DataOverflowError: data too long.

    Examples:
        >>> build_record(1, 0x0038, b'Hello world.\n\0')
        'S111003848656C6C6F20776F726C642E0A0042'
        >>> build_record(MotorolaTag.START_32, 0x12345678)
        'S70512345678E6'
    """

    tag = tag.__index__()
    size = ADDRESS_SIZES.get(tag)
    if size is None:
        raise UnsupportedRecordTypeError(f'unsupported tag: {tag}')

    count = len(data) + size + 1
    if count > 0xFF:
        raise DataOverflowError('data size overflow')

    address = address.__index__() & ((1 << (size << 3)) - 1)
    address_bytes = address.to_bytes(size, byteorder='big')
    checksum = count + sum(address_bytes) + sum(data)
    checksum = (checksum & 0xFF) ^ 0xFF

    return 'S%d%02X%s%s%02X' % (tag, count, hexlify(address_bytes), hexlify(data), checksum)


def parse_record(line: str) -> Record:
    r"""Parses a Motorola S-record.

    Surrounding whitespace is ignored, hexadecimal digits are case-insensitive.
    The bare ``S9`` line is accepted as a shortened start address record.

    The checksum is always enforced.

    Args:
        line (str):
            Record line.

    Returns:
        :class:`Record`: Parsed record.

    Raises:
        InvalidSyntaxError: not a Motorola S-record.
        UnsupportedRecordTypeError: reserved tag.
        LengthMismatchError: byte count error.
        ChecksumMismatchError: checksum error.

    Examples:
        >>> parse_record('S111003848656C6C6F20776F726C642E0A0042')
        Record(tag=<MotorolaTag.DATA_16: 1>, address=56, data=b'Hello world.\n\x00')
        >>> parse_record('S9')
        Record(tag=<MotorolaTag.START_16: 9>, address=0, data=b'')
    """

    line = line.strip().upper()
    if line == 'S9':
        return Record(MotorolaTag.START_16, 0, b'')

    match = LINE_REGEX.match(line)
    if not match:
        raise InvalidSyntaxError('syntax error')

    tag = MotorolaTag(int(match.group('tag')))
    if tag == MotorolaTag.RESERVED:
        raise UnsupportedRecordTypeError('reserved tag')

    raw = unhexlify(match.group('hexdata'))
    count = raw[0]
    size = tag.get_address_size()
    if count != len(raw) - 1 or count < size + 1:
        raise LengthMismatchError('count error')

    if (sum(raw) & 0xFF) != 0xFF:
        raise ChecksumMismatchError('checksum error')

    address = int.from_bytes(raw[1:(1 + size)], byteorder='big')
    return Record(tag, address, raw[(1 + size):-1])


def apply_records(records: Iterable[Record]) -> Tuple[Memory, Optional[int]]:
    r"""Loads records into memory.

    Args:
        records (list of :class:`Record`):
            Parsed records, in file order.

    Returns:
        tuple: Loaded memory, and the start address (``None`` if missing).
    """

    memory = Memory()
    start = None

    for record in records:
        tag = MotorolaTag(record.tag)

        if tag.is_data():
            memory.write(record.address, record.data)

        elif tag.is_start():
            start = record.address

    return memory, start


class MotorolaEncoder(BaseEncoder):
    r"""Motorola S-record streaming encoder.

    Record tags follow the magnitude of their address field: data records are
    ``S1``, ``S2`` or ``S3`` depending on their address; the record count is
    ``S5`` or ``S6`` depending on the number of data records; the termination
    record is ``S9``, ``S8`` or ``S7`` depending on the execution address.

    Args:
        header (str or bytes):
            Optional header contents, becoming the first record (``S0``).
            Text is encoded as ASCII.
            It cannot be longer than `reclen`.

        base_address (int):
            Address of the first data byte, up to ``0xFFFFFFFF``.

        exec_address (int):
            Execution start address, up to ``0xFFFFFFFF``.

        reclen (int):
            Maximum data length per record, 1 to 250.

        end (str):
            Line terminator.

    Examples:
        >>> encoder = MotorolaEncoder(header='HDR', reclen=4)
        >>> encoder.feed(b'abcdef')
        ['S00600004844521B\n', 'S1070000616263646E\n']
        >>> encoder.finish()
        ['S105000465662B\n', 'S5030002FA\n', 'S9030000FC\n']
    """

    Tag = MotorolaTag

    RECLEN_MAX: int = 0xFF - 5

    build_record = staticmethod(build_record)
    parse_record = staticmethod(parse_record)
    apply_records = staticmethod(apply_records)

    def __init__(
        self,
        header: Optional[Union[str, AnyBytes]] = None,
        base_address: int = 0,
        exec_address: int = 0,
        reclen: int = BaseEncoder.RECLEN_DEFAULT,
        end: str = '\n',
    ):

        super().__init__(base_address=base_address,
                         exec_address=exec_address,
                         reclen=reclen,
                         end=end)

        if header:
            if isinstance(header, str):
                try:
                    header = header.encode('ascii')
                except UnicodeEncodeError:
                    raise ConfigurationError('header not ASCII') from None

            if len(header) > self._reclen:
                raise ConfigurationError('header too long')

            self._queued.append(Record(MotorolaTag.HEADER, 0, bytes(header)))

    def _data_records(self, address: int, data: bytes) -> List[Record]:

        tag = MotorolaTag.fit_data_tag(address)
        return [Record(tag, address, data)]

    def _trailer_records(self) -> List[Record]:

        records = []
        count = self._count

        if 0 < count <= 0xFFFFFF:
            records.append(Record(MotorolaTag.fit_count_tag(count), count, b''))

        address = self._exec_address
        records.append(Record(MotorolaTag.fit_start_tag(address), address, b''))
        return records
