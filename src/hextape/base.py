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

r"""Base types and classes."""

import abc
import logging
import os
from typing import Any
from typing import Callable
from typing import Iterable
from typing import List
from typing import MutableMapping
from typing import NamedTuple
from typing import Optional
from typing import Tuple
from typing import Type
from typing import Union

from bytesparse import Memory

from .utils import ByteFifo

try:
    from typing import TypeAlias
except ImportError:  # pragma: no cover
    TypeAlias = Any  # Python < 3.10

AnyBytes: TypeAlias = Union[bytes, bytearray, memoryview]
AnyPath: TypeAlias = Union[bytes, bytearray, str, os.PathLike]

_logger = logging.getLogger(__name__)

format_types: MutableMapping[str, Type['BaseEncoder']] = {}
r"""Registered record formats.

This is an ordered mapping, where the first item has top priority."""


# ----------------------------------------------------------------------------

class HexRecordError(ValueError):
    r"""Base class for all the record errors."""


class InvalidSyntaxError(HexRecordError):
    r"""The record text does not match the format syntax."""


class LengthMismatchError(HexRecordError):
    r"""The declared byte count does not match the actual one."""


class ChecksumMismatchError(HexRecordError):
    r"""A checksum field does not match the record contents."""


class UnsupportedRecordTypeError(HexRecordError):
    r"""The record tag is not supported by the format."""


class DataOverflowError(HexRecordError):
    r"""The record data does not fit the format byte count field."""


class ConfigurationError(HexRecordError):
    r"""Invalid encoder configuration."""


class AddressOverflowError(HexRecordError):
    r"""Data would exceed the address space of the format."""


class EncoderStateError(HexRecordError):
    r"""Encoder used after completion."""


# ----------------------------------------------------------------------------

class Record(NamedTuple):
    r"""Decoded record value.

    It holds the fields of a record, as returned by the ``parse_record``
    function of each format, and in the same order as the arguments of the
    matching ``build_record``.

    Examples:
        >>> from hextape.formats.intel import parse_record
        >>> parse_record(':0B0010006164647265737320676170A7')
        Record(tag=<IntelTag.DATA: 0>, address=16, data=b'address gap')
    """

    tag: Optional[int]
    r"""Record tag, or ``None`` for formats without tags."""

    address: int
    r"""Address field value."""

    data: bytes
    r"""Data field contents."""


class BaseTag:
    r"""Record tag.

    The *record tag* indicates the *nature* of a record.
    The record tag class usually enumerates all the possible natures of a
    record within a *record format*.
    """

    @abc.abstractmethod
    def is_data(self) -> bool:
        r"""Tells whether this is a data record tag.

        Returns:
            bool: This is a data record tag.
        """
        ...

    # noinspection PyMethodMayBeStatic
    def is_file_termination(self) -> bool:
        r"""Tells whether this is record tag terminates a record sequence.

        Returns:
            bool: This is a termination tag.
        """

        return False


def check_address(value: Any, address_max: int, name: str) -> int:
    r"""Validates an encoder address setting.

    Args:
        value (int):
            Address to check.

        address_max (int):
            Maximum allowed address, inclusive.

        name (str):
            Setting name, for error reporting.

    Returns:
        int: `value` as a plain integer.

    Raises:
        ConfigurationError: not an integer, or out of range.

    Examples:
        >>> check_address(0x1234, 0xFFFF, 'base address')
        4660
        >>> check_address(0x10000, 0xFFFF, 'base address')
        Traceback (most recent call last):
            ...
        hextape.base.ConfigurationError: invalid base address
    """

    if isinstance(value, bool) or not hasattr(value, '__index__'):
        raise ConfigurationError(f'invalid {name}')

    value = value.__index__()
    if not 0 <= value <= address_max:
        raise ConfigurationError(f'invalid {name}')
    return value


class BaseEncoder(abc.ABC):
    r"""Streaming record encoder.

    It turns an ordered sequence of byte chunks into the ordered sequence of
    record lines of a specific format.

    Bytes are collected by :meth:`feed`, which returns each record as soon as
    enough bytes are available for it.
    :meth:`finish` flushes any remaining bytes and returns the trailer records;
    the encoder is then completed, and cannot be used any further.

    The encoder instance owns its state and is not meant to be shared across
    threads.
    """

    ADDRESS_MAX: int = 0xFFFFFFFF
    r"""Maximum data address supported by the format."""

    RECLEN_DEFAULT: int = 0x20
    r"""Default maximum data length per record."""

    RECLEN_MAX: int = 0xFF
    r"""Maximum configurable data length per record."""

    build_record: Callable[..., str]
    r"""Record builder function of the format."""

    parse_record: Callable[[str], Record]
    r"""Record parser function of the format."""

    apply_records: Callable[[Iterable[Record]], Tuple[Memory, Optional[int]]]
    r"""Record loader function of the format."""

    def __init__(
        self,
        base_address: int = 0,
        exec_address: int = 0,
        reclen: int = RECLEN_DEFAULT,
        end: str = '\n',
    ):

        base_address = check_address(base_address, self.ADDRESS_MAX, 'base address')
        exec_address = check_address(exec_address, self.ADDRESS_MAX, 'exec address')

        if isinstance(reclen, bool) or not hasattr(reclen, '__index__'):
            raise ConfigurationError('invalid record length')
        reclen = reclen.__index__()
        if not 1 <= reclen <= self.RECLEN_MAX:
            raise ConfigurationError('invalid record length')

        if not isinstance(end, str):
            raise ConfigurationError('invalid line terminator')

        self._base_address: int = base_address
        self._buffer: ByteFifo = ByteFifo()
        self._count: int = 0
        self._end: str = end
        self._exec_address: int = exec_address
        self._finished: bool = False
        self._pointer: int = base_address
        self._queued: List[Record] = []
        self._reclen: int = reclen

    def __repr__(self) -> str:

        return (f'<{self.__class__.__name__} @0x{id(self):08X}'
                f' pointer:=0x{self._pointer:X} count:={self._count}'
                f' pending:={len(self._buffer)} finished:={self._finished}>')

    @property
    def base_address(self) -> int:
        r"""int: Address of the first data byte."""

        return self._base_address

    def _check_open(self) -> None:

        if self._finished:
            raise EncoderStateError('encoder already finished')

    @property
    def count(self) -> int:
        r"""int: Number of data records emitted so far."""

        return self._count

    @abc.abstractmethod
    def _data_records(self, address: int, data: bytes) -> List[Record]:
        ...

    def _emit_data(self, data: bytes) -> List[str]:

        records = self._data_records(self._pointer, data)
        self._pointer += len(data)
        self._count += 1
        return self._format_records(records)

    @property
    def exec_address(self) -> int:
        r"""int: Execution start address."""

        return self._exec_address

    def feed(self, chunk: AnyBytes) -> List[str]:
        r"""Feeds a chunk of data.

        The chunk is appended to the pending bytes, and as many records as
        possible are built out of them.
        Any remainder shorter than a record is kept for the next call.

        Args:
            chunk (bytes):
                Data bytes, following those already fed.

        Returns:
            list of str: Record lines, possibly none.

        Raises:
            AddressOverflowError: data exceeding the address space.
                Nothing of `chunk` is consumed in this case.

            EncoderStateError: encoder already finished.
        """

        self._check_open()

        size = len(chunk)
        if self._pointer + len(self._buffer) + size > self.ADDRESS_MAX + 1:
            raise AddressOverflowError('address overflow')

        self._buffer.push(chunk)
        lines = self._format_records(self._queued)
        self._queued.clear()

        while True:
            data = self._buffer.pop(self._next_record_size())
            if data is None:
                break
            lines.extend(self._emit_data(data))

        return lines

    def finish(self) -> List[str]:
        r"""Finishes the record sequence.

        Any pending data is flushed into a last short data record, followed by
        the trailer records of the format.

        Returns:
            list of str: Record lines.

        Raises:
            EncoderStateError: encoder already finished.
        """

        self._check_open()

        lines = self._format_records(self._queued)
        self._queued.clear()

        data = self._buffer.pop_all()
        if data:
            lines.extend(self._emit_data(data))

        lines.extend(self._format_records(self._trailer_records()))
        self._finished = True

        _logger.debug('%s finished: %d data records, end address 0x%X',
                      self.__class__.__name__, self._count, self._pointer)
        return lines

    @property
    def finished(self) -> bool:
        r"""bool: The encoder has completed its record sequence."""

        return self._finished

    def _format_records(self, records: Iterable[Record]) -> List[str]:

        build_record = type(self).build_record
        end = self._end
        return [build_record(*record) + end for record in records]

    def _next_record_size(self) -> int:

        return self._reclen

    @property
    def pending(self) -> int:
        r"""int: Number of bytes waiting for a record."""

        return len(self._buffer)

    @property
    def pointer(self) -> int:
        r"""int: Address of the next data byte to be emitted."""

        return self._pointer

    @property
    def reclen(self) -> int:
        r"""int: Maximum data length per record."""

        return self._reclen

    @abc.abstractmethod
    def _trailer_records(self) -> List[Record]:
        ...
