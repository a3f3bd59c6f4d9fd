import pytest
from bytesparse import Memory

from hextape.base import AddressOverflowError
from hextape.base import ChecksumMismatchError
from hextape.base import ConfigurationError
from hextape.base import DataOverflowError
from hextape.base import EncoderStateError
from hextape.base import InvalidSyntaxError
from hextape.base import LengthMismatchError
from hextape.base import Record
from hextape.base import UnsupportedRecordTypeError
from hextape.formats.intel import IntelEncoder
from hextape.formats.intel import IntelTag
from hextape.formats.intel import apply_records
from hextape.formats.intel import build_record
from hextape.formats.intel import parse_record

DATA = IntelTag.DATA
EOF = IntelTag.END_OF_FILE
ESA = IntelTag.EXTENDED_SEGMENT_ADDRESS
SSA = IntelTag.START_SEGMENT_ADDRESS
ELA = IntelTag.EXTENDED_LINEAR_ADDRESS
SLA = IntelTag.START_LINEAR_ADDRESS

# https://en.wikipedia.org/wiki/Intel_HEX#Record_types
VECTORS = [
    (':0B0010006164647265737320676170A7', (DATA, 0x0010, b'address gap')),
    (':00000001FF', (EOF, 0x0000, b'')),
    (':020000021200EA', (ESA, 0x0000, b'\x12\x00')),
    (':0400000300003800C1', (SSA, 0x0000, b'\x00\x00\x38\x00')),
    (':020000040800F2', (ELA, 0x0000, b'\x08\x00')),
    (':04000005000000CD2A', (SLA, 0x0000, b'\x00\x00\x00\xCD')),
    (':0300300002337A1E', (DATA, 0x0030, b'\x02\x33\x7A')),
]


def to_blocks(memory):
    return [[start, bytes(data)] for start, data in memory.to_blocks()]


def encode_all(encoder, chunks):
    lines = []
    for chunk in chunks:
        lines.extend(encoder.feed(chunk))
    lines.extend(encoder.finish())
    return lines


def chop(data, size):
    return [data[i:(i + size)] for i in range(0, len(data), size)]


class TestIntelTag:

    def test_enum(self):
        assert IntelTag.DATA == 0
        assert IntelTag.END_OF_FILE == 1
        assert IntelTag.EXTENDED_SEGMENT_ADDRESS == 2
        assert IntelTag.START_SEGMENT_ADDRESS == 3
        assert IntelTag.EXTENDED_LINEAR_ADDRESS == 4
        assert IntelTag.START_LINEAR_ADDRESS == 5

    def test_is_data(self):
        assert DATA.is_data() is True
        assert EOF.is_data() is False
        assert ESA.is_data() is False
        assert SSA.is_data() is False
        assert ELA.is_data() is False
        assert SLA.is_data() is False

    def test_is_eof(self):
        assert DATA.is_eof() is False
        assert EOF.is_eof() is True
        assert ELA.is_eof() is False
        assert SLA.is_eof() is False

    def test_is_extension(self):
        assert DATA.is_extension() is False
        assert EOF.is_extension() is False
        assert ESA.is_extension() is True
        assert SSA.is_extension() is False
        assert ELA.is_extension() is True
        assert SLA.is_extension() is False

    def test_is_file_termination(self):
        assert DATA.is_file_termination() is False
        assert EOF.is_file_termination() is True
        assert SLA.is_file_termination() is False

    def test_is_start(self):
        assert DATA.is_start() is False
        assert EOF.is_start() is False
        assert ESA.is_start() is False
        assert SSA.is_start() is True
        assert ELA.is_start() is False
        assert SLA.is_start() is True


class TestBuildRecord:

    def test_vectors(self):
        for expected, args in VECTORS:
            assert build_record(*args) == expected

    def test_defaults(self):
        assert build_record(EOF) == ':00000001FF'

    def test_address_mask(self):
        assert build_record(DATA, 0x12345, b'abc') == build_record(DATA, 0x2345, b'abc')

    def test_data_max(self):
        line = build_record(DATA, 0x1234, b'\xAA' * 0xFF)
        assert line.startswith(':FF123400')
        assert len(line) == 11 + (0xFF * 2)

    def test_bytearray_memoryview(self):
        expected = ':0B0010006164647265737320676170A7'
        assert build_record(DATA, 0x0010, bytearray(b'address gap')) == expected
        assert build_record(DATA, 0x0010, memoryview(b'address gap')) == expected

    def test_raises_tag(self):
        with pytest.raises(UnsupportedRecordTypeError, match='tag overflow'):
            build_record(-1)
        with pytest.raises(UnsupportedRecordTypeError, match='tag overflow'):
            build_record(0x100)

    def test_raises_data(self):
        with pytest.raises(DataOverflowError, match='data size overflow'):
            build_record(DATA, 0, b'\0' * 0x100)


class TestParseRecord:

    def test_vectors(self):
        for line, expected in VECTORS:
            record = parse_record(line)
            assert record == Record(*expected)
            assert type(record.tag) is IntelTag

    def test_cleanup(self):
        record = parse_record('  :0b0010006164647265737320676170a7\r\n')
        assert record == (DATA, 0x0010, b'address gap')

    def test_unknown_tag(self):
        record = parse_record(build_record(0x42, 0x1234, b'xyz'))
        assert record == (0x42, 0x1234, b'xyz')
        assert type(record.tag) is int

    def test_raises_syntax(self):
        lines = [
            '',
            ':',
            '00000001FF',
            ';00000001FF',
            ':00000001F',
            ':000001FF',
            ':00000001FG',
            ':00000001FF:',
            ':0000 0001FF',
        ]
        for line in lines:
            with pytest.raises(InvalidSyntaxError, match='syntax error'):
                parse_record(line)

    def test_raises_count(self):
        with pytest.raises(LengthMismatchError, match='count error'):
            parse_record(':0C0010006164647265737320676170A7')
        with pytest.raises(LengthMismatchError, match='count error'):
            parse_record(':01000001FF')

    def test_raises_checksum(self):
        with pytest.raises(ChecksumMismatchError, match='checksum error'):
            parse_record(':0B0010006164647265737320676170A8')
        with pytest.raises(ChecksumMismatchError, match='checksum error'):
            parse_record(':00000001FE')

    def test_tamper(self):
        for line, _ in VECTORS:
            for index in range(1, len(line)):
                for digit in '0123456789ABCDEF':
                    if digit == line[index]:
                        continue
                    tampered = line[:index] + digit + line[(index + 1):]
                    with pytest.raises((ChecksumMismatchError, LengthMismatchError)):
                        parse_record(tampered)

    def test_round_trip(self):
        tags = [DATA, EOF, ELA, SLA, 0x00, 0x7F, 0xFF]
        addresses = [0x0000, 0x0001, 0x1234, 0xFFFF]
        contents = [b'', b'\x00', b'abc', bytes(range(0x100))[1:]]
        for tag in tags:
            for address in addresses:
                for data in contents:
                    record = parse_record(build_record(tag, address, data))
                    assert record == (tag, address, data)


class TestApplyRecords:

    def test_linear(self):
        records = [
            Record(DATA, 0x0010, b'abc'),
            Record(ELA, 0x0000, b'\x00\x01'),
            Record(DATA, 0x0020, b'xyz'),
            Record(SLA, 0x0000, b'\x00\x01\x00\x20'),
            Record(EOF, 0x0000, b''),
        ]
        memory, start = apply_records(records)
        assert to_blocks(memory) == [[0x00010, b'abc'], [0x10020, b'xyz']]
        assert start == 0x10020

    def test_segment(self):
        records = [
            Record(ESA, 0x0000, b'\x12\x00'),
            Record(DATA, 0x0004, b'abc'),
            Record(SSA, 0x0000, b'\x00\x00\x38\x00'),
            Record(EOF, 0x0000, b''),
        ]
        memory, start = apply_records(records)
        assert to_blocks(memory) == [[0x12004, b'abc']]
        assert start == 0x3800

    def test_empty(self):
        memory, start = apply_records([])
        assert isinstance(memory, Memory)
        assert to_blocks(memory) == []
        assert start is None

    def test_parsed(self):
        lines = [
            ':020000040800F2',
            ':0B0010006164647265737320676170A7',
            ':00000001FF',
        ]
        memory, start = apply_records(parse_record(line) for line in lines)
        assert to_blocks(memory) == [[0x08000010, b'address gap']]
        assert start is None


class TestIntelEncoder:

    def test___init___defaults(self):
        encoder = IntelEncoder()
        assert encoder.base_address == 0
        assert encoder.exec_address == 0
        assert encoder.reclen == 32
        assert encoder.pointer == 0
        assert encoder.count == 0
        assert encoder.pending == 0
        assert encoder.finished is False

    def test___init__(self):
        encoder = IntelEncoder(base_address=0x1234, exec_address=0x5678, reclen=0xFF)
        assert encoder.base_address == 0x1234
        assert encoder.exec_address == 0x5678
        assert encoder.reclen == 0xFF
        assert encoder.pointer == 0x1234

    def test___init___raises_address(self):
        values = [-1, 0x100000000, 1.5, '0', None, True]
        for value in values:
            with pytest.raises(ConfigurationError, match='invalid base address'):
                IntelEncoder(base_address=value)
            with pytest.raises(ConfigurationError, match='invalid exec address'):
                IntelEncoder(exec_address=value)

    def test___init___raises_reclen(self):
        for reclen in [0, -1, 0x100, 2.0, None]:
            with pytest.raises(ConfigurationError, match='invalid record length'):
                IntelEncoder(reclen=reclen)

    def test___init___raises_end(self):
        with pytest.raises(ConfigurationError, match='invalid line terminator'):
            IntelEncoder(end=b'\n')

    def test___repr__(self):
        text = repr(IntelEncoder(base_address=0x100))
        assert text.startswith('<IntelEncoder @0x')
        assert 'pointer:=0x100' in text

    def test_empty(self):
        encoder = IntelEncoder()
        assert encoder.finish() == [':00000001FF\n']
        assert encoder.finished is True

    def test_exec_address(self):
        encoder = IntelEncoder(exec_address=0x12345678)
        assert encoder.finish() == [
            build_record(SLA, 0, b'\x12\x34\x56\x78') + '\n',
            ':00000001FF\n',
        ]

    def test_short_data(self):
        encoder = IntelEncoder(base_address=0x0010)
        assert encoder.feed(b'address gap') == []
        assert encoder.pending == 11
        assert encoder.finish() == [
            ':020000040000FA\n',
            ':0B0010006164647265737320676170A7\n',
            ':00000001FF\n',
        ]
        assert encoder.count == 1
        assert encoder.pointer == 0x001B

    def test_full_records(self):
        encoder = IntelEncoder(reclen=4)
        assert encoder.feed(b'abcdefghij') == [
            build_record(ELA, 0, b'\x00\x00') + '\n',
            build_record(DATA, 0x0000, b'abcd') + '\n',
            build_record(DATA, 0x0004, b'efgh') + '\n',
        ]
        assert encoder.pending == 2
        assert encoder.pointer == 8
        assert encoder.finish() == [
            build_record(DATA, 0x0008, b'ij') + '\n',
            build_record(EOF) + '\n',
        ]
        assert encoder.pending == 0
        assert encoder.pointer == 10
        assert encoder.count == 3

    def test_empty_chunk(self):
        encoder = IntelEncoder(reclen=4)
        assert encoder.feed(b'') == []
        assert encoder.feed(b'abcd')[-1] == build_record(DATA, 0, b'abcd') + '\n'
        assert encoder.feed(b'') == []

    def test_extended_address_first(self):
        encoder = IntelEncoder(base_address=0x12340000, reclen=2)
        lines = encoder.feed(b'ab')
        assert lines == [
            build_record(ELA, 0, b'\x12\x34') + '\n',
            build_record(DATA, 0x0000, b'ab') + '\n',
        ]

    def test_segment_boundary(self):
        encoder = IntelEncoder(base_address=0xFFF0, reclen=32)
        data = bytes(range(64))
        lines = encode_all(encoder, [data])
        records = [parse_record(line) for line in lines]
        assert records == [
            (ELA, 0x0000, b'\x00\x00'),
            (DATA, 0xFFF0, data[:16]),
            (ELA, 0x0000, b'\x00\x01'),
            (DATA, 0x0000, data[16:48]),
            (DATA, 0x0020, data[48:]),
            (EOF, 0x0000, b''),
        ]

    def test_segment_boundary_single_announcement(self):
        encoder = IntelEncoder(base_address=0x1FFF0, reclen=16)
        lines = encode_all(encoder, chop(bytes(0x40), 5))
        tags = [parse_record(line).tag for line in lines]
        assert tags == [ELA, DATA, ELA, DATA, DATA, DATA, EOF]
        index = tags.index(ELA, 1)
        assert parse_record(lines[index]).data == b'\x00\x02'
        assert parse_record(lines[index + 1]).address == 0x0000

    def test_boundary_remainder(self):
        encoder = IntelEncoder(base_address=0xFFFE, reclen=4)
        assert len(encoder.feed(b'a')) == 0
        assert encoder.finish() == [
            build_record(ELA, 0, b'\x00\x00') + '\n',
            build_record(DATA, 0xFFFE, b'a') + '\n',
            build_record(EOF) + '\n',
        ]

    def test_completeness(self):
        data = bytes(range(0x100)) * 5
        expected = None
        for size in (1, 3, 7, 32, 100, len(data)):
            encoder = IntelEncoder(base_address=0xFF00, reclen=24)
            lines = encode_all(encoder, chop(data, size))
            if expected is None:
                expected = lines
            assert lines == expected

            records = [parse_record(line) for line in lines]
            payload = b''.join(r.data for r in records if r.tag == DATA)
            assert payload == data

            memory, _ = apply_records(records)
            assert to_blocks(memory) == [[0xFF00, data]]

    def test_pending_invariant(self):
        encoder = IntelEncoder(base_address=0x7FF9, reclen=10)
        pointer = encoder.pointer
        for chunk in chop(bytes(1000), 13):
            lines = encoder.feed(chunk)
            assert encoder.pending < encoder.reclen
            consumed = sum(len(parse_record(line).data) for line in lines
                           if parse_record(line).tag == DATA)
            assert encoder.pointer == pointer + consumed
            pointer = encoder.pointer

    def test_address_overflow(self):
        encoder = IntelEncoder(base_address=0xFFFFFFF0)
        lines = encoder.feed(b'\xAA' * 16)
        assert lines == [
            build_record(ELA, 0, b'\xFF\xFF') + '\n',
            build_record(DATA, 0xFFF0, b'\xAA' * 16) + '\n',
        ]
        assert encoder.pointer == 0x100000000

        with pytest.raises(AddressOverflowError, match='address overflow'):
            encoder.feed(b'\xAA')
        assert encoder.pending == 0
        assert encoder.finish() == [':00000001FF\n']

    def test_address_overflow_pending(self):
        encoder = IntelEncoder(base_address=0xFFFFFFFE)
        assert encoder.feed(b'a') == []
        with pytest.raises(AddressOverflowError, match='address overflow'):
            encoder.feed(b'bc')
        assert encoder.pending == 1
        assert encoder.feed(b'b') == [
            build_record(ELA, 0, b'\xFF\xFF') + '\n',
            build_record(DATA, 0xFFFE, b'ab') + '\n',
        ]
        assert encoder.finish() == [':00000001FF\n']

    def test_raises_finished(self):
        encoder = IntelEncoder()
        encoder.finish()
        with pytest.raises(EncoderStateError, match='encoder already finished'):
            encoder.feed(b'abc')
        with pytest.raises(EncoderStateError, match='encoder already finished'):
            encoder.finish()

    def test_end(self):
        encoder = IntelEncoder(end='\r\n')
        assert encoder.finish() == [':00000001FF\r\n']

    def test_codec_attributes(self):
        assert IntelEncoder.build_record is build_record
        assert IntelEncoder.parse_record is parse_record
        assert IntelEncoder.apply_records is apply_records
        assert IntelEncoder.Tag is IntelTag
