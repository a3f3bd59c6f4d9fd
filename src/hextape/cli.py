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

"""
Module that contains the command line app.

Why does this file exist, and why not put this in __main__?

  You might be tempted to import things from __main__ later, but that will cause
  problems: the code will get executed twice:

  - When you run `python -m hextape` python will execute
    ``__main__.py`` as a script. That means there won't be any
    ``hextape.__main__`` in ``sys.modules``.
  - When you import __main__ it will get executed again (as a module) because
    there's no ``hextape.__main__`` in ``sys.modules``.

  Also see (1) from https://click.palletsprojects.com/en/stable/setuptools/#setuptools-integration
"""

import logging
from typing import List
from typing import Optional
from typing import Type

import click

from . import __version__
from .base import BaseEncoder
from .base import HexRecordError
from .base import Record
from .base import format_types
from .formats.motorola import MotorolaEncoder
from .utils import parse_int

_logger = logging.getLogger(__name__)


class BasedIntParamType(click.ParamType):
    name = 'integer'

    def convert(self, value, param, ctx):
        try:
            return parse_int(value)
        except ValueError:
            self.fail(f'invalid integer: {value!r}', param, ctx)


class ByteIntParamType(click.ParamType):
    name = 'byte'

    def convert(self, value, param, ctx):
        try:
            b = parse_int(value)
            if not 0 <= b <= 255:
                raise ValueError()
            return b
        except ValueError:
            self.fail(f'invalid byte: {value!r}', param, ctx)


BASED_INT = BasedIntParamType()
BYTE_INT = ByteIntParamType()

FILE_PATH_IN = click.Path(dir_okay=False, allow_dash=True, readable=True, exists=True)
FILE_PATH_OUT = click.Path(dir_okay=False, allow_dash=True, writable=True)

FORMAT_CHOICE = click.Choice(list(sorted(format_types.keys())))


# ----------------------------------------------------------------------------

def print_version(ctx, _, value):

    if not value or ctx.resilient_parsing:
        return

    click.echo(str(__version__))
    ctx.exit()


def read_records(
    encoder_type: Type[BaseEncoder],
    input_path: str,
) -> List[Record]:

    records = []
    with click.open_file(input_path, 'rt') as stream:
        for lineno, line in enumerate(stream, 1):
            if not line.strip():
                continue
            try:
                records.append(encoder_type.parse_record(line))
            except HexRecordError as exc:
                raise click.ClickException(f'line {lineno}: {exc}') from exc

    _logger.info('%d records read from %s', len(records), input_path)
    return records


# ============================================================================

@click.group()
@click.option('-V', '--version', is_flag=True, is_eager=True,
              expose_value=False, callback=print_version, help="""
    Print version and exit.
""")
@click.option('-v', '--verbose', is_flag=True, help="""
    Log progress to standard error.
""")
def main(verbose: bool) -> None:
    """
    Command line utilities for Intel HEX, Motorola S-record and Signetics
    absolute object files.

    Being built with `Click <https://click.palletsprojects.com/en/stable/>`_, all the
    commands follow POSIX-like syntax rules, as well as reserving the virtual
    file path ``-`` for command chaining via standard output/input buffering.
    """

    if verbose:
        logging.basicConfig(level=logging.DEBUG,
                            format='%(levelname)s:%(name)s: %(message)s')


# ----------------------------------------------------------------------------

@main.command()
@click.option('-f', '--format', 'format_name', type=FORMAT_CHOICE, required=True, help="""
    Output record format.
""")
@click.option('-b', '--base', type=BASED_INT, default=0, show_default=True, help="""
    Address of the first data byte.
""")
@click.option('-e', '--exec', 'exec_address', type=BASED_INT, default=0, show_default=True, help="""
    Execution start address.
""")
@click.option('-w', '--width', type=BASED_INT, default=BaseEncoder.RECLEN_DEFAULT,
              show_default=True, help="""
    Maximum length of the record data field, in bytes.
""")
@click.option('-H', '--header', help="""
    Header string (Motorola S-record only).
""")
@click.option('-c', '--chunk', type=BASED_INT, default=4096, show_default=True, help="""
    Size of the chunks read from the input file, in bytes.
""")
@click.argument('infile', type=FILE_PATH_IN)
@click.argument('outfile', type=FILE_PATH_OUT)
def encode(
    format_name: str,
    base: int,
    exec_address: int,
    width: int,
    header: Optional[str],
    chunk: int,
    infile: str,
    outfile: str,
) -> None:
    r"""Encodes a binary file into records.

    ``INFILE`` is the path of the binary input file.
    Set to ``-`` to read from standard input.

    ``OUTFILE`` is the path of the record output file.
    Set to ``-`` to write to standard output.
    """

    if chunk < 1:
        raise click.BadParameter('non-positive chunk size', param_hint='--chunk')

    encoder_type = format_types[format_name]
    kwargs = dict(base_address=base, exec_address=exec_address, reclen=width)

    if header is not None:
        if not issubclass(encoder_type, MotorolaEncoder):
            raise click.UsageError(f'header not supported by {format_name!r}')
        kwargs['header'] = header

    try:
        encoder = encoder_type(**kwargs)
    except HexRecordError as exc:
        raise click.UsageError(str(exc)) from exc

    with click.open_file(infile, 'rb') as instream, \
         click.open_file(outfile, 'wt') as outstream:
        try:
            while True:
                data = instream.read(chunk)
                if not data:
                    break
                outstream.writelines(encoder.feed(data))

            outstream.writelines(encoder.finish())

        except HexRecordError as exc:
            raise click.ClickException(str(exc)) from exc

    _logger.info('%d data records written to %s', encoder.count, outfile)


# ----------------------------------------------------------------------------

@main.command()
@click.option('-f', '--format', 'format_name', type=FORMAT_CHOICE, required=True, help="""
    Input record format.
""")
@click.option('-v', '--value', type=BYTE_INT, default=0xFF, show_default=True, help="""
    Byte value used to flood memory holes.
""")
@click.argument('infile', type=FILE_PATH_IN)
@click.argument('outfile', type=FILE_PATH_OUT)
def decode(
    format_name: str,
    value: int,
    infile: str,
    outfile: str,
) -> None:
    r"""Decodes records into a binary file.

    The binary image spans from the lowest to the highest data address.

    ``INFILE`` is the path of the record input file.
    Set to ``-`` to read from standard input.

    ``OUTFILE`` is the path of the binary output file.
    Set to ``-`` to write to standard output.
    """

    encoder_type = format_types[format_name]
    records = read_records(encoder_type, infile)
    memory, start = encoder_type.apply_records(records)

    _logger.info('image start: 0x%X, endex: 0x%X, exec: %s',
                 memory.start, memory.endex,
                 'none' if start is None else f'0x{start:X}')

    data = memory.extract(pattern=value).to_bytes()

    with click.open_file(outfile, 'wb') as stream:
        stream.write(data)


# ----------------------------------------------------------------------------

@main.command()
@click.option('-f', '--format', 'format_name', type=FORMAT_CHOICE, required=True, help="""
    Input record format.
""")
@click.argument('infile', type=FILE_PATH_IN)
def validate(
    format_name: str,
    infile: str,
) -> None:
    r"""Validates a record file.

    Every non-blank line must be a valid record.

    ``INFILE`` is the path of the input file.
    Set to ``-`` to read from standard input.
    """

    read_records(format_types[format_name], infile)
