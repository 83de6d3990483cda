#!/usr/bin/env python3
"""
Name: tee
Description: pipe fitting
Author: Tom Christiansen, tchrist@perl.com (Original Perl Author)
License: perl

Copies standard input to standard output, and also to each FILE named
on the command line. A file that cannot be opened or written to is
reported and dropped; the others keep receiving data.
"""

import sys
import os
import errno
from collections import namedtuple
from contextlib import contextmanager

__version__ = "1.0"

HELP = (
    "Usage: tee [OPTION]... [FILE]...\n"
    "Copy standard input to each FILE, and also to standard output.\n\n"
    "  -a, --append              append to the given FILEs, do not overwrite\n"
    "      --help     display this help and exit\n"
    "      --version  output version information and exit"
)

BUFFER_SIZE = 4096

PROGRAM_NAME = "tee"


# --- Parse results ---
# HELP_REQUEST and VERSION_REQUEST carry no data, so a single instance of each
# is enough. The other two cases are immutable records.

class _Request:
    def __init__(self, name):
        self.name = name

    def __repr__(self):
        return self.name

HELP_REQUEST = _Request('HELP_REQUEST')
VERSION_REQUEST = _Request('VERSION_REQUEST')

Invalid = namedtuple('Invalid', ['token'])
Run = namedtuple('Run', ['append', 'files'])


def parse(args):
    """
    Turns the raw argument list into one of HELP_REQUEST, VERSION_REQUEST,
    Invalid(token) or Run(append, files).

    Parsing stops at the first --help, --version or unknown option; anything
    after it is never looked at.
    """
    append = False
    files = []

    for arg in args:
        if not arg:
            continue

        # Anything not starting with '-' is a file, kept in order.
        if not arg.startswith('-'):
            files.append(arg)
            continue

        if arg.startswith('--'):
            if arg == '--help':
                return HELP_REQUEST
            elif arg == '--version':
                return VERSION_REQUEST
            elif arg == '--append':
                append = True
                continue
            else:
                return Invalid(arg)

        # A lone '-' is not an option we know.
        if len(arg) <= 1:
            return Invalid(arg)

        # Short option cluster, e.g. '-a' or '-aa'. Only the bad letter is reported.
        for ch in arg[1:]:
            if ch == 'a':
                append = True
            else:
                return Invalid('-' + ch)

    return Run(append, tuple(files))


class Destination:
    """
    A labeled output stream receiving a copy of every input chunk.

    Files opened by the tool are owned and get closed on release. Borrowed
    process streams (standard output) are flushed instead, and also flushed
    after every chunk so the data shows up as soon as it is read.
    """
    def __init__(self, label: str, sink, owned: bool = True):
        self.label = label
        self.sink = sink
        self.owned = owned

    def write(self, chunk: bytes):
        self.sink.write(chunk)
        if not self.owned:
            self.sink.flush()

    def release(self):
        if self.owned:
            self.sink.close()
        else:
            self.sink.flush()

    def __repr__(self):
        return f"Destination({self.label!r})"


class ClosedStream:
    """
    Stands in for a standard stream the process was started without
    (e.g. `tee out >&-`). Every read or write fails with EBADF.
    """
    def _fail(self):
        raise OSError(errno.EBADF, os.strerror(errno.EBADF))

    def read(self, size=-1):
        self._fail()

    def write(self, data):
        self._fail()

    def flush(self):
        pass


def report(stderr, label, action, err):
    """Prints a single diagnostic line for a failed I/O operation."""
    print(f"{PROGRAM_NAME}: '{label}': {action}: {err}", file=stderr)


def open_destinations(append: bool, files, stdout, stderr, outputs=None) -> list:
    """
    Builds the list of live destinations: standard output first, then every
    file that could be opened, in command line order.

    Destinations are appended to `outputs` as they open, so a caller holding
    that list can release them even if opening a later file raises.
    """
    outputs = [] if outputs is None else outputs
    outputs.append(Destination('stdout', stdout, owned=False))

    # 'b' keeps the data byte-for-byte; open() gives us a buffered writer.
    file_mode = 'ab' if append else 'wb'

    for filename in files:
        try:
            outputs.append(Destination(filename, open(filename, file_mode)))
        except OSError as e:
            report(stderr, filename, "error opening file", e)

    return outputs


def close_destinations(outputs, stderr):
    """Releases every destination; a failing one does not stop the rest."""
    for output in outputs:
        try:
            output.release()
        except OSError as e:
            report(stderr, output.label, "error closing", e)


@contextmanager
def destinations(append: bool, files, stdout, stderr):
    """
    Opens the destinations and guarantees that whatever is still live is
    released when the block exits, however it exits.
    """
    outputs = []
    try:
        open_destinations(append, files, stdout, stderr, outputs)
        yield outputs
    finally:
        close_destinations(outputs, stderr)


def _drop(output, err, stderr):
    """Closes a destination that failed a write and reports both problems."""
    try:
        output.release()
    except OSError as close_err:
        report(stderr, output.label, "error writing",
               f"{err} (close also failed: {close_err})")
        return
    report(stderr, output.label, "error writing", err)


def copy_stream(source, outputs: list, stderr, chunk_size: int = BUFFER_SIZE):
    """
    Copies `source` to every destination in `outputs` until end of input.

    A destination that fails a write is released and removed from `outputs`
    for good. A read error ends the copy. Input keeps being consumed to the
    end even once every destination is gone.
    """
    # read1() hands back whatever is available instead of waiting for a full chunk.
    read = getattr(source, 'read1', source.read)

    while True:
        try:
            chunk = read(chunk_size)
        except OSError as e:
            report(stderr, 'stdin', "error reading input", e)
            return

        if not chunk:
            break

        # Iterate over a copy; failed destinations are removed as we go.
        for output in list(outputs):
            try:
                output.write(chunk)
            except OSError as e:
                outputs.remove(output)
                _drop(output, e, stderr)


def run(append: bool, files, stdin=None, stdout=None, stderr=None):
    """Opens the destinations, copies the input to them, and closes them."""
    # A process started with a standard stream closed sees it as None.
    if stdin is None:
        stdin = sys.stdin.buffer if sys.stdin is not None else ClosedStream()
    if stdout is None:
        stdout = sys.stdout.buffer if sys.stdout is not None else ClosedStream()
    stderr = stderr if stderr is not None else sys.stderr

    with destinations(append, files, stdout, stderr) as outputs:
        copy_stream(stdin, outputs, stderr)


def main(argv=None, stdin=None, stdout=None, stderr=None):
    """Parses arguments and runs the tee logic."""
    args = sys.argv[1:] if argv is None else argv
    stderr = sys.stderr if stderr is None else stderr

    options = parse(args)

    # --help and --version print to standard output and touch no files.
    if options is HELP_REQUEST or options is VERSION_REQUEST:
        message = HELP if options is HELP_REQUEST else f"tee v{__version__}"
        if stdout is None:
            print(message)
        else:
            stdout.write(f"{message}\n".encode())
        sys.exit(0)

    if isinstance(options, Invalid):
        print(f"Invalid option: '{options.token}'", file=stderr)
        print("Try 'tee --help' for more information.", file=stderr)
        sys.exit(1)

    run(options.append, options.files, stdin=stdin, stdout=stdout, stderr=stderr)
    sys.exit(0)


if __name__ == "__main__":
    main()
