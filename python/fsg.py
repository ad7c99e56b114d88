#!/usr/bin/env python3
"""
Name: fsg
Description: faster strings | grep, find and filter the printable strings in a large binary file
Author: FasterStringsGrep authors (Original C Author)
License: perl
"""

import sys
import os
import re
import stat
import time
import mmap
import argparse
import contextlib
from collections import namedtuple

# --- Exit Codes ---
EX_SUCCESS = 0
EX_FAILURE = 1

DEFAULT_MIN_SIZE = 4
UPDATE_INTERVAL = 5           # seconds between progress reports
CHUNK_SIZE = 1024 * 1024      # bytes handed to the scanner at a time
MEGABYTE = 1024 * 1024

INCLUDE = '+'
EXCLUDE = '-'

NO_VALUE_FLAGS = 'qh'
VALUE_FLAGS = 'onj'

# Same class as is_graphical(): tab plus space (0x20) to tilde (0x7e).
GRAPHICAL_RUN = re.compile(rb'[\t\x20-\x7e]+')

USAGE = """FasterStringsGrep - faster alternative to running strings | grep

  {prog} [-o output] [-n length] [-j offset] [-q] [-h] [-f "filter"] input

where:
input:\t\tname of input file, or - for standard input
-o output:\toptional, name of output file or `stdout` if none specified
-n length:\toptional, minimum number of chars for a string, default is 4
-j offset:\toptional, start searching from this offset onwards. Useful to resume a failed search in a large file.
-f filter:\toptional, filter argument is a special string containing list of words which must exist or not in the output.
\t\tPrefix words which must be included with a +, and excluded with a -.
\t\tAll inclusions are OR'ed, then result is AND'ed with the OR'ed exclusions.
\t\tWords are case sensitive, must be separated by spaces, and sub-strings with spaces are not supported.
\t\tExample: "+foo +goo -bar -tar" will output strings which contain 'foo' OR 'goo' AND do NOT contain 'bar' OR 'tar'.
-q:\t\trun quietly, without showing progress or status messages.
-h:\t\tthis message
"""


class FsgError(Exception):
    """Base class for the fatal errors that abort a run."""


class ConfigurationError(FsgError):
    """Bad filter syntax, missing input argument, bad length or offset."""


class AccessError(FsgError):
    """The input or output cannot be opened or sized."""


class MapError(FsgError):
    """The input cannot be mapped into memory."""


Span = namedtuple('Span', ['start', 'end'])
FilterRule = namedtuple('FilterRule', ['word', 'polarity'])
Throughput = namedtuple('Throughput', ['percent', 'speed', 'average', 'eta'])


def is_graphical(byte: int) -> bool:
    """True for printable ASCII (32..126) and tab."""
    return 32 <= byte <= 126 or byte == 9


# --- Byte Source ---

class ByteSource:
    """
    An indexable byte range that is scanned forward from a start offset.

    Positions are absolute within the underlying data. Resuming from offset O
    makes the source behave like an input of total_length - O bytes that
    begins at position O; len() and progress use that shorter length.
    """

    def __init__(self, data, offset=0):
        if offset < 0 or offset > len(data):
            raise ConfigurationError(
                f"offset {offset} is outside the input ({len(data)} bytes)"
            )
        self.data = data
        self.start_offset = offset
        self.total_length = len(data)

    @classmethod
    def open(cls, path, offset=0):
        """
        Opens path for scanning. Regular files are memory-mapped; standard
        input ('-'), empty files and other non-mappable inputs (pipes, FIFOs,
        devices) are read whole into memory, so they must fit in memory and
        must end. An endless device such as /dev/zero never finishes.
        """
        if path == '-':
            return cls(sys.stdin.buffer.read(), offset)
        if os.path.isdir(path):
            raise AccessError(f"'{path}' is a directory")

        try:
            with open(path, 'rb') as handle:
                info = os.fstat(handle.fileno())
                if not stat.S_ISREG(info.st_mode):
                    data = handle.read()
                elif info.st_size == 0:
                    # mmap refuses zero-length mappings.
                    data = b''
                else:
                    try:
                        data = mmap.mmap(handle.fileno(), 0, access=mmap.ACCESS_READ)
                    except (OSError, ValueError) as e:
                        raise MapError(f"cannot map '{path}' into memory: {e}") from e
                    if hasattr(mmap, 'MADV_SEQUENTIAL'):
                        data.madvise(mmap.MADV_SEQUENTIAL)
        except OSError as e:
            raise AccessError(f"cannot open input file '{path}': {e.strerror}") from e

        try:
            return cls(data, offset)
        except ConfigurationError:
            if isinstance(data, mmap.mmap):
                data.close()
            raise

    def __len__(self):
        return self.total_length - self.start_offset

    def byte_at(self, position):
        if not self.start_offset <= position < self.total_length:
            raise IndexError(
                f"position {position} outside {self.start_offset}..{self.total_length}"
            )
        return self.data[position]

    def read(self, position, size):
        """Returns up to size bytes starting at an absolute position."""
        return bytes(self.data[position:min(position + size, self.total_length)])

    def close(self):
        if isinstance(self.data, mmap.mmap):
            self.data.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()


# --- Filter Rules ---

class FilterRuleSet:
    """
    Immutable set of +word / -word rules.

    A string is kept when it contains none of the excluded words and, if any
    included words exist, at least one of them. An empty set keeps everything.
    """

    def __init__(self, rules=()):
        self.rules = tuple(rules)
        for rule in self.rules:
            if rule.polarity not in (INCLUDE, EXCLUDE):
                raise ConfigurationError(f"invalid polarity {rule.polarity!r} for {rule.word!r}")
            if not rule.word:
                raise ConfigurationError("filter words cannot be empty")
        self.has_includes = any(rule.polarity == INCLUDE for rule in self.rules)

    @classmethod
    def parse(cls, text):
        """Builds a rule set from a filter string such as "+foo +goo -bar"."""
        tokens = [token for token in text.split(' ') if token]
        if not tokens:
            raise ConfigurationError("invalid filter specified")

        rules = []
        for token in tokens:
            polarity, word = token[0], token[1:]
            if polarity not in (INCLUDE, EXCLUDE):
                raise ConfigurationError(
                    f"invalid filter '{token}', missing + or - prefix for word"
                )
            if not word:
                raise ConfigurationError(f"invalid filter '{token}', no word after the prefix")
            rules.append(FilterRule(os.fsencode(word), polarity))
        return cls(rules)

    def __len__(self):
        return len(self.rules)

    def accepts(self, data):
        if not self.rules:
            return True

        included = False
        for rule in self.rules:
            if rule.word in data:
                if rule.polarity == EXCLUDE:
                    return False
                included = True

        # With no + rules the inclusion test is vacuously true.
        return included or not self.has_includes

    def describe(self):
        """Yields one status line per rule."""
        for rule in self.rules:
            verdict = 'included' if rule.polarity == INCLUDE else 'excluded'
            yield f"> strings with '{os.fsdecode(rule.word)}' will be {verdict}"


# --- Boundary Scanner ---

class BoundaryScanner:
    """
    Finds maximal runs of graphical bytes at least min_size long.

    The input is fed in consecutive chunks. A run still open at the end of a
    chunk stays open, so the spans found never depend on the chunk size.
    """

    def __init__(self, min_size=DEFAULT_MIN_SIZE):
        if min_size < 0:
            raise ConfigurationError(f"minimum string size must not be negative, got {min_size}")
        self.min_size = min_size
        self.in_string = False
        self.string_start = None

    def feed(self, chunk, base):
        """
        Scans chunk, whose first byte sits at absolute position base, and
        returns the spans that closed inside it.
        """
        spans = []
        size = len(chunk)
        if not size:
            return spans

        pos = 0
        if self.in_string:
            match = GRAPHICAL_RUN.match(chunk)
            if match is not None:
                pos = match.end()
            if pos == size:
                return spans
            self._close(base + pos, spans)

        for match in GRAPHICAL_RUN.finditer(chunk, pos):
            self.in_string = True
            self.string_start = base + match.start()
            if match.end() == size:
                break
            self._close(base + match.end(), spans)
        return spans

    def finish(self, end):
        """Closes a run left open at end of input, which ends at position end."""
        spans = []
        if self.in_string:
            self._close(end, spans)
        return spans

    def _close(self, end, spans):
        if end - self.string_start >= self.min_size:
            spans.append(Span(self.string_start, end))
        self.in_string = False
        self.string_start = None


# --- Progress Reporter ---

class ProgressReporter:
    """Prints throughput and ETA at most once every `interval` seconds."""

    def __init__(self, total_bytes, stream=None, interval=UPDATE_INTERVAL, clock=time.monotonic):
        self.total_bytes = total_bytes
        self.stream = stream if stream is not None else sys.stderr
        self.interval = interval
        self.clock = clock
        self.started = self.last_report = clock()
        self.bytes_at_last_report = 0

    def measure(self, consumed, now):
        """
        Computes progress for `consumed` bytes at time `now`. Speeds are in
        bytes per second, eta in seconds (None while the average is zero).
        """
        percent = consumed * 100 // self.total_bytes if self.total_bytes else 100

        since_last = now - self.last_report
        speed = (consumed - self.bytes_at_last_report) / since_last if since_last > 0 else 0.0

        elapsed = now - self.started
        average = consumed / elapsed if elapsed > 0 else 0.0
        eta = (self.total_bytes - consumed) / average if average > 0 else None

        return Throughput(percent, speed, average, eta)

    def update(self, consumed):
        """Reports if the interval has passed. Returns True when a line was written."""
        now = self.clock()
        if now - self.last_report <= self.interval:
            return False

        stats = self.measure(consumed, now)
        eta = f"{stats.eta / 60:.2f} minutes" if stats.eta is not None else "unknown"
        print(
            f"Progress: {stats.percent}%\t[{stats.speed / MEGABYTE:.2f} MBps]"
            f"\t[{consumed} total bytes read]\t[AVG: {stats.average / MEGABYTE:.2f} MBps]"
            f"\t[ETA: {eta}]",
            file=self.stream,
        )
        self.last_report = now
        self.bytes_at_last_report = consumed
        return True


# --- Emitter and scan loop ---

def emit(sink, data):
    """Writes one string followed by a newline."""
    sink.write(data + b'\n')


def _emit_accepted(source, spans, rules, sink):
    count = 0
    for span in spans:
        data = source.read(span.start, span.end - span.start)
        if rules.accepts(data):
            emit(sink, data)
            count += 1
    return count


def scan(source, sink, rules=None, min_size=DEFAULT_MIN_SIZE, progress=None, chunk_size=CHUNK_SIZE):
    """
    Scans source from its start offset to the end, writing every string that
    passes the rules to sink. Returns the number of strings written.
    """
    if chunk_size <= 0:
        raise ConfigurationError(f"chunk size must be positive, got {chunk_size}")
    if rules is None:
        rules = FilterRuleSet()

    scanner = BoundaryScanner(min_size)
    emitted = 0
    cursor = source.start_offset

    while cursor < source.total_length:
        chunk = source.read(cursor, chunk_size)
        spans = scanner.feed(chunk, cursor)
        cursor += len(chunk)
        emitted += _emit_accepted(source, spans, rules, sink)
        if progress is not None:
            progress.update(cursor - source.start_offset)

    # A string touching the end of the input is kept too.
    emitted += _emit_accepted(source, scanner.finish(cursor), rules, sink)
    return emitted


# --- Command line ---

class ArgumentParser(argparse.ArgumentParser):
    """argparse exits with 2 on bad usage; every fatal error here exits with 1."""

    def error(self, message):
        sys.stderr.write(f"{self.prog}: {message}\n")
        sys.exit(EX_FAILURE)


def parse_number(value: str) -> int:
    """Parses a decimal, octal (leading 0) or hex (0x) number."""
    try:
        if len(value) > 1 and value.startswith('0') and not value.startswith(('0x', '0X')):
            return int(value, 8)
        return int(value, 0)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid number '{value}'")


def split_filter_args(argv):
    """
    Pulls the -f arguments out of argv. Filters such as "-bar" start with a
    dash, which argparse would take for an option.

    Flags are read the way getopt reads them: -q and -h may be clustered
    (-qf "-bar"), and the value of -o, -n or -j is whatever follows the flag,
    even when it starts with a dash. Those values are passed on attached to
    their flag (-o-fout.txt) so argparse cannot mistake them for options.
    """
    filters = []
    remaining = []
    args = iter(argv)
    for arg in args:
        if arg == '--':
            remaining.append(arg)
            remaining.extend(args)
            break
        if not arg.startswith('-') or arg == '-':
            remaining.append(arg)
            continue

        flags = arg[1:]
        index = 0
        while index < len(flags) and flags[index] in NO_VALUE_FLAGS:
            index += 1
        if index == len(flags) or flags[index] not in VALUE_FLAGS + 'f':
            # plain flags, or something argparse will reject
            remaining.append(arg)
            continue

        remaining.extend('-' + flag for flag in flags[:index])
        option, value = flags[index], flags[index + 1:]
        if not value:
            value = next(args, None)
        if option == 'f':
            if value is None:
                raise ConfigurationError("option -f requires an argument")
            filters.append(value)
        elif value is None:
            remaining.append('-' + option)
        else:
            remaining.append('-' + option + value)
    return filters, remaining


def build_parser(prog):
    parser = ArgumentParser(prog=prog, add_help=False, usage=argparse.SUPPRESS)
    parser.add_argument('-o', dest='output', help='output file')
    parser.add_argument('-n', dest='min_size', type=parse_number, default=DEFAULT_MIN_SIZE,
                        help='minimum string length')
    parser.add_argument('-j', dest='offset', type=parse_number, default=0,
                        help='resume offset')
    parser.add_argument('-q', dest='quiet', action='store_true', help='quiet')
    parser.add_argument('-h', dest='help', action='store_true', help='usage')
    parser.add_argument('input', nargs='?')
    return parser


def open_output(path):
    """Opens the output sink; standard output is used when path is None."""
    if path is None:
        return contextlib.nullcontext(sys.stdout.buffer)
    try:
        return open(path, 'wb')
    except OSError as e:
        raise AccessError(f"cannot open output file '{path}': {e.strerror}") from e


def main(argv=None):
    """Parses arguments and runs the scan."""
    program_name = os.path.basename(sys.argv[0])
    if argv is None:
        argv = sys.argv[1:]

    try:
        filters, argv = split_filter_args(argv)
    except ConfigurationError as e:
        print(f"{program_name}: {e}", file=sys.stderr)
        sys.exit(EX_FAILURE)

    args = build_parser(program_name).parse_args(argv)
    if args.help:
        sys.stdout.write(USAGE.format(prog=program_name))
        sys.exit(EX_SUCCESS)

    status = None if args.quiet else sys.stderr

    try:
        # --- 1. Validate the configuration before touching any file ---
        if args.input is None:
            raise ConfigurationError("Input file name not specified. Run with -h to see the syntax.")
        if args.min_size < 0:
            raise ConfigurationError(f"minimum string size must not be negative, got {args.min_size}")
        if args.offset < 0:
            raise ConfigurationError(f"offset must not be negative, got {args.offset}")
        rules = FilterRuleSet.parse(' '.join(filters)) if filters else FilterRuleSet()

        if status is not None:
            for line in rules.describe():
                print(line, file=status)

        # --- 2. Scan ---
        with ByteSource.open(args.input, args.offset) as source, open_output(args.output) as sink:
            if status is not None:
                if args.offset:
                    print(f"\nStarting from offset {args.offset}...", file=status)
                else:
                    print("\nStarting...", file=status)

            progress = ProgressReporter(len(source), status) if status is not None else None
            scan(source, sink, rules, args.min_size, progress)
            sink.flush()

    except FsgError as e:
        print(f"{program_name}: {e}", file=sys.stderr)
        sys.exit(EX_FAILURE)
    except BrokenPipeError:
        # The reader went away (fsg ... | head). Point stdout at devnull so
        # the flush at interpreter shutdown does not fail again.
        if args.output is None:
            devnull = os.open(os.devnull, os.O_WRONLY)
            os.dup2(devnull, sys.stdout.fileno())
        sys.exit(EX_FAILURE)
    except OSError as e:
        print(f"{program_name}: I/O error: {e.strerror or e}", file=sys.stderr)
        sys.exit(EX_FAILURE)

    if status is not None:
        print("Done.", file=status)
    sys.exit(EX_SUCCESS)


if __name__ == "__main__":
    main()
