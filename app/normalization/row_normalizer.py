"""
app/normalization/row_normalizer.py

Streaming CSV parsing into header-keyed rows.

The header row decides the field names; each name is trimmed and lower-cased
so that downstream lookups are case-insensitive. Input is consumed
incrementally: only the record currently being parsed is held in memory.
"""

from __future__ import annotations

import codecs
import csv
from collections.abc import Iterable, Iterator

from app.config import CSVDialectSettings
from app.domain.errors import CSVParseError

RawRow = dict[str, str]


def iter_text_lines(chunks: Iterable[bytes], *, encoding: str = "utf-8-sig") -> Iterator[str]:
    """
    Split byte chunks on physical line ends and decode one line at a time.

    The encoding must be ASCII-compatible so that a newline byte never sits
    inside a multi-byte character. Lines keep their terminator, as
    ``csv.reader`` expects.

    Raises:
        CSVParseError: On undecodable bytes, naming the offending line.
            Every earlier line has already been yielded.
    """

    decoder = codecs.getincrementaldecoder(encoding)(errors="strict")
    buffer = bytearray()
    line_number = 0
    for chunk in chunks:
        start = 0
        while True:
            end = chunk.find(b"\n", start)
            if end < 0:
                buffer += chunk[start:]
                break
            buffer += chunk[start : end + 1]
            line_number += 1
            yield _decode_line(decoder, bytes(buffer), line_number, final=False)
            buffer.clear()
            start = end + 1

    if buffer:
        yield _decode_line(decoder, bytes(buffer), line_number + 1, final=True)


def _decode_line(decoder: codecs.IncrementalDecoder, raw_line: bytes, line_number: int, *, final: bool) -> str:
    try:
        return decoder.decode(raw_line, final=final)
    except UnicodeDecodeError as exc:
        raise CSVParseError(
            f"CSV must be UTF-8 encoded (line {line_number}).",
            line_number=line_number,
        ) from exc


def normalize_header(name: str) -> str:
    return name.strip().lower()


class RowNormalizer:
    """
    Turns delimited text into a lazy sequence of ``(line_number, RawRow)``.
    """

    def __init__(self, dialect: CSVDialectSettings | None = None) -> None:
        self._dialect = dialect or CSVDialectSettings()

    def iter_rows_from_stream(
        self,
        chunks: Iterable[bytes],
        *,
        encoding: str = "utf-8-sig",
    ) -> Iterator[tuple[int, RawRow]]:
        """
        Decode byte chunks (dropping a leading BOM) and parse them as CSV.

        Errors raised by the chunk iterator itself propagate unchanged.
        """

        yield from self.iter_rows(iter_text_lines(chunks, encoding=encoding))

    def iter_rows(self, lines: Iterable[str]) -> Iterator[tuple[int, RawRow]]:
        """
        Parse text lines into header-keyed rows.

        Rows shorter than the header keep only the fields they have; extra
        trailing fields are dropped. Blank rows are skipped.

        Raises:
            CSVParseError: On unrecoverable syntax such as an unterminated
                quote. Rows yielded before the fault are not revisited.
        """

        reader = csv.reader(
            lines,
            delimiter=self._dialect.delimiter,
            quotechar=self._dialect.quotechar,
            escapechar=self._dialect.escapechar,
            doublequote=self._dialect.doublequote,
            skipinitialspace=False,
            strict=True,
        )
        headers: list[str] | None = None

        while True:
            try:
                values = next(reader)
            except StopIteration:
                return
            except csv.Error as exc:
                raise CSVParseError(
                    f"Invalid CSV format near line {reader.line_num}: {exc}",
                    line_number=reader.line_num,
                ) from exc
            except UnicodeDecodeError as exc:
                raise CSVParseError(
                    f"CSV must be UTF-8 encoded (near line {reader.line_num}).",
                    line_number=reader.line_num,
                ) from exc

            fields = [value.strip() for value in values]
            if not any(fields):
                continue

            if headers is None:
                headers = [normalize_header(name) for name in fields]
                continue

            yield reader.line_num, self._bind(headers, fields)

    @staticmethod
    def _bind(headers: list[str], fields: list[str]) -> RawRow:
        row: RawRow = {}
        for name, value in zip(headers, fields):
            if name:
                row[name] = value
        return row
