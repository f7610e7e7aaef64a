import csv
from typing import Dict, Iterator, List, Optional, TextIO
import structlog
from pydantic import ValidationError

from errors import MalformedHeaderError
from models import Transaction, transaction_adapter

logger = structlog.get_logger()

REQUIRED_COLUMNS = ("type", "client", "tx")
OPTIONAL_COLUMNS = ("amount",)


class TransactionReader:
    """Streams typed transactions out of a delimited text log.

    Columns are located through the header row, so extra whitespace or a
    reordered header is fine. Rows that do not decode into a transaction are
    logged and skipped; the reader keeps going.
    """

    def __init__(self, stream: TextIO, delimiter: str = ","):
        self.stream = stream
        self.delimiter = delimiter
        self.rows_read = 0
        self.rows_skipped = 0

    def __iter__(self) -> Iterator[Transaction]:
        reader = csv.reader(self.stream, delimiter=self.delimiter)
        header = next(reader, None)
        if header is None:
            logger.warning("Input has no header row")
            return

        columns = self.map_columns(header)
        for record in reader:
            if not any(field.strip() for field in record):
                continue

            self.rows_read += 1
            row_number = reader.line_num
            transaction = self.decode_record(record, columns, row_number)
            if transaction is None:
                self.rows_skipped += 1
                continue
            yield transaction

    @staticmethod
    def map_columns(header: List[str]) -> Dict[str, int]:
        names = [name.strip().lstrip("\ufeff").lower() for name in header]
        columns = {}
        for name in REQUIRED_COLUMNS + OPTIONAL_COLUMNS:
            if name in names:
                columns[name] = names.index(name)

        missing = [name for name in REQUIRED_COLUMNS if name not in columns]
        if missing:
            raise MalformedHeaderError(
                f"header {header!r} is missing required column(s): {', '.join(missing)}"
            )
        return columns

    def decode_record(self, record: List[str], columns: Dict[str, int], row_number: int) -> Optional[Transaction]:
        fields = {}
        for name, idx in columns.items():
            if idx >= len(record):
                continue
            value = record[idx].strip()
            if value:
                fields[name] = value

        try:
            return transaction_adapter.validate_python(fields)
        except ValidationError as e:
            logger.warning(
                "Skipping malformed row",
                row=row_number,
                record=record,
                errors=[
                    f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
                    for error in e.errors()
                ],
            )
            return None
