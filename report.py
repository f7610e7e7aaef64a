import csv
from typing import Iterable, TextIO

from models import AccountSnapshot

FIELDNAMES = ["client", "available", "held", "total", "locked"]


def format_row(snapshot: AccountSnapshot) -> list:
    return [
        snapshot.client,
        f"{snapshot.available:f}",
        f"{snapshot.held:f}",
        f"{snapshot.total:f}",
        str(snapshot.locked).lower(),
    ]


def write_report(snapshots: Iterable[AccountSnapshot], stream: TextIO, delimiter: str = ",") -> int:
    """Write the account report, header first. Returns the number of rows written."""
    csvwriter = csv.writer(stream, delimiter=delimiter, lineterminator="\n")
    csvwriter.writerow(FIELDNAMES)
    count = 0
    for snapshot in snapshots:
        csvwriter.writerow(format_row(snapshot))
        count += 1
    return count
