"""CSV export of querysets (semicolon separated, Excel friendly)."""
import csv

from django.http import HttpResponse
from django.utils import timezone


def _cell(obj, column):
    if callable(column):
        value = column(obj)
    else:
        value = getattr(obj, column, "")
    return "" if value is None else str(value)


def queryset_to_csv_response(rows, columns, filename, dated=False):
    """Write *rows* to a downloadable CSV ``HttpResponse``.

    Args:
        rows: a QuerySet (streamed with ``iterator()``) or any iterable.
        columns: list of ``(attribute_or_callable, header)`` pairs. A string
            is read with ``getattr``, a callable is called with the row.
        filename: download name, without extension.
        dated: append today's local date to the file name.
    """
    if dated:
        filename = f"{filename}_{timezone.localdate():%Y-%m-%d}"

    response = HttpResponse(content_type="text/csv; charset=utf-8")
    response["Content-Disposition"] = f'attachment; filename="{filename}.csv"'
    # UTF-8 BOM so Excel detects the encoding.
    response.write("\ufeff")

    writer = csv.writer(response, delimiter=";")
    writer.writerow([header for _, header in columns])

    iterable = rows.iterator() if hasattr(rows, "iterator") else rows
    for obj in iterable:
        writer.writerow([_cell(obj, column) for column, _ in columns])

    return response
