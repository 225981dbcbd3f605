"""
CSV rendering for downloads (payment history export).
"""
import csv
import io


def _flatten(value):
    if value is None:
        return ''
    return str(value).replace('\r\n', ' ').replace('\r', ' ').replace('\n', ' ')


def to_csv(headers, rows):
    """
    Every field double-quoted (embedded quotes doubled), newlines flattened to
    spaces, each row terminated with CRLF.
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator='\r\n')
    writer.writerow([_flatten(h) for h in headers])
    for row in rows:
        writer.writerow([_flatten(v) for v in row])
    return buffer.getvalue()
