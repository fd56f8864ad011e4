import logging
from datetime import date, datetime
from pathlib import Path
from typing import Dict, List, Any, Iterable, Optional, Sequence, Union

from covid_metrics.config import DATE_FORMATS, THOUSANDS_SEPARATORS

logger = logging.getLogger("covid_metrics.csv_parser")

INT64_MIN = -(2 ** 63)
INT64_MAX = 2 ** 63 - 1


def try_convert_type(value: str) -> Union[int, float, None, str]:
    # Try to convert string to int or float, return None if empty
    if value == '':
        return None
    try:
        return int(value)
    except Exception:
        try:
            return float(value)
        except Exception:
            return value


def _split_csv_line(line: str, sep: str = ',') -> List[str]:
    # Split CSV line handling quotes and escaped quotes
    out = []
    cur = []
    in_quotes = False
    i = 0
    n = len(line)

    while i < n:
        ch = line[i]
        if ch == '"':
            if in_quotes and i + 1 < n and line[i + 1] == '"':
                cur.append('"')
                i += 2
                continue
            in_quotes = not in_quotes
            i += 1
            continue
        if ch == sep and not in_quotes:
            out.append(''.join(cur))
            cur = []
            i += 1
            continue
        cur.append(ch)
        i += 1

    out.append(''.join(cur))
    return out


def custom_csv_parser(file_path: Union[str, Path], separator: str = ',') -> Dict[str, List[Any]]:
    path = Path(file_path) if not isinstance(file_path, Path) else file_path

    if not path.exists():
        raise FileNotFoundError(f"File {path} not found")

    if path.stat().st_size == 0:
        return {}

    data = {}
    ragged = 0
    with open(path, 'r', newline='', encoding='utf-8-sig') as f:
        header_line = f.readline().rstrip('\r\n')
        headers = [h.strip() for h in _split_csv_line(header_line, separator)]
        for h in headers:
            data[h] = []

        for raw in f:
            line = raw.rstrip('\r\n')
            if not line:
                continue
            values = _split_csv_line(line, separator)

            if len(values) != len(headers):
                ragged += 1
            if len(values) < len(headers):
                values += [''] * (len(headers) - len(values))

            if len(values) > len(headers):
                values = values[:len(headers)]

            for i, h in enumerate(headers):
                data[h].append(try_convert_type(values[i]))

    if ragged:
        logger.warning(f"{path.name}: {ragged} lines had a field count different from the header")
    logger.debug(f"Parsed {path.name}: {len(headers)} columns")
    return data


def _quote_field(value: Any, sep: str) -> str:
    if value is None:
        return ''
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    text = str(value)
    if sep in text or '"' in text or '\n' in text or '\r' in text:
        return '"' + text.replace('"', '""') + '"'
    return text


def write_csv(file_path: Union[str, Path], data: Dict[str, List[Any]], separator: str = ',') -> int:
    """Write a column-major table to CSV and return the number of data rows written."""
    path = Path(file_path)
    path.parent.mkdir(parents=True, exist_ok=True)

    headers = list(data.keys())
    num_rows = len(data[headers[0]]) if headers else 0
    with open(path, 'w', newline='', encoding='utf-8') as f:
        f.write(separator.join(_quote_field(h, separator) for h in headers) + '\n')
        for i in range(num_rows):
            f.write(separator.join(_quote_field(data[h][i], separator) for h in headers) + '\n')
    return num_rows


def to_float_or_none(x: Any) -> Optional[float]:
    # Convert to float or return None
    try:
        return float(x)
    except (TypeError, ValueError):
        return None


def clean_integer(value: Any, separators: Iterable[str] = THOUSANDS_SEPARATORS) -> Optional[int]:
    """
    Strip thousands separators and parse as a 64-bit integer.

    Values that cannot be read as a whole number, or do not fit in a signed
    64-bit integer, come back as None instead of raising.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, int):
        number = value
    elif isinstance(value, float):
        if value != value or not value.is_integer():
            return None
        number = int(value)
    else:
        text = str(value).strip()
        for sep in separators:
            text = text.replace(sep, '')
        if not text:
            return None
        try:
            number = int(text)
        except ValueError:
            as_float = to_float_or_none(text)
            if as_float is None or as_float != as_float or not as_float.is_integer():
                return None
            number = int(as_float)

    if number < INT64_MIN or number > INT64_MAX:
        return None
    return number


def parse_date(value: Any, formats: Sequence[str] = DATE_FORMATS) -> Optional[date]:
    """Parse a date cell, ignoring any time part. Returns None when no format matches."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    text = str(value).strip()
    if not text:
        return None
    # Drop a trailing time part ("2021-01-01 00:00:00" or "2021-01-01T00:00:00")
    for marker in ('T', ' '):
        if marker in text:
            text = text.split(marker, 1)[0]

    for fmt in formats:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None
