import typing

from keyrecover import ApplicationException
from keyrecover.scan import ProductKeyRecord


class OutputError(ApplicationException):
    """ Exception thrown when results cannot be written. """
    pass


def format_record(record: ProductKeyRecord, quiet: bool = False) -> str:
    if quiet:
        return f"{record.key}\n"

    return f"Path: {record.path}\nValue: {record.value_name}\nKey: {record.key}\n\n"


def format_output(records: typing.Iterable[ProductKeyRecord], quiet: bool = False) -> str:
    """ Render records as text.

    :param records: records to render
    :param quiet: if True only the keys are included, one per line
    :return: str
    """
    return ''.join(format_record(record, quiet) for record in records)


def write_output(filename: str, content: str) -> None:
    """ Write rendered output to a text file, replacing any existing file.

    :param filename: output path
    :param content: text to write
    :raises OutputError: if the file cannot be written
    """
    try:
        with open(filename, 'w', encoding='utf-8') as output_file:
            output_file.write(content)
    except OSError as exc:
        raise OutputError(f"Unable to write output to {filename}") from exc
