"""
In-memory writer for the FRITZ!Adr address book database.
This module builds dBase III (.DBF) images in the layout read by the
FRITZ!Fon, FRITZ!Data, FRITZ!Com and FRITZ!fax tools.

The default file name is 'FritzAdr.dbf'. Only write access is supported:
records are appended to an in-memory table and the complete file image is
returned as bytes, ready to be written to disk or uploaded via FTP.

Usage:
    fritz_adr = FritzDBF(21)
    fritz_adr.add_record({'NAME': 'Doe', 'VORNAME': 'John'})
    with open('FritzAdr.dbf', 'wb') as f:
        f.write(fritz_adr.get_database())
"""

import codecs
import datetime
import logging
import struct
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple


logger = logging.getLogger("fritzdbf")


# Constants
DBF_VERSION_DBASE3 = 0x03
DBF_HEADER_TERMINATOR = 0x0D
DBF_EOF_MARKER = 0x1A
DBF_ROW_ACTIVE = 0x20
DBF_ROW_DELETED = 0x2A
DBF_TABLE_FLAGS = 0x01  # byte 28; FritzAdr.dbf files carry the mdx flag
DBF_HEADER_BLOCK_SIZE = 32
DBF_FIELD_NAME_SIZE = 10

DEFAULT_FIELD_COUNT = 21
DEFAULT_ENCODING = "cp1252"
DEFAULT_FILENAME = "FritzAdr.dbf"


# Data structures
@dataclass(frozen=True)
class DBFColumn:
    """Represents a column/field in a DBF file."""
    name: str  # Field name (max 10 chars)
    field_type: str  # Always 'C' for FRITZ!Adr
    length: int  # Field length in bytes
    decimals: int = 0  # Unused for character fields


@dataclass(frozen=True)
class FritzAdrDefinition:
    """One of the two known FRITZ!Adr table layouts."""
    field_count: int
    fields: Tuple[DBFColumn, ...]
    record_size: int  # delete flag + sum of field lengths, measured from real files


@dataclass
class DBFHeader:
    """Represents the 32 byte main header of a DBF file."""
    version: int = DBF_VERSION_DBASE3
    year: int = 0  # Last update year (year % 1000)
    month: int = 0  # Last update month
    day: int = 0  # Last update day
    record_count: int = 0  # Number of records
    header_size: int = 0  # Header size in bytes
    record_size: int = 0  # Record size in bytes
    table_flags: int = DBF_TABLE_FLAGS
    language_driver: int = 0  # Unused for dBase III


class InvalidSchemaError(ValueError):
    """Raised when a table definition with an unsupported field count is requested."""

    def __init__(self, field_count):
        self.field_count = field_count
        super().__init__(
            f"FRITZ!Adr table definition must have 19 or 21 fields. "
            f"You have specified {field_count}!"
        )


Record = Dict[str, bytes]


# Table definitions
FRITZADR_DEFINITION_19 = FritzAdrDefinition(
    field_count=19,
    fields=(
        DBFColumn("BEZCHNG", "C", 40),    # field  1
        DBFColumn("FIRMA", "C", 40),
        DBFColumn("NAME", "C", 40),
        DBFColumn("VORNAME", "C", 40),
        DBFColumn("ABTEILUNG", "C", 40),  # field  5
        DBFColumn("STRASSE", "C", 40),
        DBFColumn("PLZ", "C", 10),
        DBFColumn("ORT", "C", 40),
        DBFColumn("KOMMENT", "C", 80),
        DBFColumn("TELEFON", "C", 64),    # field 10
        DBFColumn("MOBILFON", "C", 64),
        DBFColumn("TELEFAX", "C", 64),
        DBFColumn("TRANSFER", "C", 64),
        DBFColumn("BENUTZER", "C", 128),
        DBFColumn("PASSWORT", "C", 128),  # field 15
        DBFColumn("TRANSPROT", "C", 1),
        DBFColumn("NOTIZEN", "C", 254),
        DBFColumn("EMAIL", "C", 254),
        DBFColumn("HOMEPAGE", "C", 254),  # field 19
    ),
    record_size=1646,
)

FRITZADR_DEFINITION_21 = FritzAdrDefinition(
    field_count=21,
    fields=(
        DBFColumn("BEZCHNG", "C", 40),    # field  1
        DBFColumn("FIRMA", "C", 40),
        DBFColumn("NAME", "C", 40),
        DBFColumn("VORNAME", "C", 40),
        DBFColumn("ABTEILUNG", "C", 40),  # field  5
        DBFColumn("STRASSE", "C", 40),
        DBFColumn("PLZ", "C", 10),
        DBFColumn("ORT", "C", 40),
        DBFColumn("KOMMENT", "C", 80),
        DBFColumn("TELEFON", "C", 64),    # field 10
        DBFColumn("TELEFAX", "C", 64),
        DBFColumn("TRANSFER", "C", 64),
        DBFColumn("TERMINAL", "C", 64),
        DBFColumn("BENUTZER", "C", 128),
        DBFColumn("PASSWORT", "C", 128),  # field 15
        DBFColumn("TRANSPROT", "C", 1),
        DBFColumn("TERMMODE", "C", 40),
        DBFColumn("NOTIZEN", "C", 254),
        DBFColumn("MOBILFON", "C", 64),
        DBFColumn("EMAIL", "C", 254),     # field 20
        DBFColumn("HOMEPAGE", "C", 254),  # field 21
    ),
    record_size=1750,
)

TABLE_DEFINITIONS = {
    19: FRITZADR_DEFINITION_19,
    21: FRITZADR_DEFINITION_21,
}


# Schema helpers
def get_table_definition(field_count: int) -> FritzAdrDefinition:
    """
    Look up the FRITZ!Adr table definition for a field count.

    Args:
        field_count: 19 or 21

    Returns:
        The matching table definition

    Raises:
        InvalidSchemaError: for any other field count
    """
    definition = None
    if isinstance(field_count, int):
        definition = TABLE_DEFINITIONS.get(field_count)
    if definition is None:
        raise InvalidSchemaError(field_count)
    return definition


def get_field_offsets(definition: FritzAdrDefinition) -> Dict[str, int]:
    """Return the byte offset of every field within a record."""
    offsets = {}
    offset = 1  # First byte is delete flag
    for field in definition.fields:
        offsets[field.name] = offset
        offset += field.length
    return offsets


def get_header_size(definition: FritzAdrDefinition) -> int:
    """Main header + one descriptor per field + terminator byte."""
    return DBF_HEADER_BLOCK_SIZE + definition.field_count * DBF_HEADER_BLOCK_SIZE + 1


# Record encoding
def build_empty_record(definition: FritzAdrDefinition) -> Record:
    """Build a record with every field filled with spaces to its length."""
    return {field.name: b' ' * field.length for field in definition.fields}


def set_field_value(record: Record, definition: FritzAdrDefinition, name: str,
                    value: Any, encoding: str = DEFAULT_ENCODING) -> Record:
    """
    Set a value to a designated field.

    Values are truncated to the field length and padded with spaces.
    Truncation works on the encoded bytes, so a multi-byte encoding can cut
    a character in half.

    Args:
        record: Record as returned by build_empty_record
        definition: Table definition the record belongs to
        name: Field name, e.g. 'NAME'; unknown names leave the record unchanged
        value: bytes are stored as they are; anything else is converted
               with str() and encoded, so 10115 is stored as '10115'
        encoding: Codec for str values; unencodable characters become '?'

    Returns:
        The record
    """
    length = None
    for field in definition.fields:
        if field.name == name:
            length = field.length
            break
    if length is None:
        return record

    if isinstance(value, (bytes, bytearray)):
        value = bytes(value)
    else:
        value = str(value).encode(encoding, errors='replace')

    record[name] = value[:length].ljust(length, b' ')
    return record


def finalize_record(record: Record, definition: FritzAdrDefinition) -> bytes:
    """
    Turn a record into its fixed width row.

    Returns:
        Delete flag followed by every field in definition order
    """
    row = bytearray([DBF_ROW_ACTIVE])
    for field in definition.fields:
        row += record[field.name]
    return bytes(row)


class DBFTable:
    """Append-only buffer of finalized rows."""

    def __init__(self):
        self.data = bytearray()
        self.record_count = 0

    def append(self, row: bytes) -> None:
        self.data += row
        self.record_count += 1


# Header and field descriptors
def make_dbf_header(definition: FritzAdrDefinition, record_count: int,
                    today: Optional[datetime.date] = None) -> DBFHeader:
    """
    Fill a DBFHeader for the given table state.

    The year byte holds year % 1000 (26 for 2026). Only the low byte is
    kept, so the value wraps to 0 in 2256.

    Args:
        definition: Active table definition
        record_count: Number of records in the table
        today: Date of last update, defaults to the current date

    Returns:
        A DBFHeader
    """
    if today is None:
        today = datetime.date.today()

    return DBFHeader(
        version=DBF_VERSION_DBASE3,
        year=(today.year % 1000) & 0xFF,
        month=today.month,
        day=today.day,
        record_count=record_count,
        header_size=get_header_size(definition),
        record_size=definition.record_size,
        table_flags=DBF_TABLE_FLAGS,
        language_driver=0,
    )


def build_dbf_header(header: DBFHeader) -> bytes:
    """Pack a DBFHeader into its 32 byte form."""
    buf = bytearray(DBF_HEADER_BLOCK_SIZE)
    buf[0] = header.version
    buf[1] = header.year
    buf[2] = header.month
    buf[3] = header.day
    buf[4:8] = struct.pack("<L", header.record_count)
    buf[8:10] = struct.pack("<H", header.header_size)
    buf[10:12] = struct.pack("<H", header.record_size)
    # 12 - 27 reserved
    buf[28] = header.table_flags
    buf[29] = header.language_driver
    return bytes(buf)


def build_field_descriptors(fields: Iterable[DBFColumn]) -> bytes:
    """
    Build the 32 byte descriptor of each field.

    Layout per field: name (10 bytes, zero padded), separator, type,
    4 reserved bytes, length, decimal count, 14 reserved bytes.
    """
    out = bytearray()
    for field in fields:
        buf = bytearray(DBF_HEADER_BLOCK_SIZE)
        field_name_bytes = field.name.encode('ascii', errors='replace')[:DBF_FIELD_NAME_SIZE]
        buf[:len(field_name_bytes)] = field_name_bytes
        # byte 10 is the zero separator
        buf[11] = ord(field.field_type[0])
        buf[16] = field.length
        buf[17] = field.decimals
        out += buf
    return bytes(out)


class FritzDBF:
    """
    Encoder for one FRITZ!Adr database.

    Records are appended in memory; get_database() can be called at any
    time and always reflects the records added so far.
    """

    def __init__(self, field_count: int = DEFAULT_FIELD_COUNT, encoding: str = DEFAULT_ENCODING):
        self.definition = get_table_definition(field_count)
        codecs.lookup(encoding)  # raises LookupError for unknown codecs
        self.encoding = encoding
        self.table = DBFTable()
        logger.debug("FritzAdr table with %d fields, record size %d",
                     field_count, self.definition.record_size)

    @property
    def field_names(self) -> Tuple[str, ...]:
        return tuple(field.name for field in self.definition.fields)

    @property
    def record_count(self) -> int:
        return self.table.record_count

    @property
    def header_size(self) -> int:
        return get_header_size(self.definition)

    @property
    def record_size(self) -> int:
        return self.definition.record_size

    def add_record(self, fields: Mapping[str, Any]) -> None:
        """
        Append a record to the table.

        Args:
            fields: Field values by name, e.g. {'NAME': 'Doe', 'VORNAME': 'John'}.
                    Unknown names and None values are ignored.
        """
        record = build_empty_record(self.definition)
        for name, value in fields.items():
            if value is not None:
                record = set_field_value(record, self.definition, name, value, self.encoding)
        self.table.append(finalize_record(record, self.definition))
        logger.debug("Added record %d", self.table.record_count)

    def get_database(self, today: Optional[datetime.date] = None) -> bytes:
        """
        Get the complete dBase file image.

        Args:
            today: Date written to the header, defaults to the current date

        Returns:
            Header, field descriptors, terminator, records and EOF marker
        """
        header = make_dbf_header(self.definition, self.table.record_count, today)
        image = (build_dbf_header(header)
                 + build_field_descriptors(self.definition.fields)
                 + bytes([DBF_HEADER_TERMINATOR])
                 + bytes(self.table.data)
                 + bytes([DBF_EOF_MARKER]))
        logger.debug("Assembled database: %d records, %d bytes",
                     header.record_count, len(image))
        return image


# Export functions
__all__ = [
    'DBFColumn', 'DBFHeader', 'DBFTable', 'FritzAdrDefinition', 'FritzDBF',
    'InvalidSchemaError', 'Record',
    'DBF_VERSION_DBASE3', 'DBF_HEADER_TERMINATOR', 'DBF_EOF_MARKER',
    'DBF_ROW_ACTIVE', 'DBF_ROW_DELETED', 'DBF_TABLE_FLAGS',
    'DBF_HEADER_BLOCK_SIZE', 'DBF_FIELD_NAME_SIZE',
    'DEFAULT_FIELD_COUNT', 'DEFAULT_ENCODING', 'DEFAULT_FILENAME',
    'FRITZADR_DEFINITION_19', 'FRITZADR_DEFINITION_21', 'TABLE_DEFINITIONS',
    'get_table_definition', 'get_field_offsets', 'get_header_size',
    'build_empty_record', 'set_field_value', 'finalize_record',
    'make_dbf_header', 'build_dbf_header', 'build_field_descriptors',
]
