#!/usr/bin/env python3
"""
Create a FritzAdr.dbf file from a pipe-delimited text file.

The text file format:
- Line 1: Field names separated by pipes (|), e.g. NAME|VORNAME|TELEFON
- Line 2+: Data rows separated by pipes (|)

Usage:
    python fritzadr_import.py ADDRESSES.TXT [FritzAdr.dbf] [--fields 19|21]
"""

import sys

from fritzdbf_module import (
    FritzDBF, InvalidSchemaError, DEFAULT_FIELD_COUNT, DEFAULT_FILENAME
)


def import_fritzadr_from_text(txt_filename: str, dbf_filename: str = DEFAULT_FILENAME,
                              field_count: int = DEFAULT_FIELD_COUNT) -> int:
    """
    Import a FRITZ!Adr database from a pipe-delimited text file.

    Columns whose name is not a FRITZ!Adr field are ignored.

    Args:
        txt_filename: Path to the text file
        dbf_filename: Path of the DBF file to write
        field_count: Table layout, 19 or 21

    Returns:
        Number of records written
    """
    fritz_adr = FritzDBF(field_count)

    with open(txt_filename, 'r', encoding='utf-8-sig') as f:
        lines = f.readlines()

    if not lines or not lines[0].strip():
        raise ValueError("Text file must start with a line of field names")

    field_names = [name.strip().upper() for name in lines[0].strip().split('|')]

    for line in lines[1:]:
        line = line.strip()
        if not line:
            continue
        row_values = [val.strip() for val in line.split('|')]
        fritz_adr.add_record(dict(zip(field_names, row_values)))

    with open(dbf_filename, 'wb') as f:
        f.write(fritz_adr.get_database())

    return fritz_adr.record_count


def parse_args(argv):
    """Split argv into (input, output, field_count)."""
    args = list(argv)
    field_count = DEFAULT_FIELD_COUNT
    if '--fields' in args:
        pos = args.index('--fields')
        if pos + 1 >= len(args):
            raise ValueError("--fields needs a value (19 or 21)")
        try:
            field_count = int(args[pos + 1])
        except ValueError:
            raise ValueError(f"Invalid field count: {args[pos + 1]}")
        del args[pos:pos + 2]

    if not args or len(args) > 2:
        raise ValueError("Usage: fritzadr_import.py INPUT.TXT [OUTPUT.DBF] [--fields 19|21]")

    txt_filename = args[0]
    dbf_filename = args[1] if len(args) > 1 else DEFAULT_FILENAME
    return txt_filename, dbf_filename, field_count


def main(argv=None):
    """Main function"""
    if argv is None:
        argv = sys.argv[1:]

    try:
        txt_filename, dbf_filename, field_count = parse_args(argv)
    except ValueError as e:
        print(e)
        return 1

    print(f"Importing {txt_filename} into {dbf_filename} ({field_count} fields)")

    try:
        count = import_fritzadr_from_text(txt_filename, dbf_filename, field_count)
    except InvalidSchemaError as e:
        print(f"Error: {e}")
        return 1
    except (OSError, ValueError) as e:
        print(f"Error importing addresses: {e}")
        return 1

    print(f"✓ {count} records written to {dbf_filename}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
