"""
Variable field table module

Ordered multi-valued mapping of 2-character field codes to string values
Used to stage outgoing variable fields and to hold parsed incoming ones
"""
from typing import Dict, Iterator, List, Optional, Tuple


#Field code width
CODE_LENGTH = 2
#Default variable field terminator
DEFAULT_FIELD_TERMINATOR = '|'


class FieldTable:
    """Variable field table"""

    def __init__(self, fields: Optional[Dict[str, object]] = None):
        """
        Args:
            fields: initial values, code -> value or list of values
        """
        self._fields: Dict[str, List[str]] = {}
        if fields:
            for code, value in fields.items():
                if isinstance(value, (list, tuple)):
                    for item in value:
                        self.add(code, item)
                else:
                    self.add(code, value)

    def add(self, code: str, value) -> None:
        """
        Append a value to a code, keeping earlier values

        Args:
            code: 2-character field code
            value: field value; None is ignored
        """
        if len(code) != CODE_LENGTH:
            raise ValueError(f"Field code must be {CODE_LENGTH} characters: {code!r}")
        if value is None:
            return
        self._fields.setdefault(code, []).append(str(value))

    def set(self, code: str, value) -> None:
        """Replace every value of a code; None removes the code"""
        self.remove(code)
        self.add(code, value)

    def get(self, code: str) -> List[str]:
        """All values of a code in append order (empty list when absent)"""
        return list(self._fields.get(code, []))

    def first(self, code: str, default: Optional[str] = None) -> Optional[str]:
        """First value of a code"""
        values = self._fields.get(code)
        if not values:
            return default
        return values[0]

    def remove(self, code: str) -> None:
        """Remove a code and its values"""
        self._fields.pop(code, None)

    def items(self) -> Iterator[Tuple[str, List[str]]]:
        for code, values in self._fields.items():
            yield code, list(values)

    def to_dict(self) -> Dict[str, List[str]]:
        return {code: list(values) for code, values in self._fields.items()}

    def copy(self) -> "FieldTable":
        table = FieldTable()
        for code, values in self._fields.items():
            for value in values:
                table.add(code, value)
        return table

    def __contains__(self, code: str) -> bool:
        return code in self._fields

    def __getitem__(self, code: str) -> List[str]:
        return self.get(code)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._fields))

    def __len__(self) -> int:
        return len(self._fields)

    def __eq__(self, other) -> bool:
        if not isinstance(other, FieldTable):
            return NotImplemented
        return self._fields == other._fields

    def __repr__(self) -> str:
        return f"FieldTable({self._fields!r})"


def parse_variable_fields(block: str, terminator: str = DEFAULT_FIELD_TERMINATOR) -> FieldTable:
    """
    Parse the variable field segment of a message

    Chunks shorter than the field code are dropped; a bare code is kept
    with an empty value.

    Args:
        block: text following the fixed fields
        terminator: field terminator character

    Returns:
        FieldTable: parsed fields
    """
    table = FieldTable()
    for chunk in block.split(terminator):
        if len(chunk) < CODE_LENGTH:
            continue
        table.add(chunk[:CODE_LENGTH], chunk[CODE_LENGTH:])
    return table
