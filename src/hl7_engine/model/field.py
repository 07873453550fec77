# src/hl7_engine/model/field.py
"""
Field: a transient view over one HL7 field value.

A field is split on the component delimiter (``^`` by default) into an
ordered index -> value mapping. Only one level of components is modelled;
repetition and sub-component delimiters are left in the component text.
"""

from __future__ import annotations

from typing import Dict, Optional

DEFAULT_COMPONENT_DELIMITER = "^"


class Field:
    """
    Components of a single HL7 field.

    Empty components are never stored: ``Field("A^^C")`` has entries at
    indexes 0 and 2 only. A Field is truthy iff its raw value is non-empty.
    """

    def __init__(
        self, raw: Optional[str] = "", delimiter: str = DEFAULT_COMPONENT_DELIMITER
    ) -> None:
        if not delimiter:
            raise ValueError("delimiter must be a non-empty string")
        self.delimiter = delimiter
        self._components: Dict[int, str] = {}
        self.value = ""
        self.parse(raw or "")

    def parse(self, raw: str) -> None:
        """Replace the field content with the components of ``raw``."""
        self.value = raw
        self._components = {}
        for i, token in enumerate(raw.split(self.delimiter)):
            self.set_component(i, token)

    def get_component(self, index: int) -> Optional[str]:
        return self._components.get(index)

    def set_component(self, index: int, value: Optional[str]) -> None:
        if index < 0:
            raise IndexError(f"component index must be non-negative, got {index}")
        if value:
            self._components[index] = value
        else:
            self._components.pop(index, None)

    def components(self) -> Dict[int, str]:
        return dict(self._components)

    def is_present(self) -> bool:
        return bool(self.value)

    def as_string(self) -> str:
        return self.value

    def __getitem__(self, index: int) -> Optional[str]:
        return self.get_component(index)

    def __setitem__(self, index: int, value: Optional[str]) -> None:
        self.set_component(index, value)

    def __bool__(self) -> bool:
        return self.is_present()

    def __str__(self) -> str:
        return self.value

    def __repr__(self) -> str:
        return f"Field({self.value!r})"
