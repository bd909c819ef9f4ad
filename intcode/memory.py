"""
Intcode Memory

Sparse, unbounded store of integers. Unset cells read as zero and
writes past the end extend the memory.
"""

from typing import Dict, Iterable, List

from .errors import NegativeAddress


class Memory:
    """
    Addressable integer memory.

    Values are Python ints, so programs producing numbers wider than
    64 bits are never truncated.
    """

    def __init__(self, program: Iterable[int] = ()):
        self._cells: Dict[int, int] = {}
        self._size = 0
        for address, value in enumerate(program):
            self.write(address, value)

    def _check(self, address: int):
        if address < 0:
            raise NegativeAddress(address)

    def read(self, address: int) -> int:
        """Read a cell; addresses never written read as 0."""
        self._check(address)
        return self._cells.get(address, 0)

    def write(self, address: int, value: int):
        """Write a cell, extending the memory if needed."""
        self._check(address)
        self._cells[address] = value
        if address >= self._size:
            self._size = address + 1

    def __getitem__(self, address: int) -> int:
        return self.read(address)

    def __setitem__(self, address: int, value: int):
        self.write(address, value)

    def __len__(self) -> int:
        """One past the highest address ever populated."""
        return self._size

    def dump(self) -> List[int]:
        """Dense copy of memory from address 0 to the end."""
        return [self._cells.get(address, 0) for address in range(self._size)]

    def copy(self) -> "Memory":
        clone = Memory()
        clone._cells = dict(self._cells)
        clone._size = self._size
        return clone

    def __repr__(self) -> str:
        return f"Memory(size={self._size})"
