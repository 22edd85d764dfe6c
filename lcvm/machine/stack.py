"""Bounded stack used for each of the machine's three stacks."""

from lcvm.lang.error import StackExhausted, StackUnderflow


class Stack:

    def __init__(self, name, capacity):
        self.name = name
        self.capacity = capacity
        self._items = []

    def push(self, item):
        if len(self._items) >= self.capacity:
            raise StackExhausted(self.name, self.capacity)
        self._items.append(item)

    def pop(self):
        if not self._items:
            raise StackUnderflow(self.name)
        return self._items.pop()

    def peek(self):
        if not self._items:
            raise StackUnderflow(self.name)
        return self._items[-1]

    def __len__(self):
        return len(self._items)

    def __repr__(self):
        return f"Stack({self.name!r}, {self._items})"
