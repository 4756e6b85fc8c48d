"""Intrusive-style doubly linked list with head and tail sentinels.

Elements are :class:`ListElem` nodes carrying a ``value``.  A node belongs
to at most one list at a time; the list operations relink nodes rather than
copying values, so a node keeps its identity when moved between lists.

Ordering operations take a ``less(a, b)`` callable that receives two values
and returns true when ``a`` sorts strictly before ``b``.
"""

from __future__ import annotations

from typing import Any, Callable, Iterable, Iterator, Optional

Less = Callable[[Any, Any], bool]


class ListElem:
    """A list node holding one value."""

    __slots__ = ("value", "_prev", "_next", "_sentinel")

    def __init__(self, value: Any = None, *, _sentinel: bool = False) -> None:
        self.value = value
        self._prev: Optional[ListElem] = None
        self._next: Optional[ListElem] = None
        self._sentinel = _sentinel

    @property
    def linked(self) -> bool:
        """True while the node is an interior element of some list."""
        return self._is_interior()

    def _is_head(self) -> bool:
        return self._prev is None and self._next is not None

    def _is_interior(self) -> bool:
        return self._prev is not None and self._next is not None

    def _is_tail(self) -> bool:
        return self._prev is not None and self._next is None

    def __repr__(self) -> str:
        if self._sentinel:
            return "ListElem(<sentinel>)"
        return f"ListElem({self.value!r})"


class DList:
    """A doubly linked list of :class:`ListElem` nodes."""

    def __init__(self, values: Iterable[Any] = ()) -> None:
        self._head = ListElem(_sentinel=True)
        self._tail = ListElem(_sentinel=True)
        self._head._next = self._tail
        self._tail._prev = self._head
        for value in values:
            self.push_back(value)

    # -- traversal -------------------------------------------------------

    def __len__(self) -> int:
        return sum(1 for _ in self)

    def __iter__(self) -> Iterator[ListElem]:
        e = self._head._next
        while e is not self._tail:
            following = e._next
            yield e
            e = following

    def __reversed__(self) -> Iterator[ListElem]:
        e = self._tail._prev
        while e is not self._head:
            preceding = e._prev
            yield e
            e = preceding

    def __bool__(self) -> bool:
        return not self.is_empty()

    def __repr__(self) -> str:
        return f"DList({self.values()!r})"

    def values(self) -> list:
        """Return the values of the list, front to back."""
        return [e.value for e in self]

    def is_empty(self) -> bool:
        return self._head._next is self._tail

    def front(self) -> ListElem:
        if self.is_empty():
            raise IndexError("front of empty list")
        return self._head._next

    def back(self) -> ListElem:
        if self.is_empty():
            raise IndexError("back of empty list")
        return self._tail._prev

    # -- insertion -------------------------------------------------------

    @staticmethod
    def _coerce(elem: Any) -> ListElem:
        if isinstance(elem, ListElem):
            if elem._sentinel:
                raise ValueError("cannot insert a list sentinel")
            if elem._is_interior():
                raise ValueError("element is already in a list")
            return elem
        return ListElem(elem)

    def _position(self, before: Optional[ListElem]) -> ListElem:
        if before is None:
            return self._tail
        if not (before._is_interior() or before._is_tail()):
            raise ValueError("insertion point must be a list element or tail")
        return before

    @staticmethod
    def _link_before(before: ListElem, elem: ListElem) -> None:
        elem._prev = before._prev
        elem._next = before
        before._prev._next = elem
        before._prev = elem

    def insert(self, before: Optional[ListElem], elem: Any) -> ListElem:
        """Insert ``elem`` just before ``before``; ``None`` means the end.

        A plain value is wrapped in a new node.  Returns the inserted node.
        """
        position = self._position(before)
        node = self._coerce(elem)
        self._link_before(position, node)
        return node

    def push_front(self, elem: Any) -> ListElem:
        return self.insert(self._head._next, elem)

    def push_back(self, elem: Any) -> ListElem:
        return self.insert(self._tail, elem)

    # -- removal ---------------------------------------------------------

    @staticmethod
    def _unlink(elem: ListElem) -> ListElem:
        following = elem._next
        elem._prev._next = elem._next
        elem._next._prev = elem._prev
        elem._prev = None
        elem._next = None
        return following

    def remove(self, elem: ListElem) -> Optional[ListElem]:
        """Remove ``elem`` and return the node that followed it.

        Returns ``None`` when the removed node was the last one.
        """
        if not isinstance(elem, ListElem) or not elem._is_interior():
            raise ValueError("element is not in a list")
        following = self._unlink(elem)
        return None if following._is_tail() else following

    def pop_front(self) -> ListElem:
        front = self.front()
        self._unlink(front)
        return front

    def pop_back(self) -> ListElem:
        back = self.back()
        self._unlink(back)
        return back

    # -- splicing --------------------------------------------------------

    @staticmethod
    def _splice(before: ListElem, first: ListElem, last: ListElem) -> None:
        if first is last:
            return
        last = last._prev
        first._prev._next = last._next
        last._next._prev = first._prev
        first._prev = before._prev
        last._next = before
        before._prev._next = first
        before._prev = last

    def splice(
        self,
        before: Optional[ListElem],
        first: ListElem,
        last: Optional[ListElem] = None,
    ) -> None:
        """Move ``first`` up to ``last`` (exclusive) to just before ``before``.

        The range may come from this list or another one.  ``before=None``
        means the end of this list; ``last=None`` means the end of the list
        that holds ``first``.
        """
        position = self._position(before)
        if not isinstance(first, ListElem) or not first._is_interior():
            raise ValueError("range start is not a list element")
        if first is last:
            return
        e = first
        while e is not last:
            if e is position:
                raise ValueError("insertion point lies inside the range")
            if e._is_tail():
                if last is None:
                    break
                raise ValueError("range end does not follow range start")
            e = e._next
        self._splice(position, first, e)

    # -- reordering ------------------------------------------------------

    def reverse(self) -> None:
        """Reverse the list in place."""
        if self.is_empty():
            return
        e = self._head._next
        while e is not self._tail:
            e._prev, e._next = e._next, e._prev
            e = e._prev
        self._head._next, self._tail._prev = self._tail._prev, self._head._next
        self._head._next._prev = self._head
        self._tail._prev._next = self._tail

    @staticmethod
    def _end_of_run(a: ListElem, b: ListElem, less: Less) -> ListElem:
        a = a._next
        while a is not b and not less(a.value, a._prev.value):
            a = a._next
        return a

    def _merge(self, a0: ListElem, a1b0: ListElem, b1: ListElem, less: Less) -> None:
        while a0 is not a1b0 and a1b0 is not b1:
            if not less(a1b0.value, a0.value):
                a0 = a0._next
            else:
                a1b0 = a1b0._next
                self._splice(a0, a1b0._prev, a1b0)

    def sort(self, less: Less) -> None:
        """Stable natural merge sort, in place, using ``less`` on values."""
        end = self._tail
        while True:
            runs = 0
            a0 = self._head._next
            while a0 is not end:
                runs += 1
                a1b0 = self._end_of_run(a0, end, less)
                if a1b0 is end:
                    break
                b1 = self._end_of_run(a1b0, end, less)
                self._merge(a0, a1b0, b1, less)
                a0 = b1
            if runs <= 1:
                break

    def insert_ordered(self, elem: Any, less: Less) -> ListElem:
        """Insert into a list already sorted by ``less``, after equal values."""
        node = self._coerce(elem)
        e = self._head._next
        while e is not self._tail and not less(node.value, e.value):
            e = e._next
        self._link_before(e, node)
        return node

    def unique(self, less: Less, duplicates: Optional[DList] = None) -> None:
        """Drop all but the first of each run of adjacent equal values.

        Removed nodes are appended to ``duplicates`` when it is given.
        """
        if self.is_empty():
            return
        elem = self._head._next
        while elem._next is not self._tail:
            following = elem._next
            if not less(elem.value, following.value) and not less(
                following.value, elem.value
            ):
                self._unlink(following)
                if duplicates is not None:
                    duplicates.push_back(following)
            else:
                elem = following

    def max(self, less: Less) -> Optional[ListElem]:
        """Return the node with the largest value, the earliest on ties."""
        best = None
        for e in self:
            if best is None or less(best.value, e.value):
                best = e
        return best

    def min(self, less: Less) -> Optional[ListElem]:
        """Return the node with the smallest value, the earliest on ties."""
        best = None
        for e in self:
            if best is None or less(e.value, best.value):
                best = e
        return best