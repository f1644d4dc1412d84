from collections.abc import Iterable, Iterator
from typing import Self


class MultiError(Exception):
    """An accumulator of errors from independent operations.

    An empty MultiError means every operation succeeded, use error_or_none()
    to turn it into something that can be checked or raised.
    """

    def __init__(self, errors: Iterable[BaseException] | None = None) -> None:
        self.errors: list[BaseException] = list(errors or [])
        super().__init__(self.errors)

    def append(self, err: BaseException) -> None:
        if isinstance(err, MultiError):
            self.errors.extend(err.errors)
        else:
            self.errors.append(err)

    def error_or_none(self) -> Self | None:
        return self if self.errors else None

    def __bool__(self) -> bool:
        return bool(self.errors)

    def __len__(self) -> int:
        return len(self.errors)

    def __iter__(self) -> Iterator[BaseException]:
        return iter(self.errors)

    def __str__(self) -> str:
        if not self.errors:
            return "no errors occurred"
        if len(self.errors) == 1:
            return f"1 error occurred:\n\t* {self.errors[0]}\n"
        points = "\n\t".join(f"* {e}" for e in self.errors)
        return f"{len(self.errors)} errors occurred:\n\t{points}\n"
