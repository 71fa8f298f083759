from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, Iterable, TypeVar

T = TypeVar("T")
E = TypeVar("E")


@dataclass(frozen=True)
class Result(Generic[T, E]):
    ok: bool
    value: T | None
    error: E | None

    @staticmethod
    def success(value: T) -> "Result[T, E]":
        return Result(True, value, None)

    @staticmethod
    def failure(error: E) -> "Result[T, E]":
        return Result(False, None, error)

    @staticmethod
    def gather(results: Iterable["Result[T, E]"]) -> "Result[tuple[T, ...], tuple[E, ...]]":
        """Every value in order, or every error when any result failed.

        Loading stops before extraction when a single unit fails, but all
        failures are reported together.
        """
        values: list[T] = []
        errors: list[E] = []
        for res in results:
            if res.ok and res.value is not None:
                values.append(res.value)
            elif res.error is not None:
                errors.append(res.error)
        if errors:
            return Result.failure(tuple(errors))
        return Result.success(tuple(values))
