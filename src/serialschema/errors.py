from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Error:
    code: str  # "read", "parse", "schema", "emit", "settings"
    message: str
    path: str

    def __str__(self) -> str:
        return f"{self.code}:{self.path}:{self.message}"


class SettingsError(ValueError):
    def __init__(self, error: Error) -> None:
        super().__init__(str(error))
        self.error = error
