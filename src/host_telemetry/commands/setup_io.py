"""Interactive prompt helpers for the setup command."""

from __future__ import annotations

import builtins
from dataclasses import dataclass, field
from getpass import getpass as default_getpass
from typing import Any, Callable

InputFunc = Callable[[str], str]
SecretFunc = Callable[[str], str]
EchoFunc = Callable[[str], None]


def _default_echo(message: str) -> None:
    print(message)


class Prompt:
    """Utility helpers for prompting user input with validation."""

    def __init__(
        self,
        *,
        input_func: InputFunc | None = None,
        echo: EchoFunc | None = None,
        secret_func: SecretFunc | None = None,
    ) -> None:
        self._input = input_func or builtins.input
        self._echo = echo or _default_echo
        self._secret = secret_func or default_getpass

    def string(
        self,
        label: str,
        default: object | None = None,
        *,
        validator: Callable[[str], None] | None = None,
    ) -> str:
        """Prompt for a required string, re-asking until it validates."""

        while True:
            raw = self._input(_format_prompt(label, default)).strip()
            if not raw and default not in (None, ""):
                value = str(default)
            else:
                value = raw
            if not value:
                self._echo("Value required")
                continue
            if validator is not None:
                try:
                    validator(value)
                except ValueError as exc:
                    self._echo(str(exc))
                    continue
            return value

    def integer(
        self,
        label: str,
        default: object | None = None,
        *,
        minimum: int | None = None,
    ) -> int:
        """Prompt for an integer with an optional lower bound."""

        while True:
            raw = self._input(_format_prompt(label, default)).strip()
            if not raw and default is not None:
                value = _parse_int(default)
            else:
                value = _parse_int(raw)
            if value is None:
                self._echo("Enter a valid integer")
                continue
            if minimum is not None and value < minimum:
                self._echo(f"Value must be >= {minimum}")
                continue
            return value

    def secret(self, label: str, default: object | None = None) -> str:
        """Prompt for a secret string with confirmation, defaulting when allowed."""

        while True:
            if default:
                prompt = f"{label} [leave blank to keep existing]: "
            else:
                prompt = f"{label}: "
            value = self._secret(prompt)
            if not value and default:
                return str(default)
            if not value:
                self._echo("Value required")
                continue
            confirm = self._secret("Confirm password: ")
            if value != confirm:
                self._echo("Passwords do not match; try again")
                continue
            return value


def prompt_yes_no(
    message: str,
    *,
    default: bool,
    input_func: InputFunc | None = None,
    echo: EchoFunc | None = None,
) -> bool:
    """Prompt user for a yes/no response, re-asking on invalid input."""

    input_impl = input_func or builtins.input
    echo_impl = echo or _default_echo
    default_hint = "Y/n" if default else "y/N"
    while True:
        response = input_impl(f"{message} [{default_hint}]: ").strip().lower()
        if not response:
            return default
        if response in {"y", "yes"}:
            return True
        if response in {"n", "no"}:
            return False
        echo_impl("Please answer 'y' or 'n'")


@dataclass
class PromptSession:
    """Bundle prompt helpers with injectable I/O functions."""

    input_func: InputFunc | None = None
    echo: EchoFunc | None = None
    secret_func: SecretFunc | None = None
    _prompt: Prompt | None = field(init=False, default=None)

    @property
    def prompt(self) -> Prompt:
        if self._prompt is None:
            self._prompt = Prompt(
                input_func=self.input_func,
                echo=self.echo,
                secret_func=self.secret_func,
            )
        return self._prompt

    def ask_yes_no(self, message: str, *, default: bool) -> bool:
        return prompt_yes_no(
            message,
            default=default,
            input_func=self.input_func,
            echo=self.echo,
        )


def _format_prompt(label: str, default: object | None) -> str:
    suffix = f" [{default}]" if default not in (None, "") else ""
    return f"{label}{suffix}: "


def _parse_int(raw: Any) -> int | None:
    try:
        return int(raw)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None


__all__ = ["Prompt", "PromptSession", "prompt_yes_no"]
