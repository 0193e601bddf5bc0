from __future__ import annotations


class BootstrapError(RuntimeError):
    pass


class UsageError(BootstrapError):
    pass


class ConfigError(BootstrapError):
    pass


class GeneratorError(BootstrapError):
    pass


class CollaboratorError(BootstrapError):
    def __init__(self, message: str, *, argv: list[str] | None = None, returncode: int | None = None) -> None:
        super().__init__(message)
        self.argv = argv
        self.returncode = returncode


class CollaboratorTimeout(CollaboratorError):
    pass


class PatchError(BootstrapError):
    def __init__(self, message: str, *, path: str | None = None, pattern: str | None = None) -> None:
        super().__init__(message)
        self.path = path
        self.pattern = pattern


class ParseError(BootstrapError):
    pass
