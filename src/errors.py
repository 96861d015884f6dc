"""Errors raised while generating measures."""


class SelectionError(ValueError):
    """The current selection of measures and functions cannot be used."""


class OperationCancelled(RuntimeError):
    """The user dismissed a dialog; nothing further is done."""
