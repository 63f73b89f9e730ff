"""Object key derivation shared with the inference worker.

The worker is triggered by an object at the input key and writes its JSON
result next to it, under the input key with the final extension replaced
by ``.result.json``.
"""

from __future__ import annotations

from core.exceptions import ValidationError

RESULT_SUFFIX = ".result.json"


def input_key(filename: str) -> str:
    """Return the storage key for an uploaded file (the filename, unmodified)."""
    if not filename or not filename.strip():
        raise ValidationError("A filename is required.")
    return filename


def result_key(key: str) -> str:
    """Strip the final ``.ext`` from ``key`` and append ``.result.json``.

    ``photo.jpg`` -> ``photo.result.json``; ``my.photo.jpeg`` ->
    ``my.photo.result.json``; ``uploads/face.png`` ->
    ``uploads/face.result.json``. Only the last ``/`` segment is searched for
    an extension, and names without one (or dotfiles such as ``.jpg``) keep
    their full name: ``photo`` -> ``photo.result.json``.
    """
    prefix, slash, name = key.rpartition("/")
    stem, dot, _ = name.rpartition(".")
    if not dot or not stem:
        stem = name
    return f"{prefix}{slash}{stem}{RESULT_SUFFIX}"


__all__ = ["RESULT_SUFFIX", "input_key", "result_key"]
