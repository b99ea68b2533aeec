"""Small file helpers shared by the converter and the builders."""

from __future__ import annotations

import os
import tempfile


def atomic_write(target: str, text: str) -> None:
    """Write *text* to *target* atomically via a temp file + ``os.replace``.

    An existing *target* is replaced wholesale; readers never see a
    half-written file.
    """
    dir_name = os.path.dirname(os.path.abspath(target))
    os.makedirs(dir_name, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=dir_name, suffix=".tmp")
    closed = False
    try:
        os.write(fd, text.encode("utf-8"))
        os.fsync(fd)
        os.close(fd)
        closed = True
        os.replace(tmp, target)
    except BaseException:
        if not closed:
            os.close(fd)
        try:
            os.unlink(tmp)
        except OSError:
            pass
        raise


def read_text(path: str) -> str:
    with open(path, encoding="utf-8") as f:
        return f.read()
