"""Helpers for disposable worker threads."""

from __future__ import annotations

import ctypes
import threading


class WorkerInterrupted(BaseException):
    """Injected into a worker thread whose deadline has passed."""


def interrupt_thread(thread: threading.Thread) -> bool:
    """Ask ``thread`` to stop by raising WorkerInterrupted inside it.

    Delivery happens at the worker's next bytecode boundary, so a worker
    blocked in a C call keeps running until that call returns.

    Liveness is checked again right before the injection. A worker that
    exits between that check and the call, with its ident immediately taken
    by a new thread, would still misdirect the exception; CPython offers no
    atomic form of this call.
    """
    ident = thread.ident
    if ident is None or not thread.is_alive():
        return False
    pythonapi = getattr(ctypes, "pythonapi", None)
    if pythonapi is None:
        return False
    if not thread.is_alive():
        return False
    affected = pythonapi.PyThreadState_SetAsyncExc(
        ctypes.c_ulong(ident), ctypes.py_object(WorkerInterrupted)
    )
    if affected > 1:
        pythonapi.PyThreadState_SetAsyncExc(ctypes.c_ulong(ident), None)
        return False
    return affected == 1
