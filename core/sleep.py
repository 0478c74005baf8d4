"""
sleep.py — Put Windows to sleep via powrprof.SetSuspendState.

The public surface is intentionally minimal so tests can inject a mock
callback instead of ever suspending the machine.
"""
from __future__ import annotations

import ctypes
import ctypes.wintypes as _wt
from typing import Callable, Optional

from core.logger import get_logger

_LOGGER = get_logger()

# ── Windows constants ──────────────────────────────────────────────────────
SE_PRIVILEGE_ENABLED    = 0x00000002
TOKEN_ADJUST_PRIVILEGES = 0x00000020
TOKEN_QUERY             = 0x00000008

# SetSuspendState(bHibernate, bForce, bWakeupEventsDisabled)
SUSPEND_HIBERNATE       = False
SUSPEND_FORCE           = True
SUSPEND_DISABLE_WAKEUPS = False


# ── Internal structures ────────────────────────────────────────────────────
class _LUID(ctypes.Structure):
    _fields_ = [("LowPart", _wt.DWORD), ("HighPart", _wt.LONG)]


class _LUID_AND_ATTRIBUTES(ctypes.Structure):
    _fields_ = [("Luid", _LUID), ("Attributes", _wt.DWORD)]


class _TOKEN_PRIVILEGES(ctypes.Structure):
    _fields_ = [
        ("PrivilegeCount", _wt.DWORD),
        ("Privileges", _LUID_AND_ATTRIBUTES * 1),
    ]


# ── Privilege helper ───────────────────────────────────────────────────────
def request_suspend_privilege() -> None:
    """Turn on SeShutdownPrivilege in this process's access token.

    SetSuspendState fails with ERROR_PRIVILEGE_NOT_HELD unless the
    privilege is enabled.  Standard accounts hold it but it starts out
    disabled, so no elevation is needed; only the token flag changes.
    """
    advapi32 = ctypes.windll.advapi32
    kernel32 = ctypes.windll.kernel32

    h_token = _wt.HANDLE()
    advapi32.OpenProcessToken(
        kernel32.GetCurrentProcess(),
        TOKEN_ADJUST_PRIVILEGES | TOKEN_QUERY,
        ctypes.byref(h_token),
    )

    luid = _LUID()
    advapi32.LookupPrivilegeValueW(None, "SeShutdownPrivilege", ctypes.byref(luid))

    tp = _TOKEN_PRIVILEGES()
    tp.PrivilegeCount = 1
    tp.Privileges[0].Luid = luid
    tp.Privileges[0].Attributes = SE_PRIVILEGE_ENABLED

    advapi32.AdjustTokenPrivileges(h_token, False, ctypes.byref(tp), 0, None, None)
    kernel32.CloseHandle(h_token)


# ── Public API ─────────────────────────────────────────────────────────────
def execute_sleep(_override: Optional[Callable[[], None]] = None) -> None:
    """Suspend the machine.

    Args:
        _override: If provided, call this instead of the real Windows API.
                   Used exclusively in unit tests.
    """
    if _override is not None:
        _override()
        return

    _LOGGER.info("Suspending the system")
    request_suspend_privilege()
    ok = ctypes.windll.powrprof.SetSuspendState(
        SUSPEND_HIBERNATE,
        SUSPEND_FORCE,
        SUSPEND_DISABLE_WAKEUPS,
    )
    if not ok:
        raise OSError("SetSuspendState failed")
