# app/core/call_result.py
"""
Bounded calls to external collaborators.

``call_with_timeout`` never raises for collaborator failures: the caller gets a
``CallResult`` and picks the fallback reply itself.
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Optional

from loguru import logger


class CallStatus(str, Enum):
    OK = "ok"
    TIMEOUT = "timeout"
    FAILED = "failed"


@dataclass(frozen=True)
class CallResult:
    status: CallStatus
    value: Any = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.status == CallStatus.OK


async def call_with_timeout(
    awaitable: Awaitable[Any],
    timeout: float,
    *,
    label: str = "call",
) -> CallResult:
    try:
        value = await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError as e:
        logger.warning("{} timed out after {}s", label, timeout)
        return CallResult(CallStatus.TIMEOUT, error=e)
    except asyncio.CancelledError:
        raise
    except Exception as e:
        logger.warning("{} failed: {}", label, e)
        return CallResult(CallStatus.FAILED, error=e)
    return CallResult(CallStatus.OK, value=value)
