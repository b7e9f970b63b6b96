"""Transport interface consumed by the client."""

from __future__ import annotations

from typing import Protocol, Sequence

SW_OK = 0x9000


class Transport(Protocol):
    """Anything that can exchange one APDU with the device.

    ``send`` returns the full response, trailing status word included,
    and guarantees the response is at least two bytes long.
    """

    def send(
        self,
        cla: int,
        ins: int,
        p1: int,
        p2: int,
        data: bytes = b"",
        acceptable_statuses: Sequence[int] = (SW_OK,),
    ) -> bytes: ...
