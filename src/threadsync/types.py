from typing import Callable

import httpx

from .threads import Run

ResponseHook = Callable[[httpx.Response], None]
RunStatusCallback = Callable[[Run], None]
