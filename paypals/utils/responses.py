# paypals/utils/responses.py
# Success envelope used by every JSON endpoint except PayNow.

from typing import Any, Dict, Optional


def ok(message: str, data: Optional[Any] = None) -> Dict[str, Any]:
    body: Dict[str, Any] = {"status": "success", "message": message}
    if data is not None:
        body["data"] = data
    return body
