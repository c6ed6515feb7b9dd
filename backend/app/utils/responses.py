from typing import Any, Dict


def format_response(**payload: Any) -> Dict[str, Any]:
    return {"success": True, **payload}


def format_error_response(message: str) -> Dict[str, Any]:
    return {"success": False, "message": message}
