# relaynode/utils/responses.py

def format_error_response(exc, status_code=500, detail=None):
    return {
        "success": False,
        "error": {
            "type": exc.__class__.__name__,
            "detail": detail if detail is not None else str(exc),
            "status_code": status_code
        }
    }
