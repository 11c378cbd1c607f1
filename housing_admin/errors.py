from contextlib import contextmanager
from typing import Dict, Iterator

import structlog
from fastapi import HTTPException

from .baas.provider import BaaSError


logger = structlog.get_logger(__name__)

# Platform codes that mean the same thing to our callers
_PASSTHROUGH = {401, 403, 404, 409}


@contextmanager
def surface_errors(message: str, **context) -> Iterator[None]:
    """Log a backend failure and turn it into an HTTP error carrying ``message``."""
    try:
        yield
    except BaaSError as e:
        logger.warning("baas_call_failed", reason=message, code=e.code, type=e.type, error=e.message, **context)
        status_code = e.code if e.code in _PASSTHROUGH else 502
        raise HTTPException(status_code=status_code, detail=f"{message}: {e.message}") from e


def validation_error(errors: Dict[str, str], message: str = "Please fix the highlighted fields") -> HTTPException:
    return HTTPException(status_code=422, detail={"message": message, "errors": errors})
