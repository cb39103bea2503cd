# ipd/api/v1/errors.py
import logging
from contextlib import contextmanager

from fastapi import HTTPException, status
from sqlalchemy.exc import SQLAlchemyError

from ipd.services.errors import ConflictError, NotFoundError

logger = logging.getLogger(__name__)


@contextmanager
def service_errors():
    """
    Translate service-layer exceptions raised inside the block:
    NotFoundError -> 404, ConflictError -> 409, ValueError -> 400,
    SQLAlchemyError -> 500 (the service has already rolled back).
    """
    try:
        yield
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except ConflictError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except SQLAlchemyError as exc:
        logger.exception("Database error")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Database error. Please try again.",
        ) from exc
