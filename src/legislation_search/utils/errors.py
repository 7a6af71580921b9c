"""Custom exception classes for the Legislation Search service."""

from typing import Any, Dict, List, Optional


class SearchServiceException(Exception):
    """Base exception for all Legislation Search errors."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for JSON response."""
        return {
            "error": {
                "message": self.message,
                "code": self.code,
                "status_code": self.status_code,
                "details": self.details,
            }
        }


class SegmentationError(SearchServiceException):
    """Exception raised when text cannot be segmented."""

    def __init__(
        self,
        message: str = "Text segmentation failed",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            status_code=422,
            code="SEGMENTATION_ERROR",
            details=details,
        )


class EncoderLoadError(SearchServiceException):
    """Exception raised when the text encoder cannot be constructed."""

    def __init__(
        self,
        message: str = "Encoder initialization failed",
        model: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        error_details = details or {}
        if model:
            error_details["model"] = model
        super().__init__(
            message=message,
            status_code=503,
            code="ENCODER_LOAD_ERROR",
            details=error_details,
        )


class EncodingError(SearchServiceException):
    """Exception raised for tokenization or embedding failures."""

    def __init__(
        self,
        message: str = "Embedding generation failed",
        model: Optional[str] = None,
        input_index: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        error_details = details or {}
        if model:
            error_details["model"] = model
        if input_index is not None:
            error_details["input_index"] = input_index
        super().__init__(
            message=message,
            status_code=422 if input_index is not None else 500,
            code="ENCODING_ERROR",
            details=error_details,
        )
        self.input_index = input_index


class QdrantError(SearchServiceException):
    """Exception raised for Qdrant operation errors."""

    def __init__(
        self,
        message: str = "Qdrant operation failed",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            status_code=502,
            code="QDRANT_ERROR",
            details=details,
        )


class UpsertBatchError(QdrantError):
    """Exception raised when one upsert batch could not be written.

    Batches before ``batch_index`` were committed and are listed in
    ``committed_batches``; no later batch was attempted.
    """

    def __init__(
        self,
        batch_index: int,
        committed_batches: Optional[List[Any]] = None,
        message: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.batch_index = batch_index
        self.committed_batches = list(committed_batches or [])
        error_details = details or {}
        error_details["batch_index"] = batch_index
        error_details["committed_batches"] = [b.batch_index for b in self.committed_batches]
        super().__init__(
            message=message or f"Upsert batch {batch_index} failed",
            details=error_details,
        )
        self.code = "UPSERT_BATCH_ERROR"


class ValidationError(SearchServiceException):
    """Exception raised for validation errors."""

    def __init__(
        self,
        message: str = "Validation failed",
        errors: Optional[Dict[str, Any]] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        error_details = details or {}
        if errors:
            error_details["validation_errors"] = errors
        super().__init__(
            message=message,
            status_code=422,
            code="VALIDATION_ERROR",
            details=error_details,
        )
