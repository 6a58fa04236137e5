class MediQuizError(Exception):
    """Base class for service-level failures"""


class GenerationError(MediQuizError):
    """The AI service failed or returned something unusable"""


class FileValidationError(MediQuizError):
    """Uploaded file has a disallowed type or size"""


class FileProcessingError(MediQuizError):
    """Text could not be extracted from an uploaded file"""
