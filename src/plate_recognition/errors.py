class PlateRecognitionError(Exception):
    """Base class for errors raised by the plate recognition pipeline"""


class InputError(PlateRecognitionError):
    """The input image is missing, unreadable or has an unsupported shape"""


class OracleError(PlateRecognitionError):
    """The OCR oracle failed or timed out; callers treat this as no vote"""
