"""Domain Exceptions - Domain Layer

Provider-side errors share ``ImageGenerationError`` so callers can catch a
single type; the subclass says what went wrong.
"""

from typing import List, Optional


class ImageGenerationError(Exception):
    """图像生成错误 (base class)"""

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        model: Optional[str] = None,
    ):
        self.message = message
        self.provider = provider
        self.model = model
        self._text = self._format()
        super().__init__(self._text)

    def _format(self) -> str:
        if self.provider:
            return f"[{self.provider}] {self.message}"
        return self.message

    def for_model(self, model: str) -> "ImageGenerationError":
        """Copy of this error with the model key attached to it and its message."""
        enriched = self.__class__.__new__(self.__class__)
        enriched.__dict__.update(self.__dict__)
        enriched.model = model
        enriched.args = (f"Image generation failed for {model}: {self._text}",)
        return enriched


class UnknownModelError(ImageGenerationError):
    """Model key is not in the registry (catalog and registry have drifted)."""

    def __init__(self, model: str):
        super().__init__(
            f"Unknown model: {model}. Model not registered in dispatcher.",
            model=model,
        )


class ProviderNotConfiguredError(ImageGenerationError):
    """Model maps to a provider that has no credential configured."""

    def __init__(self, provider: str, model: Optional[str] = None):
        super().__init__(
            f"Provider not configured: {provider}. "
            "Please add API key to environment variables.",
            model=model,
        )
        self.provider = provider


class ProviderError(ImageGenerationError):
    """Upstream call failed (non-2xx status or transport error)."""

    def __init__(
        self,
        provider: str,
        message: str,
        status_code: Optional[int] = None,
        body: str = "",
    ):
        self.status_code = status_code
        self.body = body
        super().__init__(message, provider=provider)


class MalformedProviderResponseError(ImageGenerationError):
    """Upstream succeeded but the expected image field is missing."""

    def __init__(self, provider: str, message: str):
        super().__init__(message, provider=provider)


class GenerationTimeoutError(ImageGenerationError):
    """Poll budget exhausted before the job reached a terminal state."""

    def __init__(self, provider: str, attempts: int):
        self.attempts = attempts
        super().__init__(
            f"Generation did not complete after {attempts} poll attempts",
            provider=provider,
        )


class ProviderNotImplementedError(ImageGenerationError):
    """Provider is registered but its integration is still pending."""

    def __init__(self, provider: str, reason: str):
        self.reason = reason
        super().__init__(reason, provider=provider)


class InsufficientCreditsError(Exception):
    """余额不足"""

    def __init__(self, required: int, available: int):
        self.required = required
        self.available = available
        super().__init__(
            f"Insufficient credits. You have {available} but need {required}"
        )


class ModelNotFoundError(Exception):
    """Catalog row missing or inactive."""

    def __init__(self, model_id: str):
        self.model_id = model_id
        super().__init__(f"Model not found: {model_id}")


class GenerationFailedError(Exception):
    """Not a single image of the batch was generated."""

    def __init__(self, details: List[str], message: str = "Failed to generate any images"):
        self.details = list(details)
        super().__init__(message)


class JobNotFoundError(Exception):
    """No generation job with this id."""

    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(f"Generation not found: {job_id}")


class JobAccessDeniedError(Exception):
    """The job belongs to another user."""

    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__("Access denied")
