"""Generation Entities - Domain Layer"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional
from uuid import uuid4


@dataclass
class ModelRow:
    """模型目录条目

    One row of the model catalog: what the user picks and what it costs.
    ``api_model`` is the model key understood by the dispatcher.
    """

    id: str
    name: str
    provider: str
    api_model: str
    cost_per_use: int = 1
    model_type: str = "image"
    is_active: bool = True

    def __post_init__(self) -> None:
        if not self.api_model:
            raise ValueError("API model key cannot be empty")

        if self.cost_per_use < 0:
            raise ValueError("Cost per use cannot be negative")


@dataclass
class GenerationCommand:
    """A validated generation request coming from a surface handler."""

    user_id: str
    model: ModelRow
    prompt: str
    tool_type: str
    number_of_images: int = 1
    width: int = 1024
    height: int = 1024
    input_image: Optional[bytes] = None
    mask_image: Optional[bytes] = None
    strength: Optional[float] = None
    negative_prompt: Optional[str] = None
    style: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.user_id:
            raise ValueError("User ID cannot be empty")

        if not self.prompt:
            raise ValueError("Prompt cannot be empty")

        if not self.tool_type:
            raise ValueError("Tool type cannot be empty")

        if self.number_of_images <= 0:
            raise ValueError("Number of images must be positive")

    @property
    def total_cost(self) -> int:
        return self.model.cost_per_use * self.number_of_images


@dataclass
class GenerationJob:
    """生成任务记录 (one per successfully generated image)"""

    user_id: str
    model_id: str
    tool_type: str
    prompt: str
    image_url: str
    status: str = "completed"
    id: str = field(default_factory=lambda: str(uuid4()))
    created_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "model_id": self.model_id,
            "tool_type": self.tool_type,
            "prompt": self.prompt,
            "image_url": self.image_url,
            "status": self.status,
            "created_at": self.created_at.isoformat(),
        }


@dataclass
class GenerationResult:
    """Outcome of a batch with at least one generated image."""

    images: List[str]
    credits_used: int
    credits_remaining: int
    jobs: List[GenerationJob] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.images:
            raise ValueError("A generation result needs at least one image")

    def to_dict(self) -> dict:
        payload = {
            "images": list(self.images),
            "jobs": [job.to_dict() for job in self.jobs],
            "credits_used": self.credits_used,
            "credits_remaining": self.credits_remaining,
        }
        if self.warnings:
            payload["warnings"] = list(self.warnings)
        return payload


@dataclass
class EditCommand:
    """A validated edit request: the same instructions applied to each image."""

    user_id: str
    model: ModelRow
    instructions: str
    images: List[bytes]
    tool_type: str
    strength: float = 0.7
    negative_prompt: Optional[str] = None
    reference_count: int = 0

    def __post_init__(self) -> None:
        if not self.user_id:
            raise ValueError("User ID cannot be empty")

        if not self.instructions:
            raise ValueError("Instructions cannot be empty")

        if not self.images:
            raise ValueError("At least one image is required")

        if not 0.0 <= self.strength <= 1.0:
            raise ValueError("Strength must be between 0 and 1")

        if self.reference_count < 0:
            raise ValueError("Reference count cannot be negative")

    @property
    def total_cost(self) -> int:
        return self.model.cost_per_use * len(self.images)


@dataclass
class ImageEdit:
    """One edited image; ``index`` is the position of its input image."""

    index: int
    image_url: str

    def to_dict(self) -> dict:
        return {"index": self.index, "image_url": self.image_url}


@dataclass
class EditResult:
    """Outcome of an edit with at least one edited image."""

    edits: List[ImageEdit]
    credits_used: int
    credits_remaining: int
    jobs: List[GenerationJob] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.edits:
            raise ValueError("An edit result needs at least one edited image")

    @property
    def image_url(self) -> str:
        return self.edits[0].image_url

    def to_dict(self) -> dict:
        payload = {
            "image_url": self.image_url,
            "edits": [edit.to_dict() for edit in self.edits],
            "jobs": [job.to_dict() for job in self.jobs],
            "total": len(self.edits),
            "credits_used": self.credits_used,
            "credits_remaining": self.credits_remaining,
        }
        if self.errors:
            payload["errors"] = list(self.errors)
        return payload
