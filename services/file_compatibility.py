# services/file_compatibility.py
"""Which attachment media types each chat model can read."""
from typing import Iterable, List, Literal, Sequence
from pydantic import BaseModel, ConfigDict, Field
from services.model_catalog import ChatModel, chat_models, get_chat_model, display_name


MediaType = Literal[
    "image/jpeg",
    "image/png",
    "image/heic",
    "application/pdf",
    "text/plain",
    "text/csv",
    "text/markdown",
    "application/csv",
]

IMAGE_MEDIA_TYPES = frozenset({"image/jpeg", "image/png", "image/heic"})
PDF_MEDIA_TYPES = frozenset({"application/pdf"})
TEXT_MEDIA_TYPES = frozenset({"text/plain", "text/csv", "text/markdown", "application/csv"})

MAX_ATTACHMENTS = 8

_MB = 1024 * 1024

# upload limits per content type, with the label used in error messages
SUPPORTED_FILE_TYPES = {
    "image/jpeg": {"max_size": 5 * _MB, "label": "JPEG"},
    "image/png": {"max_size": 5 * _MB, "label": "PNG"},
    "image/heic": {"max_size": 5 * _MB, "label": "HEIC"},
    "application/pdf": {"max_size": 10 * _MB, "label": "PDF"},
    "text/plain": {"max_size": 5 * _MB, "label": "Text"},
    "text/csv": {"max_size": 5 * _MB, "label": "CSV"},
    "text/markdown": {"max_size": 5 * _MB, "label": "Markdown"},
    "application/csv": {"max_size": 5 * _MB, "label": "CSV"},
}


class FileAttachment(BaseModel):
    name: str
    url: str
    media_type: str = Field(alias="mediaType")

    model_config = ConfigDict(populate_by_name=True)


class FileCompatibilityError(BaseModel):
    file_name: str = Field(serialization_alias="fileName")
    media_type: str = Field(serialization_alias="mediaType")
    reason: str
    model_name: str = Field(serialization_alias="modelName")


def is_media_type_compatible(media_type: str, model: ChatModel) -> bool:
    if media_type in IMAGE_MEDIA_TYPES:
        return model.vision
    if media_type in PDF_MEDIA_TYPES:
        return model.pdf_understanding
    if media_type in TEXT_MEDIA_TYPES:
        return True
    return False


def _incompatibility_reason(media_type: str) -> str:
    if media_type in IMAGE_MEDIA_TYPES:
        return "This model does not support image files"
    if media_type in PDF_MEDIA_TYPES:
        return "This model does not support PDF files"
    return "This file type is not supported by this model"


def validate_file_compatibility(
    files: Sequence[FileAttachment], model_id: str
) -> List[FileCompatibilityError]:
    """Return one error per attachment the model cannot read (empty when all fit)."""
    model = get_chat_model(model_id)

    if model is None:
        return [
            FileCompatibilityError(
                file_name=f.name,
                media_type=f.media_type,
                reason="Model not found",
                model_name="Unknown",
            )
            for f in files
        ]

    return [
        FileCompatibilityError(
            file_name=f.name,
            media_type=f.media_type,
            reason=_incompatibility_reason(f.media_type),
            model_name=display_name(model),
        )
        for f in files
        if not is_media_type_compatible(f.media_type, model)
    ]


def generate_compatibility_error_message(errors: Sequence[FileCompatibilityError]) -> str:
    if not errors:
        return ""

    if len(errors) == 1:
        error = errors[0]
        return f'"{error.file_name}" is not compatible with {error.model_name}. {error.reason}.'

    file_names = ", ".join(f'"{e.file_name}"' for e in errors)
    return (
        f"The following files are not compatible with {errors[0].model_name}: {file_names}. "
        "Please select a different model or remove these files."
    )


def get_supported_file_types(model_id: str) -> dict:
    model = get_chat_model(model_id)

    if model is None:
        return {"extensions": ["TXT", "CSV", "MD"], "description": "Text files only"}

    extensions = ["TXT", "CSV", "MD"]
    if model.vision:
        extensions += ["JPG", "PNG", "HEIC"]
    if model.pdf_understanding:
        extensions.append("PDF")

    labels = [
        label
        for label, enabled in (
            ("Images", model.vision),
            ("PDFs", model.pdf_understanding),
            ("Text files", True),
        )
        if enabled
    ]
    return {"extensions": extensions, "description": ", ".join(labels)}


def is_model_compatible_with_attachments(model_id: str, content_types: Iterable[str]) -> bool:
    content_types = list(content_types)
    if not content_types:
        return True

    model = get_chat_model(model_id)
    if model is None:
        return False

    return all(is_media_type_compatible(t, model) for t in content_types)


def get_compatible_models(
    content_types: Iterable[str], available_models: Sequence[ChatModel] = tuple(chat_models)
) -> List[ChatModel]:
    content_types = list(content_types)
    if not content_types:
        return list(available_models)

    return [
        m
        for m in available_models
        if all(is_media_type_compatible(t, m) for t in content_types)
    ]


def normalize_media_type(content_type: str) -> str:
    content_type = (content_type or "").lower()
    if content_type == "image/jpg":
        return "image/jpeg"
    if content_type == "application/csv":
        return "text/csv"
    return content_type
