"""
Three-step mockup workflow: describe a product, brand it with a logo, view the result.

``WorkflowState`` is the single record a presentation layer reads. ``Workflow``
owns one state and exposes one handler per user trigger; every handler
mutates the state in place and returns it.
"""

import logging
import threading
from dataclasses import dataclass, fields
from enum import IntEnum

import gemini_service
from config import get_settings
from image_utils import (
    ACCEPTED_MIME_TYPES,
    FormatError,
    Image,
    ReadError,
    encode_file_to_data_url,
    sniff_mime_type,
)
from system_prompt import DEFAULT_EDIT_PROMPT, DEFAULT_MOCKUP_PROMPT, PROMPT_SUGGESTIONS

logger = logging.getLogger(__name__)

MSG_EMPTY_MOCKUP_PROMPT = "Please enter a prompt for the mockup."
MSG_GENERATE_FAILED = "Failed to generate mockup image. Please try again."
MSG_LOGO_READ_FAILED = "Failed to read logo file."
MSG_LOGO_UNSUPPORTED = "Logo must be a PNG, JPEG or WEBP image."
MSG_APPLY_NOT_READY = "Please ensure mockup, logo, and edit prompt are ready."
MSG_APPLY_FAILED = "Failed to apply logo. Please try again."

MOCKUP_MIME_TYPE = "image/jpeg"
FINAL_MIME_TYPE = "image/png"


class ValidationError(Exception):
    """A trigger's precondition is not met; no remote call is made."""


class Step(IntEnum):
    DESCRIBE = 1
    BRAND = 2
    RESULT = 3


@dataclass
class WorkflowState:
    step: Step = Step.DESCRIBE
    mockup_prompt: str = DEFAULT_MOCKUP_PROMPT
    edit_prompt: str = DEFAULT_EDIT_PROMPT
    mockup_image: Image | None = None
    logo_image: Image | None = None
    final_image: Image | None = None
    is_loading: bool = False
    error_message: str | None = None

    def reset(self):
        """Restore every field to its default, keeping the same object."""
        for f in fields(self):
            setattr(self, f.name, f.default)

    def to_dict(self):
        def url(image):
            return image.display_url if image else None

        return {
            "step": int(self.step),
            "mockupPrompt": self.mockup_prompt,
            "editPrompt": self.edit_prompt,
            "mockupImage": url(self.mockup_image),
            "logoImage": url(self.logo_image),
            "finalImage": url(self.final_image),
            "isLoading": self.is_loading,
            "errorMessage": self.error_message,
        }


class Workflow:
    def __init__(self, service=None, settings=None, state=None):
        self.settings = settings or get_settings()
        self.service = service or gemini_service.get_service()
        self.state = state or WorkflowState()
        self._lock = threading.Lock()
        # bumped on reset so a call that finishes afterwards is discarded
        self._epoch = 0

    def _begin(self):
        """Atomically claim the loading flag. None if a call is already running."""
        with self._lock:
            if self.state.is_loading:
                return None
            self.state.is_loading = True
            self.state.error_message = None
            return self._epoch

    def _check_prompt(self, prompt, empty_message):
        if not prompt or not prompt.strip():
            raise ValidationError(empty_message)
        limit = self.settings.max_prompt_chars
        if limit and len(prompt) > limit:
            raise ValidationError(f"Please keep the prompt under {limit} characters.")

    # -- presentation edits --

    def set_mockup_prompt(self, text):
        self.state.mockup_prompt = text
        return self.state

    def set_edit_prompt(self, text):
        self.state.edit_prompt = text
        return self.state

    def use_suggestion(self, index):
        if (
            not isinstance(index, int)
            or isinstance(index, bool)
            or not 0 <= index < len(PROMPT_SUGGESTIONS)
        ):
            raise ValidationError(f"No prompt suggestion at index {index!r}")
        self.state.mockup_prompt = PROMPT_SUGGESTIONS[index]
        return self.state

    def dismiss_error(self):
        self.state.error_message = None
        return self.state

    # -- triggers --

    async def submit_mockup_prompt(self):
        state = self.state
        if state.is_loading:
            return state
        try:
            self._check_prompt(state.mockup_prompt, MSG_EMPTY_MOCKUP_PROMPT)
        except ValidationError as e:
            state.error_message = str(e)
            return state

        epoch = self._begin()
        if epoch is None:
            return state
        state.mockup_image = None
        try:
            encoded = await self.service.generate_product_image(state.mockup_prompt)
        except Exception:
            logger.exception("Mockup generation failed")
            if epoch == self._epoch:
                state.error_message = MSG_GENERATE_FAILED
        else:
            if epoch == self._epoch:
                state.mockup_image = Image(encoded, MOCKUP_MIME_TYPE)
                state.step = Step.BRAND
        finally:
            if epoch == self._epoch:
                state.is_loading = False
        return state

    async def select_logo(self, file):
        state = self.state
        if file is None:
            return state
        try:
            data_url = await encode_file_to_data_url(file)
            image = Image.from_data_url(data_url)
            data = image.to_bytes()
            limit = self.settings.max_logo_bytes
            if limit and len(data) > limit:
                raise ValidationError(f"Logo file is too large (limit {limit} bytes).")
            mime_type = sniff_mime_type(data)
            if mime_type not in ACCEPTED_MIME_TYPES:
                raise ValidationError(MSG_LOGO_UNSUPPORTED)
            if mime_type != image.mime_type:
                image = Image(image.encoded, mime_type)
        except ValidationError as e:
            state.error_message = str(e)
            return state
        except (ReadError, FormatError):
            logger.exception("Reading logo file failed")
            state.error_message = MSG_LOGO_READ_FAILED
            return state

        state.logo_image = image
        state.error_message = None
        return state

    async def apply_logo(self):
        state = self.state
        if state.is_loading:
            return state
        if not state.mockup_image or not state.logo_image or not state.edit_prompt:
            state.error_message = MSG_APPLY_NOT_READY
            return state
        try:
            self._check_prompt(state.edit_prompt, MSG_APPLY_NOT_READY)
        except ValidationError as e:
            state.error_message = str(e)
            return state

        epoch = self._begin()
        if epoch is None:
            return state
        state.final_image = None
        try:
            encoded = await self.service.apply_logo_to_image(
                state.mockup_image.as_part(),
                state.logo_image.as_part(),
                state.edit_prompt,
            )
        except Exception:
            logger.exception("Applying logo failed")
            if epoch == self._epoch:
                state.error_message = MSG_APPLY_FAILED
        else:
            if epoch == self._epoch:
                state.final_image = Image(encoded, FINAL_MIME_TYPE)
                state.step = Step.RESULT
        finally:
            if epoch == self._epoch:
                state.is_loading = False
        return state

    def reset(self):
        with self._lock:
            self._epoch += 1
            self.state.reset()
        return self.state
