import asyncio
import base64
import logging
import time

from google import genai
from google.genai import types
from google.genai.types import Modality

from config import get_settings
from system_prompt import LOGO_EDIT_PROMPT, PRODUCT_IMAGE_PROMPT

logger = logging.getLogger(__name__)


class ServiceError(Exception):
    """A call to the image generation service failed."""


class GenerationError(ServiceError):
    pass


class CompositionError(ServiceError):
    pass


def create_client(settings):
    if not settings.api_key:
        raise ServiceError("GEMINI_API_KEY is not set")
    http_options = None
    if settings.timeout_ms:
        http_options = types.HttpOptions(timeout=settings.timeout_ms)
    return genai.Client(api_key=settings.api_key, http_options=http_options)


def _part_from_image(image):
    return types.Part.from_bytes(
        data=base64.b64decode(image["data"]),
        mime_type=image["mimeType"],
    )


def _b64(data):
    if isinstance(data, str):
        return data
    return base64.b64encode(data).decode("utf-8")


class GeminiImageService:
    """Generates product mockups and applies logos to them with Gemini.

    Each method makes exactly one remote call and returns the raw base64
    payload of the resulting image. Nothing is retried or cached.
    """

    def __init__(self, client=None, settings=None):
        self.settings = settings or get_settings()
        self._client = client

    @property
    def client(self):
        if self._client is None:
            self._client = create_client(self.settings)
        return self._client

    def _generate_product_image(self, prompt):
        start = time.time()
        response = self.client.models.generate_images(
            model=self.settings.image_model,
            prompt=PRODUCT_IMAGE_PROMPT.format(product=prompt),
            config=types.GenerateImagesConfig(
                number_of_images=1,
                output_mime_type="image/jpeg",
                aspect_ratio="1:1",
            ),
        )
        elapsed = round(time.time() - start, 1)
        logger.info("Mockup generated by %s in %ss", self.settings.image_model, elapsed)

        for generated in response.generated_images or []:
            if generated.image and generated.image.image_bytes:
                return _b64(generated.image.image_bytes)
        raise GenerationError("Model did not return an image")

    def _apply_logo_to_image(self, base_image, logo_image, instruction):
        contents = [
            _part_from_image(base_image),
            _part_from_image(logo_image),
            types.Part.from_text(text=LOGO_EDIT_PROMPT.format(instruction=instruction)),
        ]
        config = types.GenerateContentConfig(
            response_modalities=[Modality.IMAGE, Modality.TEXT],
        )

        start = time.time()
        response = self.client.models.generate_content(
            model=self.settings.edit_model, contents=contents, config=config,
        )
        elapsed = round(time.time() - start, 1)
        logger.info("Logo applied by %s in %ss", self.settings.edit_model, elapsed)

        for candidate in response.candidates or []:
            if not candidate.content:
                continue
            for part in candidate.content.parts or []:
                if part.inline_data and part.inline_data.data:
                    return _b64(part.inline_data.data)
                if part.text:
                    logger.debug("Edit model text: %s", part.text)
        raise CompositionError("Model did not return an image")

    async def generate_product_image(self, prompt):
        """Generate a product photo for ``prompt``; returns base64 JPEG."""
        try:
            return await asyncio.to_thread(self._generate_product_image, prompt)
        except GenerationError:
            raise
        except Exception as e:
            raise GenerationError(f"Image generation failed: {e}") from e

    async def apply_logo_to_image(self, base_image, logo_image, instruction):
        """Composite ``logo_image`` onto ``base_image``; returns base64 PNG.

        Both images are ``{"data": <base64>, "mimeType": <type>}`` dicts.
        """
        try:
            return await asyncio.to_thread(
                self._apply_logo_to_image, base_image, logo_image, instruction,
            )
        except CompositionError:
            raise
        except Exception as e:
            raise CompositionError(f"Logo composition failed: {e}") from e


_default_service = None


def get_service():
    global _default_service
    if _default_service is None:
        _default_service = GeminiImageService()
    return _default_service


async def generate_product_image(prompt):
    return await get_service().generate_product_image(prompt)


async def apply_logo_to_image(base_image, logo_image, instruction):
    return await get_service().apply_logo_to_image(base_image, logo_image, instruction)
