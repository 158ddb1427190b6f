# services/file_manager/app/processing.py

import asyncio
import json
from typing import Any, Optional

from pydantic import ValidationError as PydanticValidationError
from supabase import FunctionsError

from core.config import settings, logger as core_logger
from core.errors import ConfigurationError, InvocationError, UnexpectedError
from core.models import ImageProcessRequest, ImageProcessResponse
from core.supabase_client import SupabaseClientFactory
from .listing import RefreshSignal

logger = core_logger.getChild("FileManager").getChild("ImageProcessing")


def parse_process_response(raw: Any) -> ImageProcessResponse:
    """Checks the function's reply against the {success, processedFileName, publicUrl} / {error} shape."""
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8", errors="replace")
    if isinstance(raw, str):
        try:
            raw = json.loads(raw) if raw.strip() else {}
        except json.JSONDecodeError as e:
            raise InvocationError(f"Image function returned invalid JSON: {e}") from e
    if not isinstance(raw, dict):
        raise InvocationError("Image function returned an unexpected response.")
    try:
        response = ImageProcessResponse.model_validate(raw)
    except PydanticValidationError as e:
        raise InvocationError(f"Image function returned an unexpected response: {e.error_count()} invalid field(s).") from e
    if not response.success:
        raise InvocationError(response.error or "Processing failed")
    return response


class ImageProcessor:
    """Calls the server-side image function (resize / compress / thumbnail)."""

    def __init__(self, clients: SupabaseClientFactory, signal: Optional[RefreshSignal] = None,
                 function_name: str = settings.IMAGE_PROCESS_FUNCTION):
        self._clients = clients
        self._signal = signal
        self.function_name = function_name

    async def process(self, request: ImageProcessRequest) -> ImageProcessResponse:
        supabase = self._clients.get()
        if supabase is None:
            raise ConfigurationError()

        job_prefix = f"[{request.bucket}/{request.file_name}]"
        payload = request.to_payload()
        logger.info(f"{job_prefix} Invoking '{self.function_name}' with operation '{request.operation.value}'.")

        def invoke_call():
            return supabase.functions.invoke(
                self.function_name,
                invoke_options={"body": payload, "responseType": "json"},
            )

        try:
            raw = await asyncio.to_thread(invoke_call)
        except FunctionsError as e:
            logger.error(f"{job_prefix} Image function failed: {e}", exc_info=False)
            raise InvocationError(f"Error processing image: {e}") from e
        except Exception as e:
            logger.error(f"{job_prefix} Unexpected error invoking '{self.function_name}': {e}", exc_info=True)
            raise UnexpectedError(f"Error processing image: {UnexpectedError.default_message}") from e

        response = parse_process_response(raw)
        logger.info(f"{job_prefix} Processed file stored as '{response.processed_file_name}'.")
        if self._signal is not None:
            self._signal.notify(request.bucket)
        return response
