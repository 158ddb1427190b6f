import json

import httpx
import pytest
from pydantic import ValidationError as PydanticValidationError

from conftest import FakeFunctionsError
from core.errors import ConfigurationError, InvocationError, UnexpectedError
from core.models import ImageProcessRequest
from services.file_manager.app.listing import RefreshSignal
from services.file_manager.app.processing import ImageProcessor, parse_process_response


# --- Request contract ---
def test_resize_payload():
    request = ImageProcessRequest(bucket="user-files", file_name="cat.png", operation="resize", width=300, height=200)
    assert request.to_payload() == {
        "bucket": "user-files", "fileName": "cat.png", "operation": "resize", "width": 300, "height": 200,
    }

def test_compress_payload():
    request = ImageProcessRequest(bucket="user-files", file_name="cat.png", operation="compress", quality=80)
    assert request.to_payload() == {"bucket": "user-files", "fileName": "cat.png", "operation": "compress", "quality": 80}

@pytest.mark.parametrize("fields", [
    {"operation": "resize", "width": 300},
    {"operation": "resize", "width": 5, "height": 200},
    {"operation": "resize", "width": 300, "height": 200, "quality": 50},
    {"operation": "compress"},
    {"operation": "compress", "quality": 101},
    {"operation": "thumbnail", "width": 100},
    {"operation": "rotate"},
])
def test_invalid_requests_are_rejected(fields):
    with pytest.raises(PydanticValidationError):
        ImageProcessRequest(bucket="user-files", file_name="cat.png", **fields)


# --- Response parsing ---
def test_parse_success_from_bytes():
    raw = json.dumps({"success": True, "processedFileName": "cat_resized.png", "publicUrl": "https://cdn.test/x"}).encode()
    response = parse_process_response(raw)
    assert response.processed_file_name == "cat_resized.png"
    assert response.public_url == "https://cdn.test/x"

@pytest.mark.parametrize("raw, message", [
    ({"success": False, "error": "Unsupported format"}, "Unsupported format"),
    ({"success": False}, "Processing failed"),
    ("not json", "invalid JSON"),
    ([1, 2], "unexpected response"),
])
def test_parse_failures(raw, message):
    with pytest.raises(InvocationError, match=message):
        parse_process_response(raw)


# --- ImageProcessor ---
def resize_request():
    return ImageProcessRequest(bucket="user-files", file_name="cat.png", width=300, height=300)

@pytest.mark.asyncio
async def test_process_invokes_function_and_notifies(clients, fake_supabase):
    fake_supabase.client.functions.invoke.return_value = {"success": True, "processedFileName": "cat_300.png",
                                                          "publicUrl": "https://cdn.test/cat_300.png"}
    signal = RefreshSignal()
    changed = []
    signal.subscribe("user-files", changed.append)

    response = await ImageProcessor(clients, signal=signal, function_name="image-process").process(resize_request())

    assert response.processed_file_name == "cat_300.png"
    assert changed == ["user-files"]
    args, kwargs = fake_supabase.client.functions.invoke.call_args
    assert args == ("image-process",)
    assert kwargs["invoke_options"]["body"]["fileName"] == "cat.png"

@pytest.mark.asyncio
async def test_function_error_becomes_invocation_error(clients, fake_supabase):
    fake_supabase.client.functions.invoke.side_effect = FakeFunctionsError("Edge Function returned a non-2xx status code")
    signal = RefreshSignal()
    changed = []
    signal.subscribe("user-files", changed.append)
    with pytest.raises(InvocationError, match="Error processing image"):
        await ImageProcessor(clients, signal=signal).process(resize_request())
    assert changed == []

@pytest.mark.asyncio
async def test_process_without_configuration(unconfigured_clients):
    with pytest.raises(ConfigurationError):
        await ImageProcessor(unconfigured_clients).process(resize_request())

@pytest.mark.asyncio
async def test_transport_failure_becomes_unexpected_error(clients, fake_supabase):
    fake_supabase.client.functions.invoke.side_effect = httpx.ConnectError("connection refused")
    with pytest.raises(UnexpectedError, match="Check service logs"):
        await ImageProcessor(clients).process(resize_request())
