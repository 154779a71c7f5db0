import base64
import json

import pytest

from image_gateway.application.usecase.edit_images import BatchEditUseCase, EditImageUseCase
from image_gateway.application.usecase.generate_images import GenerateImagesUseCase
from image_gateway.application.usecase.get_job import GetJobUseCase
from image_gateway.application.usecase.list_models import ListModelsUseCase
from image_gateway.domain.entity.generation import ModelRow
from image_gateway.infrastructure.persistence.memory import (
    InMemoryCreditLedger,
    InMemoryJobRepository,
    InMemoryModelCatalog,
)
from image_gateway.sideload.handler import RpcError, SideloadHandler
from image_gateway.sideload.image import (
    ACCESS_DENIED,
    GENERATION_FAILED,
    INSUFFICIENT_CREDITS,
    JOB_NOT_FOUND,
    MODEL_NOT_FOUND,
    ImageHandler,
)

from conftest import FakeProvider, with_fresh_dispatcher


def _rpc(method, params=None, msg_id=1):
    message = {"jsonrpc": "2.0", "method": method, "params": params or {}}
    if msg_id is not None:
        message["id"] = msg_id
    return json.dumps(message)


def _image_handler(provider=None, credits=10):
    dispatcher = with_fresh_dispatcher({"bfl": provider or FakeProvider("bfl")})
    catalog = InMemoryModelCatalog([
        ModelRow(id="flux", name="FLUX Pro", provider="bfl", api_model="flux-pro", cost_per_use=2),
    ])
    jobs = InMemoryJobRepository()
    ledger = InMemoryCreditLedger(default_credits=credits)
    return ImageHandler(
        GenerateImagesUseCase(dispatcher, ledger, jobs),
        ListModelsUseCase(catalog, dispatcher),
        catalog,
        jobs,
        edit_use_case=EditImageUseCase(dispatcher, ledger, jobs),
        batch_edit_use_case=BatchEditUseCase(dispatcher, ledger, jobs),
        get_job_use_case=GetJobUseCase(jobs),
    )


def _handler(image_handler):
    handler = SideloadHandler()
    handler.register_method("image/generate", image_handler.handle_generate)
    handler.register_method("image/models", image_handler.handle_models)
    handler.register_method("image/jobs", image_handler.handle_jobs)
    handler.register_method("image/job", image_handler.handle_job)
    handler.register_method("image/edit", image_handler.handle_edit)
    handler.register_method("image/batch-edit", image_handler.handle_batch_edit)
    handler.register_method("ping", lambda p: {"pong": True})
    return handler


@pytest.mark.asyncio
async def test_ping_with_sync_handler():
    handler = _handler(_image_handler())

    response = json.loads(await handler.handle_request(_rpc("ping", msg_id=7)))

    assert response == {"jsonrpc": "2.0", "id": 7, "result": {"pong": True}}


@pytest.mark.asyncio
async def test_parse_error_and_unknown_method():
    handler = SideloadHandler()

    parse_error = json.loads(await handler.handle_request("{not json"))
    unknown = json.loads(await handler.handle_request(_rpc("image/teleport")))

    assert parse_error["error"]["code"] == -32700
    assert unknown["error"]["code"] == -32601
    assert await handler.handle_request(_rpc("image/teleport", msg_id=None)) is None


@pytest.mark.asyncio
async def test_batch_requests():
    handler = _handler(_image_handler())
    batch = "[" + ",".join([_rpc("ping", msg_id=1), _rpc("ping", msg_id=None), _rpc("nope", msg_id=2)]) + "]"

    replies = json.loads(await handler.handle_request(batch))

    assert [reply["id"] for reply in replies] == [1, 2]
    assert replies[0]["result"] == {"pong": True}
    assert replies[1]["error"]["code"] == -32601


@pytest.mark.asyncio
async def test_invalid_request_shape():
    handler = SideloadHandler()

    reply = json.loads(await handler.handle_request(json.dumps({"jsonrpc": "2.0", "id": 1})))

    assert reply["error"]["code"] == -32600


@pytest.mark.asyncio
async def test_notifications_get_no_response():
    handler = _handler(_image_handler())

    assert await handler.handle_request(_rpc("ping", msg_id=None)) is None


@pytest.mark.asyncio
async def test_generate_round_trip():
    handler = _handler(_image_handler())

    response = json.loads(await handler.handle_request(_rpc(
        "image/generate",
        {"user_id": "u1", "model_id": "flux", "prompt": "a fox", "number_of_images": 2},
    )))

    result = response["result"]
    assert len(result["images"]) == 2
    assert result["credits_remaining"] == 6

    jobs = json.loads(await handler.handle_request(_rpc("image/jobs", {"user_id": "u1"}, msg_id=2)))
    assert len(jobs["result"]["jobs"]) == 2


@pytest.mark.asyncio
async def test_insufficient_credits_error_code():
    handler = _handler(_image_handler(credits=3))

    response = json.loads(await handler.handle_request(_rpc(
        "image/generate",
        {"user_id": "u1", "model_id": "flux", "prompt": "a fox", "number_of_images": 2},
    )))

    assert response["error"]["code"] == INSUFFICIENT_CREDITS
    assert response["error"]["data"] == {"required": 4, "available": 3}


@pytest.mark.asyncio
async def test_domain_errors_map_to_rpc_errors():
    image_handler = _image_handler(provider=FakeProvider("bfl", fail_on={1}))

    with pytest.raises(RpcError) as not_found:
        await image_handler.handle_generate({"user_id": "u1", "model_id": "nope", "prompt": "a fox"})
    with pytest.raises(RpcError) as failed:
        await image_handler.handle_generate({"user_id": "u1", "model_id": "flux", "prompt": "a fox"})
    with pytest.raises(RpcError) as invalid:
        await image_handler.handle_generate({"user_id": "u1", "model_id": "flux", "prompt": "x" * 1001})

    assert not_found.value.code == MODEL_NOT_FOUND
    assert failed.value.code == GENERATION_FAILED
    assert failed.value.data["details"][0].startswith("Image 1: ")
    assert invalid.value.code == -32602


@pytest.mark.asyncio
async def test_models_listing():
    handler = _handler(_image_handler())

    response = json.loads(await handler.handle_request(_rpc("image/models")))

    assert [m["id"] for m in response["result"]["models"]] == ["flux"]


@pytest.mark.asyncio
async def test_unexpected_error_is_internal():
    handler = SideloadHandler()

    async def explode(params):
        raise RuntimeError("boom")

    handler.register_method("explode", explode)
    response = json.loads(await handler.handle_request(_rpc("explode")))

    assert response["error"] == {"code": -32603, "message": "boom"}


@pytest.mark.asyncio
async def test_edit_and_batch_edit(png_image):
    handler = _handler(_image_handler(credits=20))
    encoded = base64.b64encode(png_image).decode()

    edit = json.loads(await handler.handle_request(_rpc(
        "image/edit",
        {"user_id": "u1", "model_id": "flux", "instructions": "add a hat", "image": encoded},
    )))
    batch = json.loads(await handler.handle_request(_rpc(
        "image/batch-edit",
        {"user_id": "u1", "model_id": "flux", "instructions": "add a hat", "images": [encoded, encoded]},
        msg_id=2,
    )))

    assert edit["result"]["credits_remaining"] == 18
    assert edit["result"]["jobs"][0]["tool_type"] == "image-editor"
    assert [e["index"] for e in batch["result"]["edits"]] == [0, 1]
    assert batch["result"]["credits_used"] == 4
    assert batch["result"]["credits_remaining"] == 14


@pytest.mark.asyncio
async def test_batch_edit_without_images_is_invalid_params():
    handler = _handler(_image_handler())

    response = json.loads(await handler.handle_request(_rpc(
        "image/batch-edit", {"user_id": "u1", "model_id": "flux", "instructions": "add a hat"},
    )))

    assert response["error"] == {"code": -32602, "message": "No images provided"}


@pytest.mark.asyncio
async def test_job_lookup_checks_owner():
    handler = _handler(_image_handler())
    generated = json.loads(await handler.handle_request(_rpc(
        "image/generate", {"user_id": "u1", "model_id": "flux", "prompt": "a fox"},
    )))
    job_id = generated["result"]["jobs"][0]["id"]

    own = json.loads(await handler.handle_request(_rpc("image/job", {"user_id": "u1", "job_id": job_id})))
    foreign = json.loads(await handler.handle_request(_rpc("image/job", {"user_id": "u2", "job_id": job_id})))
    missing = json.loads(await handler.handle_request(_rpc("image/job", {"user_id": "u1", "job_id": "nope"})))

    assert own["result"]["job"]["id"] == job_id
    assert foreign["error"]["code"] == ACCESS_DENIED
    assert missing["error"]["code"] == JOB_NOT_FOUND
    assert missing["error"]["data"] == {"job_id": "nope"}


def test_capabilities_list_configured_methods():
    capabilities = _image_handler().get_capabilities()

    assert set(capabilities["methods"]) == {
        "image/generate", "image/models", "image/jobs", "image/edit", "image/batch-edit", "image/job",
    }
