import pytest

from image_gateway.domain.entity.generation import GenerationJob
from image_gateway.domain.service.model_registry import ModelRegistry
from image_gateway.infrastructure.config.settings import ProviderConfig, Settings
from image_gateway.main import build_application


@pytest.mark.asyncio
async def test_build_application_without_catalog_offers_every_model():
    app = build_application(Settings())

    models = await app.list_models_use_case.execute()

    assert len(models) == len(ModelRegistry())
    assert not any(m["available"] for m in models)


@pytest.mark.asyncio
async def test_build_application_uses_configured_catalog_and_billing():
    settings = Settings(
        providers={"bfl": ProviderConfig(api_key="bfl-key")},
        models=[{"id": "flux", "provider": "bfl", "api_model": "flux-pro", "cost_per_use": 3}],
    )
    settings.billing.default_credits = 7

    app = build_application(settings)

    models = await app.list_models_use_case.execute()
    assert [(m["id"], m["available"]) for m in models] == [("flux", True)]
    assert await app.ledger.get_balance("anyone") == 7
    assert app.dispatcher.provider_status() == {"bfl": "ready"}


@pytest.mark.asyncio
async def test_build_application_shares_jobs_with_job_lookup():
    app = build_application(Settings())
    job = await app.jobs.save(GenerationJob(
        user_id="u1", model_id="flux", tool_type="image-editor", prompt="add a hat", image_url="https://x/1.png",
    ))

    assert await app.get_job_use_case.execute("u1", job.id) is job
    assert app.edit_use_case is not None and app.batch_edit_use_case is not None
