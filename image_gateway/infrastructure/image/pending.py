"""Vendors listed in the catalog whose integration is not built yet."""

from ...domain.repository.image_provider import PendingIntegration

PENDING_INTEGRATIONS = {
    "bytedance": PendingIntegration("bytedance", "ByteDance models not yet available via public API"),
    "midjourney": PendingIntegration("midjourney", "Midjourney requires Discord bot integration"),
    "runway": PendingIntegration("runway", "Runway Gen-4 API integration pending"),
    "tencent": PendingIntegration("tencent", "Tencent Hunyuan API integration pending"),
    "xai": PendingIntegration("xai", "xAI Grok Image API integration pending"),
    "luma": PendingIntegration("luma", "Luma Photon API integration pending"),
}
