"""Manual smoke test against a running gateway on localhost:50051."""

import asyncio

import grpc

from image_gateway.infrastructure.grpc_server.image_gateway_server import deserialize, serialize

SERVICE = "/imagegateway.ImageGateway"


def _call(channel, method):
    return channel.unary_unary(
        f"{SERVICE}/{method}",
        request_serializer=serialize,
        response_deserializer=deserialize,
    )


async def run():
    async with grpc.aio.insecure_channel("localhost:50051") as channel:
        print("--- Testing HealthCheck ---")
        try:
            response = await _call(channel, "HealthCheck")({})
            print(f"HealthCheck Response: {response}")
        except grpc.aio.AioRpcError as e:
            print(f"HealthCheck failed: {e.code()} {e.details()}")

        print("\n--- Testing ListModels ---")
        try:
            response = await _call(channel, "ListModels")({})
            for model in response["models"]:
                print(f"  {model['id']}: available={model['available']} ({model['provider_status']})")
        except grpc.aio.AioRpcError as e:
            print(f"ListModels failed: {e.code()} {e.details()}")

        print("\n--- Testing GenerateImages ---")
        # Fails with UNAVAILABLE if the provider has no API key
        try:
            response = await _call(channel, "GenerateImages")({
                "user_id": "smoke-test",
                "model_id": "flux-pro",
                "prompt": "A cute cat",
                "number_of_images": 1,
            })
            print(f"GenerateImages Response: {response}")
        except grpc.aio.AioRpcError as e:
            print(f"GenerateImages failed (expected if no API key): {e.code()} {e.details()}")

        print("\n--- Testing GetJobs ---")
        try:
            response = await _call(channel, "GetJobs")({"user_id": "smoke-test"})
            print(f"GetJobs Response: {len(response['jobs'])} job(s)")
        except grpc.aio.AioRpcError as e:
            print(f"GetJobs failed: {e.code()} {e.details()}")


if __name__ == "__main__":
    asyncio.run(run())
