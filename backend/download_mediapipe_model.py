#!/usr/bin/env python3
"""
Download the MediaPipe Face Landmarker model into the model cache.

The model is hashed on download; set MEDIAPIPE_MODEL_SHA256 to pin the
expected hash.
"""

import asyncio
import sys

from quiz_proctor.config import Config
from quiz_proctor.services.model_store import ModelStore


async def download_models() -> bool:
    store = ModelStore(Config.MODEL_CACHE_PATH)
    sources = Config.model_sources()

    if store.is_cached(sources):
        for model_key in sources:
            print(f"✓ {model_key} already cached (sha256 {store.get_hash(model_key)})")
        return True

    models = await store.ensure_models(sources)
    for model_key in sources:
        if model_key in models:
            size = len(models[model_key]) / 1024 / 1024
            print(f"✓ {model_key}: {size:.2f} MB, sha256 {store.get_hash(model_key)}")
        else:
            print(f"✗ {model_key}: download failed")
    return len(models) == len(sources)


def main():
    """Main function."""
    print("=" * 60)
    print("Face model downloader")
    print("=" * 60)
    print(f"\nCache: {Config.MODEL_CACHE_PATH}\n")

    if asyncio.run(download_models()):
        print("\nModels ready.")
        return 0

    print("\nPlease check your internet connection and try again.")
    return 1


if __name__ == "__main__":
    sys.exit(main())
