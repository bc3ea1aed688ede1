"""Video asset storage capability and adapters."""

from vitrine.assets.client import AssetClient, AssetStore
from vitrine.assets.transport import FileAssetStore, HttpAssetStore

__all__ = ["AssetClient", "AssetStore", "FileAssetStore", "HttpAssetStore"]
