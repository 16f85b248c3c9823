"""Asset system: content records referenced by nodes."""
import copy
import uuid
from typing import TYPE_CHECKING, Any, Optional

import structlog

from canvas_engine.models.graph import Asset, AssetSys, now_ms

if TYPE_CHECKING:
    from canvas_engine.engine.graph_engine import GraphEngine

logger = structlog.get_logger()


class AssetSystem:
    """Create, update and delete assets through the engine's store."""

    def __init__(self, engine: "GraphEngine"):
        self.engine = engine

    def get(self, asset_id: Optional[str]) -> Optional[Asset]:
        return self.engine.state.get_asset(asset_id)

    def create(
        self,
        value_type: str,
        value: Any,
        name: str = "New Asset",
        config: Optional[dict] = None,
        value_meta: Optional[dict] = None,
        source: str = "user",
    ) -> str:
        """Create an asset and return its id."""
        asset = Asset(
            id=str(uuid.uuid4()),
            value_type=value_type,
            value=value,
            value_meta=value_meta,
            config=config or {},
            sys=AssetSys(name=name, source=source),
        )
        self._put(asset)
        logger.debug("asset_created", asset_id=asset.id, value_type=value_type)
        return asset.id

    def copy(self, asset_id: Optional[str], name_suffix: str = " (Copy)") -> Optional[str]:
        """Deep-copy an asset under a new id. Returns None for unknown ids."""
        asset = self.get(asset_id)
        if asset is None:
            return None
        return self.create(
            value_type=asset.value_type,
            value=copy.deepcopy(asset.value),
            name=f"{asset.sys.name}{name_suffix}",
            config=copy.deepcopy(asset.config),
            value_meta=copy.deepcopy(asset.value_meta),
        )

    def update(self, asset_id: str, value: Any = None, **changes) -> None:
        """Replace an asset's value and/or other top-level fields."""
        asset = self.get(asset_id)
        if asset is None:
            logger.warning("asset_not_found", asset_id=asset_id, operation="update")
            return

        if value is not None:
            changes["value"] = value
        sys = asset.sys.model_copy(update={"updated_at": now_ms()})
        self._put(asset.model_copy(update={**changes, "sys": sys}))

    def update_sys(self, asset_id: str, **changes) -> None:
        """Update system metadata (name, source)."""
        asset = self.get(asset_id)
        if asset is None:
            logger.warning("asset_not_found", asset_id=asset_id, operation="update_sys")
            return

        sys = asset.sys.model_copy(update={**changes, "updated_at": now_ms()})
        self._put(asset.model_copy(update={"sys": sys}))

    def delete(self, asset_id: str) -> None:
        assets = dict(self.engine.state.assets)
        if assets.pop(asset_id, None) is not None:
            self.engine.store.set_assets(assets)

    def _put(self, asset: Asset) -> None:
        assets = dict(self.engine.state.assets)
        assets[asset.id] = asset
        self.engine.store.set_assets(assets)
