"""Sub-artifact kinds.

Every per-item download is described by one ArtifactKind: where it is
stored, how it is fetched, and which saved document records its local
timestamp. Adding a new artifact is a new entry here, not new control
flow in the category jobs.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Awaitable, Callable

from mapbox_backup.core.types import Item, item_id

from .pagination import drain_feature_collection

Fetcher = Callable[[Any, Item], Awaitable[Any]]


@dataclass(frozen=True)
class ArtifactKind:
    """Description of one sub-artifact of an item.

    Attributes:
        name: Short name used in job ids and logs
        directory: Sub-directory of the output root
        suffix: File name suffix after the item id
        fetch: Coroutine function ``(client, item) -> payload``
        binary: Payload is bytes rather than a JSON document
        stamp_kind: Kind whose saved document holds the local timestamp
            (None: the artifact itself)
    """

    name: str
    directory: str
    suffix: str
    fetch: Fetcher
    binary: bool = False
    stamp_kind: ArtifactKind | None = None

    def filename(self, item: Item) -> str:
        return f"{item_id(item)}{self.suffix}"

    def path_for(self, root: Path, item: Item) -> Path:
        return Path(root) / self.directory / self.filename(item)

    def stamp_path_for(self, root: Path, item: Item) -> Path | None:
        if self.stamp_kind is None:
            return None
        return self.stamp_kind.path_for(root, item)

    def job_id(self, item: Item) -> str:
        return f"{item_id(item)}/{self.name}"


@dataclass(frozen=True)
class ArtifactGroup:
    """Artifact kinds that share a scope flag and a progress line."""

    scope: str
    label: str
    kinds: tuple[ArtifactKind, ...]


async def _fetch_style(client: Any, item: Item) -> Any:
    return await client.get_style(item_id(item))


async def _fetch_draft_style(client: Any, item: Item) -> Any:
    return await client.get_style(item_id(item), draft=True)


async def _fetch_sprite_json(client: Any, item: Item) -> Any:
    return await client.get_style_sprite(item_id(item), format="json")


async def _fetch_draft_sprite_json(client: Any, item: Item) -> Any:
    return await client.get_style_sprite(item_id(item), format="json", draft=True)


async def _fetch_sprite_png(client: Any, item: Item) -> Any:
    return await client.get_style_sprite(item_id(item), format="png")


async def _fetch_sprite_png_2x(client: Any, item: Item) -> Any:
    return await client.get_style_sprite(item_id(item), format="png", high_res=True)


async def _fetch_features(client: Any, item: Item) -> Any:
    return await drain_feature_collection(client.list_features(item_id(item)))


STYLE_DOCUMENT = ArtifactKind("style", "styles", ".json", _fetch_style)
STYLE_DRAFT_DOCUMENT = ArtifactKind("style.draft", "styles", ".draft.json", _fetch_draft_style)

# Sprites carry no timestamp of their own; the published style's does
SPRITE_JSON = ArtifactKind(
    "sprite.json", "sprites", ".json", _fetch_sprite_json, stamp_kind=STYLE_DOCUMENT
)
SPRITE_DRAFT_JSON = ArtifactKind(
    "sprite.draft.json", "sprites", ".draft.json", _fetch_draft_sprite_json, stamp_kind=STYLE_DOCUMENT
)
SPRITE_PNG = ArtifactKind(
    "sprite.png", "sprites", ".png", _fetch_sprite_png, binary=True, stamp_kind=STYLE_DOCUMENT
)
SPRITE_PNG_2X = ArtifactKind(
    "sprite@2x.png", "sprites", "@2x.png", _fetch_sprite_png_2x, binary=True, stamp_kind=STYLE_DOCUMENT
)

DATASET_FEATURES = ArtifactKind("features", "datasets", ".json", _fetch_features)

STYLE_DOCUMENTS = ArtifactGroup(
    "style-documents", "Style Documents", (STYLE_DRAFT_DOCUMENT, STYLE_DOCUMENT)
)
STYLE_SPRITES = ArtifactGroup(
    "style-sprites", "Style Sprites", (SPRITE_JSON, SPRITE_DRAFT_JSON, SPRITE_PNG, SPRITE_PNG_2X)
)
DATASET_DOCUMENTS = ArtifactGroup("dataset-documents", "Dataset Documents", (DATASET_FEATURES,))
