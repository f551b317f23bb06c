"""Per-vertex color, classification and custom attribute packing."""

from typing import Callable, Optional

import numpy as np

from ..errors import MeshBuildError

UINT32_MAX = 0xFFFFFFFF


def invoke_callback(what: str, callback: Callable, *args):
    """Call a user-supplied option callback; any failure becomes a MeshBuildError."""
    try:
        return callback(*args)
    except MeshBuildError:
        raise
    except Exception as e:
        raise MeshBuildError(f"{what} callback failed: {e}") from e


def resolve_option(value, properties: dict, default, what: str = "option"):
    """Resolve an option against one ring's properties.

    A callable is called with ``properties``; a ``None`` result falls
    through to ``default`` (called with ``properties`` when callable).
    Any other value, including 0 or False, is used as is.
    """
    if value is not None:
        if not callable(value):
            return value
        result = invoke_callback(what, value, properties)
        if result is not None:
            return result
    if callable(default):
        return default(properties)
    return default


def to_rgb(value) -> tuple[float, float, float]:
    """Convert a #RRGGBB string or an (r, g, b) sequence to floats in [0, 1]."""
    if isinstance(value, str):
        h = value.strip().lstrip("#")
        if len(h) != 6:
            raise ValueError(f"Invalid hex color '{value}'. Must be #RRGGBB format.")
        return (int(h[0:2], 16) / 255.0, int(h[2:4], 16) / 255.0, int(h[4:6], 16) / 255.0)
    r, g, b = (float(c) for c in value)
    return r, g, b


def random_color(rng: np.random.Generator) -> tuple[float, float, float]:
    r, g, b = rng.random(3)
    return float(r), float(g), float(b)


def resolve_color(color_option, properties: dict, rng: np.random.Generator) -> tuple[float, float, float]:
    value = resolve_option(color_option, properties, lambda _: random_color(rng), "color")
    try:
        return to_rgb(value)
    except (TypeError, ValueError) as e:
        raise MeshBuildError(f"color callback returned {value!r}: {e}") from e


def fill_color(colors: np.ndarray, length: int, color, vertex_offset: int = 0) -> None:
    """Broadcast one RGB color to ``length`` vertices starting at ``vertex_offset``."""
    rgb = np.clip(np.rint(np.asarray(color, dtype=np.float64) * 255.0), 0, 255).astype(np.uint8)
    start = vertex_offset * 3
    colors[start:start + length * 3] = np.tile(rgb, length)


def assign_batch_channel(
    channel: Optional[np.ndarray],
    classifier: Callable[[dict, int], int],
    properties: dict,
    ring_index: int,
    start: int = 0,
    stop: int = 0,
) -> int:
    """Classify one ring and broadcast its id to ``channel[start:stop]``.

    Returns the id so callers with growable layouts can replicate it themselves.
    """
    result = invoke_callback("batch classifier", classifier, properties, ring_index)
    try:
        batch_id = int(result)
    except (TypeError, ValueError) as e:
        raise MeshBuildError(f"Batch classifier returned {result!r}, not an integer id") from e
    if not 0 <= batch_id <= UINT32_MAX:
        raise MeshBuildError(f"Batch id {batch_id} does not fit in an unsigned 32-bit channel")
    if channel is not None:
        channel[start:stop] = batch_id
    return batch_id


class BatchChannels:
    """Any number of named classification channels with independent ring counters."""

    def __init__(self, classifiers: dict[str, Callable[[dict, int], int]]):
        self.classifiers = dict(classifiers)
        self.counters = {name: 0 for name in self.classifiers}

    def __len__(self) -> int:
        return len(self.classifiers)

    def allocate(self, length: int) -> dict[str, np.ndarray]:
        return {name: np.zeros(length, dtype=np.uint32) for name in self.classifiers}

    def assign(self, properties: dict, arrays: Optional[dict[str, np.ndarray]] = None,
               start: int = 0, stop: int = 0) -> dict[str, int]:
        """Classify one ring on every channel, advancing each channel's counter once."""
        ids = {}
        for name, classifier in self.classifiers.items():
            channel = arrays[name] if arrays is not None else None
            ids[name] = assign_batch_channel(
                channel, classifier, properties, self.counters[name], start, stop,
            )
            self.counters[name] += 1
        return ids

    @staticmethod
    def extend(lists: dict[str, list], ids: dict[str, int], n: int) -> None:
        for name, batch_id in ids.items():
            lists[name].extend([batch_id] * n)


def allocate_custom_attributes(declarations: dict, vertex_count: int) -> dict[str, np.ndarray]:
    """Allocate each declared attribute over the doubled (base + top) vertex layout."""
    return {
        name: np.zeros(2 * vertex_count * decl.item_size, dtype=decl.dtype)
        for name, decl in declarations.items()
    }


def fill_custom_attributes(
    arrays: dict[str, np.ndarray], declarations: dict, properties: dict, start: int, stop: int,
) -> None:
    """Write each attribute's value for one ring into vertices ``[start, stop)``."""
    for name, decl in declarations.items():
        if decl.value is None:
            continue
        value = invoke_callback(f"Attribute '{name}'", decl.value, properties)
        if value is None:
            continue
        try:
            item = np.broadcast_to(np.asarray(value, dtype=decl.dtype).reshape(-1), (decl.item_size,))
        except (TypeError, ValueError) as e:
            raise MeshBuildError(
                f"Attribute '{name}' value {value!r} does not fit {decl.item_size} x {decl.dtype}"
            ) from e
        arrays[name][start * decl.item_size:stop * decl.item_size] = np.tile(item, stop - start)
