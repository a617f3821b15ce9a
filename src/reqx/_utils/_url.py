from typing import Mapping

from httpx import URL


def build_url(base_url: str, path: str, *param_layers: Mapping[str, str]) -> str:
    """Join ``base_url`` and ``path`` and merge query parameter layers.

    Later layers override earlier ones key by key, and both override any
    parameter of the same name already present in ``path``. Each key appears
    exactly once in the result.

    Raises:
        httpx.InvalidURL: If the joined URL cannot be parsed.
    """
    url = URL(f"{base_url}{path}")

    merged: dict[str, str] = {}
    for layer in param_layers:
        merged.update(layer)

    if merged:
        url = url.copy_merge_params(merged)
    return str(url)
