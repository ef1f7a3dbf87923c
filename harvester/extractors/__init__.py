"""
Extractor registry.

Built-in extractors are referenced by name; anything else is loaded from a
dotted path of the form `package.module:callable`.
"""

import importlib

from harvester.exceptions import ConfigurationError
from .wherevent import WhereventExtractor

EXTRACTORS = {
    'wherevent': WhereventExtractor,
}


def load_extractor(name: str, timeout: float = 30.0):
    """
    Resolve an extractor by registry name or dotted path.

    Args:
        name: Registry name (e.g. "wherevent") or "package.module:callable"
        timeout: Per-request timeout passed to built-in extractors

    Returns:
        Callable (uri, proxy) -> Iterable[dict]

    Raises:
        ConfigurationError: If the extractor cannot be found
    """
    if name in EXTRACTORS:
        return EXTRACTORS[name](timeout=timeout)

    module_name, sep, attr = name.partition(":")
    if not sep or not module_name or not attr:
        known = ", ".join(sorted(EXTRACTORS))
        raise ConfigurationError(
            f"Unknown extractor {name!r}. Use one of: {known}, or package.module:callable"
        )

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ConfigurationError(f"Cannot import extractor module {module_name!r}: {e}") from e

    extractor = getattr(module, attr, None)
    if extractor is None or not callable(extractor):
        raise ConfigurationError(f"{module_name!r} has no callable {attr!r}")
    return extractor


__all__ = ['EXTRACTORS', 'WhereventExtractor', 'load_extractor']
