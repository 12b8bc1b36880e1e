"""
Template Registry

Maps template identifiers to transformations. Every definition is resolved
once, at registration time, into one of two variants:

- NamedFilter: an ImageFilter class, instantiated and applied as a filter
- CallbackTransform: a function receiving the decoded image; it may mutate
  the image in place or return a new one

Both expose `apply(image) -> image` and `fingerprint() -> bytes`, the latter
being the transformation-defining bytes folded into cache keys.
"""

import importlib
import inspect
import logging
from dataclasses import dataclass, field
from types import CodeType
from typing import Any, Callable, Dict, Mapping, Optional, Union

from PIL import Image

from .exceptions import TemplateNotFoundError

logger = logging.getLogger(__name__)

TEMPLATE_ORIGINAL = "original"
TEMPLATE_DOWNLOAD = "download"
RESERVED_TEMPLATES = (TEMPLATE_ORIGINAL, TEMPLATE_DOWNLOAD)

_SCALAR_TYPES = (int, float, complex, str, bytes, bool, type(None))


def _stable_repr(value: Any) -> str:
    """
    repr() of immutable values; mutable or opaque objects contribute only
    their type, so state such as counters never changes a cache key.
    """
    if isinstance(value, _SCALAR_TYPES):
        return repr(value)
    if isinstance(value, tuple):
        return "(" + ",".join(_stable_repr(v) for v in value) + ")"
    if isinstance(value, frozenset):
        return "frozenset(" + ",".join(sorted(_stable_repr(v) for v in value)) + ")"
    return f"<{type(value).__module__}.{type(value).__qualname__}>"


def _code_bytes(code: CodeType) -> bytes:
    """Bytecode plus constants; nested code objects are expanded, not repr'd."""
    parts = [code.co_code]
    for const in code.co_consts:
        if isinstance(const, CodeType):
            parts.append(_code_bytes(const))
        else:
            parts.append(_stable_repr(const).encode())
    return b"\x01".join(parts)


@dataclass(frozen=True)
class NamedFilter:
    """Filter class template."""
    filter_class: type
    instance: Any = field(compare=False, repr=False, default=None)
    _fingerprint: bytes = field(init=False, compare=False, repr=False, default=b"")

    def __post_init__(self) -> None:
        if self.instance is None:
            object.__setattr__(self, "instance", self.filter_class())
        object.__setattr__(self, "_fingerprint", self._compute_fingerprint())

    @property
    def name(self) -> str:
        return f"{self.filter_class.__module__}.{self.filter_class.__qualname__}"

    def apply(self, image: Image.Image) -> Image.Image:
        return self.instance.apply_filter(image)

    def fingerprint(self) -> bytes:
        return self._fingerprint

    def _compute_fingerprint(self) -> bytes:
        attrs = []
        for key in sorted(dir(self.instance)):
            if key.startswith("_"):
                continue
            value = getattr(self.instance, key)
            if callable(value):
                continue
            attrs.append(f"{key}={_stable_repr(value)}")
        return f"filter:{self.name}:{';'.join(attrs)}".encode()


@dataclass(frozen=True)
class CallbackTransform:
    """Callable template."""
    function: Callable[[Image.Image], Optional[Image.Image]]
    _fingerprint: bytes = field(init=False, compare=False, repr=False, default=b"")

    def __post_init__(self) -> None:
        # captured once, before any call can change the callable's state
        object.__setattr__(self, "_fingerprint", self._compute_fingerprint())

    @property
    def name(self) -> str:
        module = getattr(self.function, "__module__", "")
        qualname = getattr(self.function, "__qualname__", type(self.function).__qualname__)
        return f"{module}.{qualname}"

    def apply(self, image: Image.Image) -> Image.Image:
        result = self.function(image)
        return image if result is None else result

    def fingerprint(self) -> bytes:
        return self._fingerprint

    def _compute_fingerprint(self) -> bytes:
        parts = [f"callback:{self.name}".encode()]
        code = getattr(self.function, "__code__", None)
        if code is None:
            # callable instance
            code = getattr(getattr(self.function, "__call__", None), "__code__", None)
            state = getattr(self.function, "__dict__", {})
            parts.append(";".join(f"{k}={_stable_repr(state[k])}" for k in sorted(state)).encode())
        if code is not None:
            parts.append(_code_bytes(code))
        parts.append(_stable_repr(getattr(self.function, "__defaults__", None)).encode())
        kwdefaults = getattr(self.function, "__kwdefaults__", None) or {}
        parts.append(_stable_repr(tuple(sorted(kwdefaults.items()))).encode())
        for cell in getattr(self.function, "__closure__", None) or ():
            try:
                parts.append(_stable_repr(cell.cell_contents).encode())
            except ValueError:
                # empty cell
                parts.append(b"<empty>")
        return b"\x00".join(parts)


Transformation = Union[NamedFilter, CallbackTransform]


def _import_class(target: str) -> Optional[type]:
    """Import `package.module.Class` or `package.module:Class`; None if it doesn't exist."""
    if ":" in target:
        module_name, _, attr = target.partition(":")
    else:
        module_name, _, attr = target.rpartition(".")
    if not module_name or not attr:
        return None
    try:
        module = importlib.import_module(module_name)
    except ImportError:
        return None
    value = getattr(module, attr, None)
    return value if inspect.isclass(value) else None


def build_transformation(template_id: str, definition: Any) -> Transformation:
    """
    Resolve a template definition into a transformation variant.

    Raises:
        TemplateNotFoundError: definition is neither callable nor a class.
    """
    if isinstance(definition, (NamedFilter, CallbackTransform)):
        return definition

    if isinstance(definition, str):
        cls = _import_class(definition)
        if cls is None:
            raise TemplateNotFoundError(template_id, f"class {definition} does not exist")
        definition = cls

    if inspect.isclass(definition):
        if not callable(getattr(definition, "apply_filter", None)):
            raise TemplateNotFoundError(template_id, f"{definition.__qualname__} has no apply_filter()")
        return NamedFilter(definition)

    if callable(definition):
        return CallbackTransform(definition)

    # already-built filter instance
    if callable(getattr(definition, "apply_filter", None)):
        return NamedFilter(type(definition), instance=definition)

    raise TemplateNotFoundError(template_id, "definition is not callable or a class")


class TemplateRegistry:
    """
    Case-insensitive registry of template transformations.

    Usage:
        registry = TemplateRegistry({"thumb": lambda img: img.thumbnail((64, 64))})
        transformation = registry.resolve("Thumb")
    """

    def __init__(self, templates: Optional[Mapping[str, Any]] = None):
        self._templates: Dict[str, Transformation] = {}
        for template_id, definition in (templates or {}).items():
            try:
                self.register(template_id, definition)
            except TemplateNotFoundError as e:
                logger.warning(f"[TemplateRegistry] Skipping invalid template: {e}")

    def register(self, template_id: str, definition: Any) -> Transformation:
        key = template_id.lower()
        if key in RESERVED_TEMPLATES:
            raise TemplateNotFoundError(template_id, "reserved template name")
        transformation = build_transformation(template_id, definition)
        self._templates[key] = transformation
        logger.debug(f"[TemplateRegistry] Registered {key} -> {transformation.name}")
        return transformation

    def unregister(self, template_id: str) -> bool:
        return self._templates.pop(template_id.lower(), None) is not None

    def resolve(self, template_id: str) -> Transformation:
        """
        Raises:
            TemplateNotFoundError: no template registered under this id.
        """
        transformation = self._templates.get(template_id.lower())
        if transformation is None:
            raise TemplateNotFoundError(template_id)
        return transformation

    def names(self) -> list:
        return sorted(self._templates)

    def __contains__(self, template_id: str) -> bool:
        return template_id.lower() in self._templates
