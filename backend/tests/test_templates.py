"""
TemplateRegistry tests
"""

import pytest
from PIL import Image

from image_cache.exceptions import TemplateNotFoundError
from image_cache.filters import ImageFilter, Large, Medium, Small
from image_cache.templates import (
    CallbackTransform,
    NamedFilter,
    TemplateRegistry,
    build_transformation,
)


class Invert(ImageFilter):
    def apply_filter(self, image):
        return Image.eval(image.convert("RGB"), lambda px: 255 - px)


class NotAFilter:
    pass


def _resize_factory(width):
    def resize(image):
        return image.resize((width, width))
    return resize


# ============================================
# Resolution
# ============================================

class TestResolve:

    def test_callable_becomes_callback_transform(self):
        registry = TemplateRegistry({"gray": lambda image: image.convert("L")})
        assert isinstance(registry.resolve("gray"), CallbackTransform)

    def test_filter_class_becomes_named_filter(self):
        registry = TemplateRegistry({"invert": Invert})
        transformation = registry.resolve("invert")
        assert isinstance(transformation, NamedFilter)
        assert isinstance(transformation.instance, Invert)

    @pytest.mark.parametrize("target", [
        "image_cache.filters.Small",
        "image_cache.filters:Small",
    ])
    def test_dotted_class_name_becomes_named_filter(self, target):
        registry = TemplateRegistry({"small": target})
        transformation = registry.resolve("small")
        assert isinstance(transformation, NamedFilter)
        assert transformation.filter_class is Small

    def test_lookup_is_case_insensitive(self):
        registry = TemplateRegistry({"Small": Small})
        assert registry.resolve("SMALL") is registry.resolve("small")
        assert "sMaLl" in registry

    def test_unknown_template_raises_not_found(self):
        registry = TemplateRegistry({"small": Small})
        with pytest.raises(TemplateNotFoundError):
            registry.resolve("nonexistent-template")

    def test_invalid_definitions_are_skipped(self):
        registry = TemplateRegistry({
            "missing": "image_cache.filters.DoesNotExist",
            "module": "no_such_module.Thing",
            "number": 42,
            "plain": NotAFilter,
            "ok": Medium,
        })
        assert registry.names() == ["ok"]
        for name in ("missing", "module", "number", "plain"):
            with pytest.raises(TemplateNotFoundError):
                registry.resolve(name)

    def test_register_rejects_invalid_definition(self):
        registry = TemplateRegistry()
        with pytest.raises(TemplateNotFoundError):
            registry.register("bad", "not.a.RealClass")

    @pytest.mark.parametrize("name", ["original", "DOWNLOAD"])
    def test_reserved_names_cannot_be_registered(self, name):
        registry = TemplateRegistry()
        with pytest.raises(TemplateNotFoundError):
            registry.register(name, Small)

    def test_filter_instance_is_accepted(self):
        instance = Invert()
        transformation = build_transformation("invert", instance)
        assert isinstance(transformation, NamedFilter)
        assert transformation.instance is instance

    def test_unregister(self):
        registry = TemplateRegistry({"small": Small})
        assert registry.unregister("SMALL") is True
        assert registry.unregister("small") is False
        assert "small" not in registry


# ============================================
# Application
# ============================================

class TestApply:

    def test_named_filter_applies_filter(self):
        image = Image.new("RGB", (640, 480), (10, 20, 30))
        result = NamedFilter(Large).apply(image)
        assert result.size == (480, 360)

    def test_callback_return_value_is_used(self):
        image = Image.new("RGB", (10, 10))
        result = CallbackTransform(lambda img: img.convert("L")).apply(image)
        assert result.mode == "L"

    def test_callback_may_mutate_in_place(self):
        image = Image.new("RGB", (400, 400))

        def shrink(img):
            img.thumbnail((50, 50))

        result = CallbackTransform(shrink).apply(image)
        assert result is image
        assert result.size == (50, 50)


# ============================================
# Fingerprints
# ============================================

class TestFingerprint:

    def test_filter_fingerprint_is_stable(self):
        assert NamedFilter(Small).fingerprint() == NamedFilter(Small).fingerprint()

    def test_filter_fingerprints_differ_by_class(self):
        assert NamedFilter(Small).fingerprint() != NamedFilter(Medium).fingerprint()

    def test_filter_fingerprint_includes_dimensions(self):
        assert b"width=120" in NamedFilter(Small).fingerprint()

    def test_callback_fingerprint_differs_by_closure_value(self):
        small = CallbackTransform(_resize_factory(10)).fingerprint()
        large = CallbackTransform(_resize_factory(20)).fingerprint()
        assert small != large
        assert small == CallbackTransform(_resize_factory(10)).fingerprint()

    def test_callback_fingerprint_ignores_mutable_state(self):
        calls = []

        def counted(image):
            calls.append(1)
            return image

        transformation = CallbackTransform(counted)
        before = transformation.fingerprint()
        calls.extend([1, 1, 1])
        assert transformation.fingerprint() == before

    def test_callback_fingerprint_differs_by_code(self):
        gray = CallbackTransform(lambda img: img.convert("L"))
        rgb = CallbackTransform(lambda img: img.convert("RGB"))
        assert gray.fingerprint() != rgb.fingerprint()
