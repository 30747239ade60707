"""
Unit tests for layered environment resolution.
"""

import pytest

from ndkforge.config.layers import (
    DefaultLayer,
    DerivedLayer,
    LayeredEnvironment,
    LayerValidationError,
    OverrideLayer,
)


class TestLayeredEnvironment:
    """Test precedence between layer types."""

    def test_override_beats_derived(self):
        context = LayeredEnvironment(
            [
                DerivedLayer({"CFLAGS": "--sysroot=/s -fPIC", "CC": "clang"}, name="ndk"),
                OverrideLayer({"CFLAGS": "-O2"}, name="ambient"),
            ]
        ).resolve()

        assert context.variables == {"CFLAGS": "-O2", "CC": "clang"}
        assert context.origins == {"CFLAGS": "ambient", "CC": "ndk"}

    def test_default_only_fills_gaps(self):
        context = LayeredEnvironment(
            [
                DerivedLayer({"CPPFLAGS": "-I/staging/include"}),
                DefaultLayer({"CPPFLAGS": "", "LDFLAGS": ""}),
            ]
        ).resolve()

        assert context.variables["CPPFLAGS"] == "-I/staging/include"
        assert context.variables["LDFLAGS"] == ""

    def test_none_means_not_overridden(self):
        context = LayeredEnvironment(
            [DerivedLayer({"CFLAGS": "a"}), OverrideLayer({"CFLAGS": None})]
        ).resolve()

        assert context.variables["CFLAGS"] == "a"

    def test_empty_string_is_an_override(self):
        context = LayeredEnvironment(
            [DerivedLayer({"CPPFLAGS": "-I/x"}), OverrideLayer({"CPPFLAGS": ""})]
        ).resolve()

        assert context.variables["CPPFLAGS"] == ""

    def test_later_override_wins(self):
        env = LayeredEnvironment()
        env.add(OverrideLayer({"CFLAGS": "-O2"}, name="ambient")).add(
            OverrideLayer({"CFLAGS": "-O3"}, name="config")
        )

        context = env.resolve()

        assert context.variables["CFLAGS"] == "-O3"
        assert [layer.name for layer in context.applied_layers] == ["ambient", "config"]

    def test_invalid_name_rejected(self):
        with pytest.raises(LayerValidationError, match="invalid environment variable name"):
            LayeredEnvironment([OverrideLayer({"BAD-NAME": "x"})]).resolve()

    def test_non_string_value_rejected(self):
        with pytest.raises(LayerValidationError, match="must be a string"):
            LayeredEnvironment([OverrideLayer({"JOBS": 4})]).resolve()
