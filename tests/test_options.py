"""Tests for SimplificationOptions."""

import pytest

from meshsimplifier.exceptions import SimplificationOptionsError
from meshsimplifier.options import DEFAULT_VERTEX_LINK_DISTANCE, SimplificationOptions


class TestDefaults:
    """Tests for defaults."""

    def test_default_values(self):
        options = SimplificationOptions()
        assert options.enable_smart_link
        assert not options.preserve_border_edges
        assert options.vertex_link_distance == DEFAULT_VERTEX_LINK_DISTANCE
        assert options.vertex_link_distance > 0
        assert options.max_iteration_count == 100
        assert options.aggressiveness == 7.0
        assert options.max_error is None
        options.validate()

    def test_locked_sets_are_frozen(self):
        options = SimplificationOptions(locked_vertices=[3, 1, 3], locked_submeshes={0})
        assert options.locked_vertices == frozenset({1, 3})
        assert isinstance(options.locked_submeshes, frozenset)


class TestValidation:
    """Tests for validation."""

    @pytest.mark.parametrize("kwargs, property_name", [
        ({"vertex_link_distance": -1.0}, "vertex_link_distance"),
        ({"max_iteration_count": 0}, "max_iteration_count"),
        ({"aggressiveness": 0.0}, "aggressiveness"),
        ({"boundary_weight": -0.5}, "boundary_weight"),
        ({"normal_flip_threshold": 1.5}, "normal_flip_threshold"),
        ({"max_error": -1e-3}, "max_error"),
        ({"manual_uv_component_count": True, "uv_component_count": 5}, "uv_component_count"),
        ({"locked_vertices": [-1]}, "locked_vertices"),
        ({"locked_submeshes": [-2]}, "locked_submeshes"),
    ])
    def test_invalid_option(self, kwargs, property_name):
        options = SimplificationOptions(**kwargs)
        with pytest.raises(SimplificationOptionsError) as exc_info:
            options.validate()
        assert exc_info.value.property_name == property_name
        assert property_name in str(exc_info.value)

    def test_negative_link_distance_without_smart_link(self):
        SimplificationOptions(enable_smart_link=False, vertex_link_distance=-1.0).validate()

    def test_uv_count_ignored_without_manual_mode(self):
        SimplificationOptions(uv_component_count=9).validate()

    def test_options_error_is_value_error(self):
        with pytest.raises(ValueError):
            SimplificationOptions(aggressiveness=-1.0).validate()
