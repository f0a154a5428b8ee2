"""Tests for telescoping module."""

import math

import pytest

from pipeload.telescoping import (
    NestingRelationship,
    PackingTemplate,
    PipeSpec,
    TelescopingResolver,
    TelescopingType,
    clear_telescoping,
    resolve_telescoping,
    space_saved,
    telescoping_suggestions,
)


def make_pipe(pipe_id, external, internal, length, quantity=100.0, weight=2.0):
    return PipeSpec(
        id=pipe_id,
        external_diameter=external,
        internal_diameter=internal,
        standard_length=length,
        quantity_in_meters=quantity,
        weight_per_meter=weight,
    )


class TestTelescopingType:
    """Tests for TelescopingType enum."""

    def test_type_values(self):
        """Test type values."""
        assert TelescopingType.NONE.value == "none"
        assert TelescopingType.FULL.value == "full"
        assert TelescopingType.PARTIAL.value == "partial"
        assert TelescopingType.NESTED.value == "nested"


class TestPipeSpec:
    """Tests for PipeSpec dataclass."""

    def test_create_pipe(self):
        """Test creating a pipe."""
        pipe = make_pipe("P1", 20.0, 18.0, 600.0, weight=3.0)

        assert pipe.length == 600.0
        assert pipe.wall_thickness == pytest.approx(1.0)
        assert pipe.unit_weight == pytest.approx(18.0)

    def test_from_dict_defaults_missing_numbers(self):
        """Test missing or empty numeric fields become zero."""
        pipe = PipeSpec.from_dict({"id": "P", "external_diameter": None, "length": 300})

        assert pipe.external_diameter == 0.0
        assert pipe.internal_diameter == 0.0
        assert pipe.standard_length == 300.0
        assert pipe.weight_per_meter == 0.0

    def test_to_dict(self):
        """Test pipe serialization."""
        d = make_pipe("P1", 20, 18, 600).to_dict()

        assert d["id"] == "P1"
        assert d["standard_length"] == 600

    def test_immutable(self):
        """Test pipes cannot be changed in place."""
        pipe = make_pipe("P1", 20, 18, 600)

        with pytest.raises(Exception):
            pipe.external_diameter = 30


class TestTelescopingResolver:
    """Tests for TelescopingResolver class."""

    @pytest.fixture
    def resolver(self):
        """Create a resolver without allowance."""
        return TelescopingResolver()

    def test_full_telescoping(self, resolver):
        """Test a shorter inner pipe telescopes fully."""
        outer = make_pipe("outer", 20, 18, 200)
        inner = make_pipe("inner", 15, 13, 150)

        result = resolver.resolve([outer, inner])
        view = result.for_pipe("outer")

        assert view.telescoping_type == TelescopingType.FULL
        assert view.effective_diameter == 20
        assert view.effective_length == 200
        assert view.nested_with == ["inner"]

    def test_partial_telescoping(self, resolver):
        """Test a longer inner pipe telescopes partially."""
        outer = make_pipe("outer", 20, 18, 200)
        inner = make_pipe("inner", 15, 13, 300)

        result = resolver.resolve([outer, inner])
        view = result.for_pipe("outer")

        assert view.telescoping_type == TelescopingType.PARTIAL
        assert view.effective_diameter == 20
        assert view.effective_length == 300

    def test_nested_pipe_view(self, resolver):
        """Test the inner pipe is reported as nested."""
        result = resolver.resolve([make_pipe("outer", 20, 18, 200), make_pipe("inner", 15, 13, 150)])
        view = result.for_pipe("inner")

        assert view.telescoping_type == TelescopingType.NESTED
        assert view.nested_in == "outer"
        assert view.effective_diameter == 15
        assert view.effective_length == 150

    def test_group_template(self, resolver):
        """Test the group becomes a single template with combined weight."""
        outer = make_pipe("outer", 20, 18, 200, weight=3.0)
        inner = make_pipe("inner", 15, 13, 150, weight=2.0)

        result = resolver.resolve([outer, inner])

        assert len(result.group_templates) == 1
        assert result.standalone_templates == []
        template = result.group_templates[0]
        assert template.template_id == "outer"
        assert template.member_ids == ("outer", "inner")
        assert template.is_group is True
        assert template.diameter == 20
        assert template.length == 200
        # 2 m * 3 kg/m + 1.5 m * 2 kg/m
        assert template.weight == pytest.approx(9.0)

    def test_relationship(self, resolver):
        """Test nesting relationships."""
        result = resolver.resolve([make_pipe("outer", 20, 18, 200), make_pipe("inner", 15, 13, 300)])

        assert result.relationships == [
            NestingRelationship("outer", ["inner"], TelescopingType.PARTIAL)
        ]

    def test_multi_level_nesting(self, resolver):
        """Test pipes nest concentrically several levels deep."""
        pipes = [
            make_pipe("D", 10, 8, 100),
            make_pipe("B", 25, 22, 100),
            make_pipe("A", 30, 28, 100),
            make_pipe("C", 20, 18, 100),
        ]

        result = resolver.resolve(pipes)

        assert len(result.relationships) == 1
        assert result.relationships[0].outer_id == "A"
        assert result.relationships[0].nested_ids == ["B", "C", "D"]
        assert result.standalone_templates == []

    def test_chain_uses_previous_bore(self, resolver):
        """Test later members must fit the previous member, not the outer pipe."""
        pipes = [
            make_pipe("A", 30, 28, 100),
            make_pipe("B", 25, 12, 100),  # Thick wall leaves a small bore
            make_pipe("C", 20, 18, 100),
        ]

        result = resolver.resolve(pipes)

        assert result.relationships[0].nested_ids == ["B"]
        assert result.for_pipe("C").telescoping_type == TelescopingType.NONE
        assert [t.template_id for t in result.standalone_templates] == ["C"]

    def test_allowance_blocks_nesting(self):
        """Test the allowance narrows the available bore."""
        pipes = [make_pipe("outer", 20, 18, 200), make_pipe("inner", 15, 13, 150)]

        blocked = TelescopingResolver(allowance=2.0).resolve(pipes)
        tight = TelescopingResolver(allowance=1.5).resolve(pipes)

        assert blocked.relationships == []
        assert len(blocked.standalone_templates) == 2
        assert tight.relationships[0].nested_ids == ["inner"]

    def test_no_bore_left(self):
        """Test an outer pipe whose bore is used up by the allowance hosts nothing."""
        pipes = [make_pipe("outer", 20, 4, 200), make_pipe("inner", 1, 0.5, 150)]

        result = TelescopingResolver(allowance=2.0).resolve(pipes)

        assert result.relationships == []

    def test_standalone_pipes(self, resolver):
        """Test pipes that cannot nest become standalone templates."""
        pipes = [make_pipe("A", 20, 18, 200), make_pipe("B", 19, 17, 300)]

        result = resolver.resolve(pipes)

        assert result.group_templates == []
        assert [t.template_id for t in result.standalone_templates] == ["A", "B"]
        for view in result.pipes:
            assert view.telescoping_type == TelescopingType.NONE

    def test_equal_diameters_keep_input_order(self, resolver):
        """Test the first of two equal pipes becomes the host."""
        inner = make_pipe("inner", 15, 13, 150)

        first = resolver.resolve([make_pipe("X", 20, 18, 200), make_pipe("Y", 20, 18, 200), inner])
        second = resolver.resolve([make_pipe("Y", 20, 18, 200), make_pipe("X", 20, 18, 200), inner])

        assert first.relationships[0].outer_id == "X"
        assert second.relationships[0].outer_id == "Y"

    def test_views_follow_input_order(self, resolver):
        """Test per-pipe views are returned in input order."""
        pipes = [make_pipe("small", 10, 8, 100), make_pipe("big", 30, 28, 100)]

        result = resolver.resolve(pipes)

        assert [v.pipe_id for v in result.pipes] == ["small", "big"]

    def test_does_not_mutate_input(self, resolver):
        """Test the caller's list is left untouched."""
        pipes = [make_pipe("small", 10, 8, 100), make_pipe("big", 30, 28, 100)]
        before = list(pipes)

        resolver.resolve(pipes)

        assert pipes == before

    def test_deterministic(self, resolver):
        """Test resolving twice gives the same result."""
        pipes = [
            make_pipe("A", 30, 28, 100),
            make_pipe("B", 25, 22, 150),
            make_pipe("C", 12, 10, 80),
            make_pipe("D", 25, 20, 100),
        ]

        assert resolver.resolve(pipes).to_dict() == resolver.resolve(pipes).to_dict()

    def test_nested_pipes_fit_their_host(self):
        """Test every nested pipe fits the bore it was placed in."""
        allowance = 0.5
        pipes = [
            make_pipe("A", 40, 37, 100),
            make_pipe("B", 35, 30, 150),
            make_pipe("C", 28, 25, 80),
            make_pipe("D", 20, 15, 100),
            make_pipe("E", 12, 10, 120),
        ]
        by_id = {p.id: p for p in pipes}

        result = TelescopingResolver(allowance=allowance).resolve(pipes)

        for relationship in result.relationships:
            host = by_id[relationship.outer_id]
            for nested_id in relationship.nested_ids:
                nested = by_id[nested_id]
                assert nested.external_diameter <= host.internal_diameter - 2 * allowance
                host = nested

    def test_empty_input(self, resolver):
        """Test resolving no pipes."""
        result = resolver.resolve([])

        assert result.pipes == []
        assert result.templates == []

    def test_templates_groups_first(self, resolver):
        """Test templates list groups before standalone pipes."""
        pipes = [
            make_pipe("lone", 50, 10, 100),  # Bore too small for the others
            make_pipe("outer", 20, 18, 200),
            make_pipe("inner", 15, 13, 150),
        ]

        result = resolver.resolve(pipes)

        assert [t.template_id for t in result.templates] == ["outer", "lone"]
        assert isinstance(result.templates[0], PackingTemplate)

    def test_tree(self, resolver):
        """Test the tree nests members as a chain."""
        pipes = [
            make_pipe("A", 30, 28, 100),
            make_pipe("B", 25, 22, 100),
            make_pipe("C", 20, 18, 100),
        ]

        tree = resolver.resolve(pipes).tree()

        assert len(tree) == 1
        assert tree[0]["pipe_id"] == "A"
        assert tree[0]["children"][0]["pipe_id"] == "B"
        assert tree[0]["children"][0]["children"][0]["pipe_id"] == "C"


class TestSpaceSaved:
    """Tests for space saving helpers."""

    def test_space_saved(self):
        """Test space saved by a full telescoping group."""
        pipes = [make_pipe("outer", 20, 18, 200), make_pipe("inner", 15, 13, 150)]
        result = resolve_telescoping(pipes)

        saved = space_saved(pipes, result)

        inner_volume = math.pi * 7.5 ** 2 * 150
        assert saved.space_saved == pytest.approx(inner_volume)
        assert saved.telescoped_volume == pytest.approx(math.pi * 100 * 200)
        assert 0 < saved.percentage_saved < 100

    def test_no_pipes(self):
        """Test no volume means no percentage."""
        saved = space_saved([], resolve_telescoping([]))

        assert saved.percentage_saved == 0.0

    def test_suggestions(self):
        """Test a suggestion is made per group."""
        pipes = [
            make_pipe("outer", 20, 18, 200),
            make_pipe("inner", 15, 13, 300),
            make_pipe("lone", 19, 17, 100),
        ]

        suggestions = telescoping_suggestions(pipes)

        assert len(suggestions) == 1
        assert suggestions[0].outer_pipe.id == "outer"
        assert [p.id for p in suggestions[0].inner_pipes] == ["inner"]
        assert suggestions[0].telescoping_type == TelescopingType.PARTIAL
        assert suggestions[0].to_dict()["space_saved"]["space_saved"] > 0

    def test_clear_telescoping(self):
        """Test clearing gives every pipe its own dimensions."""
        views = clear_telescoping([make_pipe("outer", 20, 18, 200), make_pipe("inner", 15, 13, 150)])

        assert all(v.telescoping_type == TelescopingType.NONE for v in views)
        assert views[1].effective_diameter == 15
