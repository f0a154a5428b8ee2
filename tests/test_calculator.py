"""Tests for load calculation."""

import json
import math

import pytest

from pipeload.calculator import (
    LoadCalculator,
    calculate_load,
    pipes_needed,
    recommendations,
)
from pipeload.config import Settings
from pipeload.containers import LimitingFactor, Volume
from pipeload.telescoping import PipeSpec, TelescopingType


@pytest.fixture
def hc40():
    """A 40ft high cube container."""
    return Volume.for_transport("container_hc40")


@pytest.fixture
def order():
    """Two pipe types where the smaller fits the larger one's bore."""
    return [
        PipeSpec("P1", 20, 18, 600, quantity_in_meters=1200, weight_per_meter=3),
        PipeSpec("P2", 15, 12, 600, quantity_in_meters=600, weight_per_meter=2),
    ]


class TestPipesNeeded:
    """Tests for pipes_needed function."""

    def test_exact(self):
        """Test an exact multiple of the standard length."""
        assert pipes_needed(PipeSpec("P", 20, 18, 600, 1200)) == 200

    def test_rounds_up(self):
        """Test a partial pipe counts as a whole pipe."""
        assert pipes_needed(PipeSpec("P", 20, 18, 600, 12.05)) == 3

    def test_floating_point_noise(self):
        """Test float noise does not add a pipe."""
        assert pipes_needed(PipeSpec("P", 20, 18, 30, 0.3)) == 1

    def test_zero_length(self):
        """Test a zero standard length needs no pipes."""
        assert pipes_needed(PipeSpec("P", 20, 18, 0, 10)) == 0


class TestLoadCalculator:
    """Tests for LoadCalculator class."""

    def test_single_container(self, hc40, order):
        """Test an order that fits one container by packing and weight."""
        report = LoadCalculator(hc40, min_space=0, allowance=0).calculate(order)

        assert report.success is True
        assert report.total_pipes == 300
        assert report.total_weight == pytest.approx(4800)
        assert report.total_length_m == pytest.approx(1800)

        plan = report.plan
        assert plan.total == 1
        assert plan.packing_containers == 1
        assert plan.weight_containers == 1
        assert plan.limiting_factor == LimitingFactor.BOTH

        entries = {(e.template_id, e.nested): e.count for e in plan.containers[0].entries}
        assert entries[("P1", False)] == 200
        assert entries[("P2", True)] == 100
        assert plan.unallocated == {}

    def test_pipe_results(self, hc40, order):
        """Test per-type figures."""
        report = LoadCalculator(hc40).calculate(order)
        first = report.pipe_results[0]

        assert first.number_of_pipes == 200
        assert first.total_weight == pytest.approx(3600)
        assert first.volume_m3 == pytest.approx(math.pi * 0.1 ** 2 * 1200)
        assert first.capacity.capacity == 286

    def test_telescoping_included(self, hc40, order):
        """Test the report carries the telescoping groups."""
        report = LoadCalculator(hc40).calculate(order)

        assert report.telescoping.for_pipe("P1").telescoping_type == TelescopingType.FULL
        assert report.telescoping.for_pipe("P2").nested_in == "P1"
        assert report.space_saved.space_saved > 0

    def test_arrangement(self):
        """Test the cross-section arrangement packs every template."""
        volume = Volume(length=600, width=100, height=100)
        pipes = [
            PipeSpec("A", 30, 28, 600, 60, 1),
            PipeSpec("B", 12, 10, 600, 60, 1),
        ]

        report = LoadCalculator(volume).calculate(pipes)

        assert report.arrangement.success is True
        assert report.arrangement.pipe_counts["A"] > 0
        assert report.arrangement.pipe_counts["B"] == report.arrangement.pipe_counts["A"]
        assert report.volume_usage.percentage_used > 0
        assert report.volume_usage.remaining_volume == pytest.approx(
            report.volume_usage.total_volume - report.volume_usage.used_volume
        )

    def test_invalid_volume(self, order):
        """Test a volume without dimensions fails."""
        report = LoadCalculator(Volume.for_transport("custom")).calculate(order)

        assert report.success is False
        assert report.error_message == "Invalid volume dimensions"

    def test_no_pipes(self, hc40):
        """Test an empty order fails."""
        report = LoadCalculator(hc40).calculate([])

        assert report.success is False
        assert report.error_message == "No pipes specified"

    def test_no_valid_pipes(self, hc40):
        """Test pipes without diameter or length are dropped."""
        report = LoadCalculator(hc40).calculate([PipeSpec("P", 0, 0, 600, 10, 1)])

        assert report.success is False
        assert report.error_message == "No valid pipes"

    def test_invalid_pipes_skipped(self, hc40, order):
        """Test one unusable pipe does not fail the order."""
        report = LoadCalculator(hc40).calculate(order + [PipeSpec("bad", 20, 18, 0, 10, 1)])

        assert report.success is True
        assert [r.pipe.id for r in report.pipe_results] == ["P1", "P2"]

    def test_pipe_longer_than_volume(self, hc40):
        """Test a pipe that cannot fit makes the plan infeasible."""
        report = LoadCalculator(hc40).calculate([PipeSpec("long", 20, 18, 1300, 26, 1)])

        assert report.success is True
        assert report.plan.infeasible is True
        assert math.isinf(report.plan.total)
        assert report.pipes_extend_beyond_volume is True

    def test_weight_limited(self, hc40):
        """Test heavy pipes need more containers than packing does."""
        report = LoadCalculator(hc40).calculate([PipeSpec("heavy", 20, 18, 600, 1200, 100)])

        assert report.plan.packing_containers == 1
        assert report.plan.weight_containers == 6
        assert report.plan.total == 6
        assert report.plan.limiting_factor == LimitingFactor.WEIGHT

    def test_settings_defaults(self, order):
        """Test clearances come from settings unless overridden."""
        volume = Volume(length=600, width=100, height=100)
        settings = Settings(min_space=1.0, allowance=0.5)

        from_settings = LoadCalculator(volume, settings=settings)
        overridden = LoadCalculator(volume, settings=settings, allowance=2.0)

        assert from_settings.min_space == 1.0
        assert from_settings.allowance == 0.5
        assert overridden.allowance == 2.0

    def test_does_not_mutate_input(self, hc40, order):
        """Test the caller's pipes are left untouched."""
        before = [p.to_dict() for p in order]

        LoadCalculator(hc40).calculate(order)

        assert [p.to_dict() for p in order] == before

    def test_json_serializable(self, hc40, order):
        """Test the report serializes to JSON."""
        data = json.loads(json.dumps(LoadCalculator(hc40).calculate(order).to_dict()))

        assert data["success"] is True
        assert data["plan"]["total"] == 1
        assert data["transport"] == "Container HC 40ft"

    def test_convenience_function(self, hc40, order):
        """Test calculate_load."""
        report = calculate_load(order, hc40, allowance=2.0)

        assert report.telescoping.relationships == []
        assert report.plan.total == 1


class TestRecommendations:
    """Tests for recommendations function."""

    def test_failed_report(self, hc40):
        """Test the error is passed on."""
        notes = recommendations(LoadCalculator(hc40).calculate([]))

        assert notes[0].level == "warning"
        assert notes[0].message == "No pipes specified"

    def test_multiple_containers(self, hc40):
        """Test the container count and limit are explained."""
        report = LoadCalculator(hc40).calculate([PipeSpec("heavy", 20, 18, 600, 1200, 100)])

        messages = [n.message for n in recommendations(report)]

        assert any("6 x Container HC 40ft" in m and "limited by weight" in m for m in messages)

    def test_infeasible(self, hc40):
        """Test a warning for pipes that do not fit."""
        report = LoadCalculator(hc40).calculate([PipeSpec("long", 20, 18, 1300, 26, 1)])

        notes = recommendations(report)

        assert any(n.level == "warning" and "cannot fit" in n.message for n in notes)

    def test_volume_share(self, hc40, order):
        """Test the pipe volume share note."""
        notes = recommendations(LoadCalculator(hc40).calculate(order))

        assert any("of single container" in n.message for n in notes)
