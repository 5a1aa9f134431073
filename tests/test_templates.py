"""Tests for MarineSpatialPlanning/templates.py."""
import pytest

from MarineSpatialPlanning import RESEARCH_TEMPLATES, create_shape_from_template, ShapeKind
from MarineSpatialPlanning.geometry import shape_area, shape_length


def test_ten_templates():
    assert len(RESEARCH_TEMPLATES) == 10


@pytest.mark.parametrize("template_id", list(RESEARCH_TEMPLATES))
def test_every_template_builds_a_draft(template_id, colombo):
    tpl = RESEARCH_TEMPLATES[template_id]
    shape = create_shape_from_template(template_id, colombo)
    assert shape.kind == tpl.shape
    assert shape.zone_type == tpl.zone_type
    assert shape.label == tpl.name
    assert shape.data == tpl.default_data
    assert shape.id is None


def test_box_size(colombo):
    shape = create_shape_from_template("fishing_grounds_assessment", colombo)
    assert shape.kind == ShapeKind.RECTANGLE
    assert shape_area(shape) == pytest.approx(3.0 * 2.0, rel=0.02)


def test_line_length(colombo):
    shape = create_shape_from_template("research_vessel_track", colombo)
    assert shape.positions[0] == colombo
    assert shape_length(shape) == pytest.approx(5.0, rel=1e-6)


def test_circle_radius(colombo):
    shape = create_shape_from_template("water_quality_sampling", colombo, label="WQ 1")
    assert shape.center == colombo
    assert shape.radius == 100
    assert shape.label == "WQ 1"


def test_data_is_not_shared(colombo):
    shape = create_shape_from_template("coral_reef_study", colombo)
    data = shape.to_dict()["data"]
    data["species"].append("Acropora")
    assert RESEARCH_TEMPLATES["coral_reef_study"].default_data["species"] == []
    assert shape.data["species"] == []


def test_unknown_template(colombo):
    with pytest.raises(KeyError):
        create_shape_from_template("deep_sea_mining", colombo)
