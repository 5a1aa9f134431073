"""Research templates: predefined zone layouts with their default data"""
import copy
from typing import NamedTuple, Optional

from .coordinates import Coordinate, destination_point, to_coordinate
from .shapes import (
    Shape, ShapeKind, ZoneType,
    PointShape, LineShape, PolygonShape, CircleShape
)


class ResearchTemplate(NamedTuple):
    """A template of a research zone. Sizes are in meters: `width` and
    `height` for boxes, `length` for lines and `radius` for circles."""
    id: str
    name: str
    zone_type: ZoneType
    shape: ShapeKind
    size: dict
    default_data: dict
    description: str = ""


RESEARCH_TEMPLATES: dict[str, ResearchTemplate] = {t.id: t for t in [
    ResearchTemplate(
        "coral_reef_study", "Coral Reef Study", ZoneType.RESEARCH_ZONE,
        ShapeKind.RECTANGLE, {"width": 500, "height": 500},
        {"coralCoverage": None, "species": [], "healthScore": None,
         "waterTemp": None, "visibility": None},
        "Assess coral coverage, species and reef health"),
    ResearchTemplate(
        "fish_survey", "Fish Survey Transect", ZoneType.FISH_SURVEY,
        ShapeKind.LINE, {"length": 1000},
        {"species": [], "counts": {}, "sizeDistribution": [], "behavior": ""},
        "Count and size fish along a transect line"),
    ResearchTemplate(
        "water_quality_sampling", "Water Quality Sampling", ZoneType.SAMPLING_STATION,
        ShapeKind.CIRCLE, {"radius": 100},
        {"pH": None, "salinity": None, "dissolved_oxygen": None,
         "temperature": None, "turbidity": None, "nutrients": {}},
        "Sample physical and chemical water parameters"),
    ResearchTemplate(
        "marine_protected_area", "Marine Protected Area", ZoneType.PROTECTED_AREA,
        ShapeKind.POLYGON, {"width": 2000, "height": 2000},
        {"protectionLevel": "strict", "allowedActivities": [],
         "restrictedActivities": [], "managementPlan": ""},
        "Delimit a protected area and its rules"),
    ResearchTemplate(
        "fishing_grounds_assessment", "Fishing Grounds Assessment", ZoneType.FISHING_ZONE,
        ShapeKind.RECTANGLE, {"width": 3000, "height": 2000},
        {"fishingMethod": "", "targetSpecies": [], "catchData": [], "effort": None},
        "Record fishing effort and catch"),
    ResearchTemplate(
        "oceanographic_station", "Oceanographic Station", ZoneType.MONITORING_STATION,
        ShapeKind.POINT, {"radius": 50},
        {"sensors": [], "dataFrequency": "hourly", "parameters": []},
        "A fixed sensor station"),
    ResearchTemplate(
        "seagrass_meadow", "Seagrass Meadow", ZoneType.HABITAT_SURVEY,
        ShapeKind.POLYGON, {"width": 800, "height": 600},
        {"seagrassSpecies": [], "density": None, "healthStatus": "", "threats": []},
        "Map seagrass extent and condition"),
    ResearchTemplate(
        "research_vessel_track", "Research Vessel Track", ZoneType.VESSEL_TRACK,
        ShapeKind.LINE, {"length": 5000},
        {"vesselName": "", "surveyType": "", "startTime": None, "endTime": None},
        "The planned track of a survey vessel"),
    ResearchTemplate(
        "pollution_monitoring", "Pollution Monitoring", ZoneType.POLLUTION_ZONE,
        ShapeKind.RECTANGLE, {"width": 1000, "height": 1000},
        {"pollutionType": "", "severity": "", "source": "", "measurements": []},
        "Track a pollution event"),
    ResearchTemplate(
        "aquaculture_study", "Aquaculture Study", ZoneType.AQUACULTURE,
        ShapeKind.RECTANGLE, {"width": 500, "height": 500},
        {"species": "", "capacity": None, "waterFlow": None, "environmental_impact": ""},
        "Evaluate an aquaculture site"),
]}


def _box(anchor: Coordinate, width: float, height: float) -> list[Coordinate]:
    north = destination_point(anchor, 0, height / 2).lat
    south = destination_point(anchor, 180, height / 2).lat
    east = destination_point(anchor, 90, width / 2).lon
    west = destination_point(anchor, 270, width / 2).lon
    return [Coordinate(south, west), Coordinate(north, west),
            Coordinate(north, east), Coordinate(south, east)]


def create_shape_from_template(template_id: str,
                               anchor,
                               label: Optional[str] = None) -> Shape:
    """
    Create a draft shape from a research template, centred on `anchor`.

    Args
        template_id: str
            The key of the template in RESEARCH_TEMPLATES
        anchor: Coordinate or [lat, lon]
            The center of the new zone (the start of a line)
        label: str
            Optional label, defaults to the template name

    Returns:
        The shape (without id), ready to be added to a ShapeStore.
    """
    if template_id not in RESEARCH_TEMPLATES:
        raise KeyError(f"No such research template: {template_id}")
    tpl = RESEARCH_TEMPLATES[template_id]
    anchor = to_coordinate(anchor)
    common = {
        'zone_type': tpl.zone_type,
        'label': label if label is not None else tpl.name,
        'data': copy.deepcopy(tpl.default_data),
    }
    if tpl.shape == ShapeKind.POINT:
        return PointShape(position=anchor, **common)
    if tpl.shape == ShapeKind.CIRCLE:
        return CircleShape(center=anchor, radius=tpl.size["radius"], **common)
    if tpl.shape == ShapeKind.LINE:
        return LineShape(positions=[anchor, destination_point(anchor, 90, tpl.size["length"])],
                         **common)
    return PolygonShape(positions=_box(anchor, tpl.size["width"], tpl.size["height"]),
                        rectangle=tpl.shape == ShapeKind.RECTANGLE,
                        **common)
