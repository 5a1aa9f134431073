"""
An example use of MarineSpatialPlanning library: a small project with a few
zones, saved locally and exported to every supported format
"""
import asyncio
import os
import logging
from dotenv import load_dotenv
load_dotenv()

from MarineSpatialPlanning import ( #pylint: disable=wrong-import-position
    ProjectManager, ImportExportGateway, LocalProjectStore,
    PolygonShape, LineShape, CircleShape, PointShape, ZoneType,
    create_shape_from_template
)


rootpath = os.path.dirname(os.path.abspath(__file__))
outfolder = os.path.join(rootpath, "output")


async def main():
    """Build, save and export the sample project"""
    manager = ProjectManager(LocalProjectStore(os.path.join(rootpath, "data", "sample_projects.json")))
    gateway = ImportExportGateway(manager)
    manager.update_metadata(name="Bar Reef survey 2025",
                            description="Coral and fish surveys around the Bar Reef sanctuary",
                            researcher="NARA Oceanography Division",
                            tags=["coral", "survey"])

    store = manager.store
    store.add(PolygonShape(positions=[(8.30, 79.70), (8.45, 79.70), (8.45, 79.82), (8.30, 79.82)],
                           zone_type=ZoneType.PROTECTED_AREA, label="Bar Reef Marine Sanctuary"))
    store.add(LineShape(positions=[(8.36, 79.72), (8.38, 79.76), (8.41, 79.78)],
                        zone_type=ZoneType.FISH_SURVEY, label="Transect A",
                        data={"species": ["Parrotfish", "Butterflyfish"]}))
    store.add(CircleShape(center=(8.33, 79.80), radius=400,
                          zone_type=ZoneType.SAMPLING_STATION, label="Station 3",
                          data={"pH": 8.1, "salinity": 34.5}))
    store.add(PointShape(position=(8.40, 79.74), zone_type=ZoneType.MONITORING_STATION))
    store.add(create_shape_from_template("coral_reef_study", (8.37, 79.75)))

    manager.measurement.start("distance")
    manager.measurement.add_point((8.30, 79.70))
    manager.measurement.add_point((8.45, 79.82))

    await manager.save()

    os.makedirs(outfolder, exist_ok=True)
    fname = os.path.join(outfolder, manager.project.name)
    for ext, content in [("json", gateway.export_json()),
                         ("geojson", gateway.export_geojson()),
                         ("csv", gateway.export_csv()),
                         ("gpx", gateway.export_gpx())]:
        with open(f"{fname}.{ext}", "wt", encoding="utf8") as f:
            f.write(content)
    buf = await gateway.generate_report()
    with open(f"{fname}.docx", "wb") as f:
        f.write(buf.getvalue())
    print(gateway.statistics())


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(main())
