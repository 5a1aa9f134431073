# coding: utf-8
"""
Renders the project report: a map image of the zones, the aggregate
statistics and the per-zone details in a Word document.
"""
# general packages
import io
import json
import math
import os
from typing import Optional, Sequence

# imaging related packages
import matplotlib
matplotlib.use("Agg")
# pylint: disable=wrong-import-position
import matplotlib.pyplot as plt
import matplotlib.patches as patches

# document creation related packages
from docx import Document
from docx.shared import Cm

# package imports
from .coordinates import circle_ring, _get_extent_from_points
from .shapes import Shape, ShapeKind
# pylint: enable=wrong-import-position


class ReportRenderer:
    """
    Turns the report data prepared by the ImportExportGateway (project
    metadata, statistics, zone details) and the shapes into a document.
    """

    DOC_DPI = int(os.getenv("REPORT_DPI", "200"))
    TABLE_STYLE = "Colorful Shading Accent 1"

    def draw_map(self, shapes: Sequence[Shape], dpi: Optional[float] = None) -> bytes:
        """Draw the zones into a PNG image (longitude-latitude axes)"""
        fig = plt.figure(figsize=(8, 6))
        try:
            ax = fig.add_subplot(1, 1, 1)
            points = []
            for s in shapes:
                if s.kind in (ShapeKind.POLYGON, ShapeKind.RECTANGLE):
                    ring = list(s.positions)
                elif s.kind == ShapeKind.CIRCLE:
                    ring = circle_ring(s.center, s.radius)
                else:
                    ring = None
                if ring is not None:
                    ax.add_patch(patches.Polygon([(p.lon, p.lat) for p in ring],
                                                 closed=True,
                                                 facecolor=s.color, edgecolor=s.color,
                                                 alpha=0.35, lw=2))
                    points.extend(ring)
                elif s.kind == ShapeKind.LINE:
                    ax.plot([p.lon for p in s.positions], [p.lat for p in s.positions],
                            color=s.color, lw=2)
                    points.extend(s.positions)
                else:
                    ax.plot([s.position.lon], [s.position.lat], 'o', color=s.color)
                    points.append(s.position)
                anchor = s.vertices[0]
                ax.annotate(s.name, (anchor.lon, anchor.lat), fontsize=7,
                            xytext=(4, 4), textcoords='offset points')
            if points:
                ext = _get_extent_from_points(points)
                margin = max(ext.maxlat - ext.minlat, ext.maxlon - ext.minlon, 0.001) * 0.1
                ax.set_xlim(ext.minlon - margin, ext.maxlon + margin)
                ax.set_ylim(ext.minlat - margin, ext.maxlat + margin)
                # keep the map proportions right at the latitude of the zones
                ax.set_aspect(1 / max(math.cos(math.radians(ext.center.lat)), 0.01))
            ax.set_xlabel("Longitude")
            ax.set_ylabel("Latitude")
            ax.grid(True, lw=0.3)

            buf = io.BytesIO()
            fig.savefig(buf, format="png", dpi=dpi or self.DOC_DPI, bbox_inches="tight")
            return buf.getvalue()
        finally:
            plt.close(fig)

    def render(self,  # pylint: disable=too-many-locals
               report: dict,
               shapes: Sequence[Shape],
               include_map: bool = True,
               include_statistics: bool = True,
               include_zone_details: bool = True
              ) -> io.BytesIO:
        """Generate the report as a Word document in a byte buffer"""
        project, stats = report['project'], report['statistics']
        doc = Document()

        for section in doc.sections:
            section.top_margin = Cm(1)
            section.bottom_margin = Cm(1)
            section.left_margin = Cm(1)
            section.right_margin = Cm(1)

        doc.add_heading(project['name'], 0)
        if project.get('description'):
            doc.add_paragraph(project['description'])
        doc.add_paragraph(f"Researcher: {project.get('researcher') or '-'}")
        doc.add_paragraph(f"Status: {project['status']}, " +
                          f"last modified: {project.get('lastModified') or 'never saved'}")
        doc.add_paragraph(f"Generated: {report['generatedAt']}")

        if include_map and shapes:
            doc.add_picture(io.BytesIO(self.draw_map(shapes)), width=Cm(19.00))

        if include_statistics:
            doc.add_heading("Statistics", level=1)
            tab = doc.add_table(rows=0, cols=2)
            tab.style = self.TABLE_STYLE
            for key, val in [("Zones", f"{stats['totalShapes']}"),
                             ("Total area", f"{stats['totalArea']:.2f} km²"),
                             ("Total distance", f"{stats['totalDistance']:.2f} km")]:
                row_cells = tab.add_row().cells
                row_cells[0].text, row_cells[1].text = key, val
            if stats['zonesByType']:
                doc.add_heading("Zones by type", level=2)
                tab = doc.add_table(rows=1, cols=2)
                tab.style = self.TABLE_STYLE
                tab.rows[0].cells[0].text, tab.rows[0].cells[1].text = "Type", "Count"
                for zone_type, count in sorted(stats['zonesByType'].items()):
                    row_cells = tab.add_row().cells
                    row_cells[0].text, row_cells[1].text = zone_type, str(count)

        if include_zone_details and report['zones']:
            doc.add_page_break()
            doc.add_heading("Zone details", level=1)
            for zone in report['zones']:
                self.add_zone_to_doc(doc, zone)

        if report.get('comments'):
            doc.add_heading("Comments", level=1)
            for c in report['comments']:
                doc.add_paragraph(f"{c['author'] or 'Anonymous'}: {c['text']}",
                                  style="List Bullet")

        buf = io.BytesIO()
        doc.save(buf)
        buf.seek(0)
        return buf

    def add_zone_to_doc(self, doc, zone: dict):
        """Adds the heading and the detail table of one zone"""
        doc.add_heading(zone['name'], level=2)
        tab = doc.add_table(rows=0, cols=2)
        tab.style = self.TABLE_STYLE
        rows = [("Type", zone['type']), ("Geometry", zone['kind']), ("Color", zone['color'])]
        if zone['area'] is not None:
            rows.append(("Area", f"{zone['area']:.2f} km²"))
        if zone['perimeter'] is not None:
            rows.append(("Perimeter", f"{zone['perimeter']:.2f} km"))
        if zone['length'] is not None:
            rows.append(("Length", f"{zone['length']:.2f} km"))
        rows.append(("Created", zone['createdAt'] or '-'))
        for key, val in zone['data'].items():
            if val not in (None, "", [], {}):
                rows.append((key, val if isinstance(val, str) else json.dumps(val)))
        for key, val in rows:
            row_cells = tab.add_row().cells
            row_cells[0].text, row_cells[1].text = key, str(val)
