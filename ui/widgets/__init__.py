from .annotation_box import AnnotationBoxWidget, qfont_for
from .annotation_panel import AnnotationPanel
from .pdf_display import PageCanvas, pixmap_from_render

__all__ = [
    "AnnotationBoxWidget",
    "AnnotationPanel",
    "PageCanvas",
    "pixmap_from_render",
    "qfont_for",
]
